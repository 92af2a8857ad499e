from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, model_validator

from rollcall.core.enums import StaffRole


class StaffCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: StaffRole
    class_id: Optional[UUID] = None  # required for teachers

    @model_validator(mode="after")
    def validate_teacher_class(self) -> "StaffCreate":
        if self.role == StaffRole.TEACHER and self.class_id is None:
            raise ValueError("class_id is required for teachers")
        return self


class StaffUpdate(BaseModel):
    """email is not editable after creation."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[StaffRole] = None
    class_id: Optional[UUID] = None


class StaffResponse(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: StaffRole
    class_id: Optional[UUID] = None
    created_at: datetime

    class Config:
        from_attributes = True
