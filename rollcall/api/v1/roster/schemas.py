from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from rollcall.core.enums import AdmissionType, Gender


class DepartmentCreate(BaseModel):
    code: str = Field(..., min_length=1, max_length=20)
    name: str = Field(..., min_length=1, max_length=100)


class DepartmentResponse(BaseModel):
    id: UUID
    code: str
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class ClassCreate(BaseModel):
    department_id: UUID
    name: str = Field(..., min_length=1, max_length=50, description="Roman-numeral year prefix, e.g. I-A, II, III-B")


class ClassResponse(BaseModel):
    id: UUID
    department_id: UUID
    name: str
    created_at: datetime

    class Config:
        from_attributes = True


class StudentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    class_id: UUID
    register_no: str = Field(..., min_length=1, max_length=50)
    gender: Gender
    parent_phone_number: Optional[str] = Field(None, max_length=30)
    mentor: Optional[str] = Field(None, max_length=255)
    admission_type: Optional[AdmissionType] = None


class StudentResponse(BaseModel):
    id: UUID
    name: str
    department_id: UUID
    department_name: Optional[str] = None
    class_id: UUID
    class_name: Optional[str] = None
    register_no: str
    gender: Gender
    parent_phone_number: Optional[str] = None
    mentor: Optional[str] = None
    admission_type: Optional[AdmissionType] = None
