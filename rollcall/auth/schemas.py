from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, EmailStr

from rollcall.core.enums import StaffRole


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class StaffInfo(BaseModel):
    id: UUID
    name: str
    email: EmailStr
    role: StaffRole
    class_id: Optional[UUID] = None

    class Config:
        from_attributes = True


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    staff: StaffInfo
    issued_at: datetime
    expires_at: datetime


class CurrentUser(BaseModel):
    """Explicit per-request session: who is acting and what they may touch."""

    id: UUID
    name: str
    email: str
    role: StaffRole
    class_id: Optional[UUID] = None  # teachers only
    session_id: UUID
