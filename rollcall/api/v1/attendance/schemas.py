"""Attendance schemas."""

import datetime as dt
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from rollcall.core.enums import AbsenceStatus, Gender, SubmissionState


class AttendanceSubmitRequest(BaseModel):
    class_id: UUID
    date: Optional[dt.date] = None  # defaults to today
    absent_student_ids: List[UUID] = Field(default_factory=list)


class AbsenceStatusUpdate(BaseModel):
    status: AbsenceStatus


class AttendanceRecordResponse(BaseModel):
    id: UUID
    student_id: UUID
    student_name: str
    register_no: str
    gender: Gender
    department_name: str
    class_id: UUID
    class_name: str
    date: dt.date
    time: str
    marked_by: str
    status: AbsenceStatus
    timestamp: dt.datetime

    class Config:
        from_attributes = True


class SubmissionResponse(BaseModel):
    id: str
    class_id: UUID
    department_id: UUID
    date: dt.date
    submitted_by: Optional[UUID] = None
    submitted_at: dt.datetime
    present_count: int
    absent_count: int
    absentees: List[AttendanceRecordResponse] = Field(default_factory=list)


class MarkPresentResponse(BaseModel):
    record_id: UUID
    student_id: UUID
    date: dt.date
    present_count: Optional[int] = None
    absent_count: Optional[int] = None


class ClassSubmissionStatus(BaseModel):
    class_id: UUID
    class_name: str
    state: SubmissionState
    submitted_at: Optional[dt.datetime] = None
    present_count: Optional[int] = None
    absent_count: Optional[int] = None


class DepartmentSubmissionStatus(BaseModel):
    department_id: UUID
    department_name: str
    submitted: int
    pending: int
    classes: List[ClassSubmissionStatus]
