import datetime as dt
from typing import List
from uuid import UUID

from pydantic import BaseModel

from rollcall.core.enums import DayStatus


class StrengthRow(BaseModel):
    id: str
    name: str
    total_boys: int
    total_girls: int
    present_boys: int
    present_girls: int
    present_total: int
    absent_total: int
    total_strength: int
    percentage: float


class StrengthSummaryResponse(BaseModel):
    date: dt.date
    is_working_day: bool
    overall: StrengthRow
    departments: List[StrengthRow]
    classes: List[StrengthRow]
    batches: List[StrengthRow]


class DayWisePoint(BaseModel):
    date: dt.date
    present: int
    absent: int
    holiday: int


class PeriodicalReportRow(BaseModel):
    student_id: UUID
    register_no: str
    name: str
    total_working_days: int
    present: int
    absent: int
    percentage: float


class PeriodicalReportResponse(BaseModel):
    start: dt.date
    end: dt.date
    total_working_days: int
    rows: List[PeriodicalReportRow]


class DayCell(BaseModel):
    date: dt.date
    status: DayStatus


class MonthlyAttendance(BaseModel):
    month: int
    name: str
    present: int
    working_days: int
    percentage: float


class StudentYearlyReport(BaseModel):
    student_id: UUID
    student_name: str
    register_no: str
    class_name: str
    department_name: str
    year: int
    days: List[DayCell]
    months: List[MonthlyAttendance]
    overall_percentage: float
