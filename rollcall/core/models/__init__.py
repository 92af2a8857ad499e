from rollcall.core.models.department import Department
from rollcall.core.models.class_model import SchoolClass
from rollcall.core.models.student import Student
from rollcall.core.models.fee_profile import FeeLedgerLine, FeeProfile
from rollcall.core.models.fee_transaction import FeeTransaction
from rollcall.core.models.attendance_record import AttendanceRecord
from rollcall.core.models.working_day import WorkingDay
from rollcall.core.models.attendance_submission import AttendanceSubmission, submission_key

__all__ = [
    "AttendanceRecord",
    "AttendanceSubmission",
    "Department",
    "FeeLedgerLine",
    "FeeProfile",
    "FeeTransaction",
    "SchoolClass",
    "Student",
    "WorkingDay",
    "submission_key",
]
