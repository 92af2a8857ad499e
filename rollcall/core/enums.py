from enum import Enum


class StaffRole(str, Enum):
    ADMIN = "admin"
    TEACHER = "teacher"
    VIEWER = "viewer"
    DEAN = "dean"


class Gender(str, Enum):
    MALE = "MALE"
    FEMALE = "FEMALE"


class AdmissionType(str, Enum):
    CENTAC = "CENTAC"
    MANAGEMENT = "Management"


class FeeCategory(str, Enum):
    TUITION = "tuition"
    EXAM = "exam"
    TRANSPORT = "transport"
    HOSTEL = "hostel"
    REGISTRATION = "registration"


class FeeStatus(str, Enum):
    unpaid = "unpaid"
    partial = "partial"
    paid = "paid"


class AbsenceStatus(str, Enum):
    INFORMED = "Informed"
    NOT_INFORMED = "Not Informed"
    LETTER_GIVEN = "Letter Given"


class SubmissionState(str, Enum):
    SUBMITTED = "Submitted"
    PENDING = "Pending"


class DayStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    HOLIDAY = "holiday"
    FUTURE = "future"


class MutationState(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    FAILED = "failed"


class ExportFormat(str, Enum):
    CSV = "csv"
    XLSX = "xlsx"
