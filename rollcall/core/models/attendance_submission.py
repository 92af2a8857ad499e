from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from rollcall.db.session import Base


def submission_key(class_id, on_date) -> str:
    return f"{class_id}_{on_date.isoformat()}"


class AttendanceSubmission(Base):
    """Marks that a class's attendance was taken for a date. Id is '<class_id>_<YYYY-MM-DD>'."""

    __tablename__ = "attendance_submissions"
    __table_args__ = (
        UniqueConstraint("class_id", "date", name="uq_attendance_submission_class_date"),
    )

    id = Column(String(80), primary_key=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)
    department_id = Column(Uuid, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False)
    date = Column(Date, nullable=False, index=True)
    submitted_by = Column(Uuid, ForeignKey("staff.id", ondelete="SET NULL"), nullable=True)
    submitted_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    present_count = Column(Integer, nullable=False, default=0)
    absent_count = Column(Integer, nullable=False, default=0)

    school_class = relationship("SchoolClass")
