"""Absence records. Presence is implicit: a student without a record on a working day was present."""

import uuid
from datetime import datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import relationship

from rollcall.core.enums import AbsenceStatus
from rollcall.db.session import Base


class AttendanceRecord(Base):
    """One row per absent student per day. Names are snapshotted at marking time for reports."""

    __tablename__ = "attendance_records"
    __table_args__ = (
        Index("ix_attendance_records_date_class", "date", "class_id"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid, ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    student_name = Column(String(255), nullable=False)
    register_no = Column(String(50), nullable=False)
    gender = Column(String(10), nullable=False)
    department_name = Column(String(100), nullable=False)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False)
    class_name = Column(String(50), nullable=False)
    date = Column(Date, nullable=False)
    time = Column(String(20), nullable=False)  # hh:mm:ss AM/PM, as shown on the absentee sheet
    marked_by = Column(String(255), nullable=False)
    status = Column(String(20), nullable=False, default=AbsenceStatus.NOT_INFORMED.value)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    student = relationship("Student")
