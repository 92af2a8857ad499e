import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from rollcall.core.enums import Gender
from rollcall.db.session import Base


class Student(Base):
    """Enrolled student. Read-only from the attendance and fee ledgers' point of view."""

    __tablename__ = "students"
    __table_args__ = (
        UniqueConstraint("register_no", name="uq_student_register_no"),
        CheckConstraint("gender IN ('MALE','FEMALE')", name="chk_student_gender"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    department_id = Column(Uuid, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False, index=True)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="RESTRICT"), nullable=False, index=True)
    register_no = Column(String(50), nullable=False)
    gender = Column(String(10), nullable=False, default=Gender.MALE.value)
    parent_phone_number = Column(String(30), nullable=True)
    mentor = Column(String(255), nullable=True)
    admission_type = Column(String(20), nullable=True)  # CENTAC, Management
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    department = relationship("Department")
    school_class = relationship("SchoolClass", back_populates="students")
