"""Classes within a department (I-A, II, III-B...). Model named SchoolClass to avoid Python 'class' keyword."""
import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from rollcall.db.session import Base


class SchoolClass(Base):
    """A class section. The roman-numeral prefix of the name gives its year batch."""

    __tablename__ = "classes"
    __table_args__ = (
        UniqueConstraint("department_id", "name", name="uq_class_department_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    department_id = Column(Uuid, ForeignKey("departments.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(50), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    department = relationship("Department", back_populates="classes")
    students = relationship("Student", back_populates="school_class")
