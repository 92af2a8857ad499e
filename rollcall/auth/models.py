import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.orm import relationship

from rollcall.db.session import Base


class Staff(Base):
    """Staff account. Teachers are bound to exactly one class."""

    __tablename__ = "staff"
    __table_args__ = (
        CheckConstraint("role IN ('admin','teacher','viewer','dean')", name="chk_staff_role"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(255), nullable=False)
    # Stored lower-cased; login lookups are case-insensitive
    email = Column(String(255), nullable=False, unique=True)
    password_hash = Column(Text, nullable=False)
    role = Column(String(20), nullable=False)
    class_id = Column(Uuid, ForeignKey("classes.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    school_class = relationship("SchoolClass")
    sessions = relationship(
        "StaffSession", back_populates="staff", cascade="all, delete-orphan", passive_deletes=True
    )


class StaffSession(Base):
    """Server-side login session. The JWT carries its id as 'sid'; logout deletes the row."""

    __tablename__ = "staff_sessions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    staff_id = Column(Uuid, ForeignKey("staff.id", ondelete="CASCADE"), nullable=False, index=True)
    issued_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    staff = relationship("Staff", back_populates="sessions")
