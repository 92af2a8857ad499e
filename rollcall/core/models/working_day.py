from datetime import datetime

from sqlalchemy import Boolean, Column, Date, DateTime, String

from rollcall.db.session import Base


class WorkingDay(Base):
    """Explicit calendar override. Dates without a row are holidays; Sundays are always holidays."""

    __tablename__ = "working_days"

    date = Column(Date, primary_key=True)
    is_working_day = Column(Boolean, nullable=False, default=False)
    updated_by = Column(String(255), nullable=True)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
