import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from rollcall.db.session import Base


class Department(Base):
    """Academic department (CSE, ECE, MBA...). Reference data owned by the roster."""

    __tablename__ = "departments"
    __table_args__ = (
        UniqueConstraint("code", name="uq_department_code"),
        UniqueConstraint("name", name="uq_department_name"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    code = Column(String(20), nullable=False)  # Uppercased; not editable after creation
    name = Column(String(100), nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    classes = relationship("SchoolClass", back_populates="department")
