"""Fee profile: one ledger per student with a (total, paid, balance) line per fee category."""

from datetime import datetime

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Uuid,
)
from sqlalchemy.orm import relationship

from rollcall.db.session import Base


class FeeProfile(Base):
    """
    Per-student fee ledger. The profile id is the student id.
    total_* columns always equal the sums over lines; version guards concurrent writers.
    """

    __tablename__ = "fee_profiles"

    student_id = Column(Uuid, ForeignKey("students.id", ondelete="RESTRICT"), primary_key=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    total_paid = Column(Numeric(12, 2), nullable=False, default=0)
    total_balance = Column(Numeric(12, 2), nullable=False, default=0)
    recorded_by = Column(String(255), nullable=True)  # staff name of the last writer
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    student = relationship("Student")
    lines = relationship(
        "FeeLedgerLine",
        back_populates="profile",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # UPDATE ... WHERE version = :old; a stale writer gets StaleDataError
    __mapper_args__ = {"version_id_col": version}

    @property
    def id(self):
        return self.student_id


class FeeLedgerLine(Base):
    """One fee category of one profile."""

    __tablename__ = "fee_ledger_lines"
    __table_args__ = (
        CheckConstraint(
            "category IN ('tuition','exam','transport','hostel','registration')",
            name="chk_fee_ledger_line_category",
        ),
        CheckConstraint("total >= 0", name="chk_fee_ledger_line_total"),
        CheckConstraint("paid >= 0", name="chk_fee_ledger_line_paid"),
    )

    fee_id = Column(Uuid, ForeignKey("fee_profiles.student_id", ondelete="CASCADE"), primary_key=True)
    category = Column(String(20), primary_key=True)
    total = Column(Numeric(12, 2), nullable=False, default=0)
    paid = Column(Numeric(12, 2), nullable=False, default=0)
    balance = Column(Numeric(12, 2), nullable=False, default=0)

    profile = relationship("FeeProfile", back_populates="lines")
