"""Fee transaction: append-only record of one payment against one category."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, Date, DateTime, ForeignKey, Index, Numeric, String, Uuid
from sqlalchemy.orm import relationship

from rollcall.db.session import Base


class FeeTransaction(Base):
    """Never updated or deleted. Sum of amounts per (fee_id, fee_type) equals that line's paid."""

    __tablename__ = "fee_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_fee_transaction_amount"),
        Index("ix_fee_transactions_fee_type", "fee_id", "fee_type"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    fee_id = Column(Uuid, ForeignKey("fee_profiles.student_id", ondelete="RESTRICT"), nullable=False)
    fee_type = Column(String(20), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    date = Column(Date, nullable=False)
    recorded_by = Column(String(255), nullable=False)
    timestamp = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    profile = relationship("FeeProfile")
