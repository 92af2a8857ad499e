"""Fees schemas. Every fee representation carries schema_version."""

import datetime as dt
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, condecimal

from rollcall.core.enums import FeeCategory, FeeStatus

FEE_SCHEMA_VERSION = 1

# Fits Numeric(12, 2); more precision is rejected rather than rounded
Money = condecimal(ge=0, max_digits=12, decimal_places=2)


class FeeLine(BaseModel):
    total: Decimal
    paid: Decimal
    balance: Decimal


class FeeProfileResponse(BaseModel):
    schema_version: int = FEE_SCHEMA_VERSION
    id: UUID  # same as student_id
    student_id: UUID
    student_name: str
    register_no: str
    department_id: UUID
    department_name: Optional[str] = None
    class_id: UUID
    class_name: Optional[str] = None
    exists: bool = True
    fees: Dict[FeeCategory, FeeLine]
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal
    status: Optional[FeeStatus] = None
    recorded_by: Optional[str] = None
    updated_at: Optional[dt.datetime] = None
    version: Optional[int] = None


class FeeTotalsUpdate(BaseModel):
    """Partial update: only the listed categories change their total."""

    fees: Dict[FeeCategory, Money] = Field(..., min_length=1)


class PaymentCreate(BaseModel):
    fee_type: FeeCategory
    amount: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    date: Optional[dt.date] = None  # defaults to today


class TransactionResponse(BaseModel):
    schema_version: int = FEE_SCHEMA_VERSION
    id: UUID
    fee_id: UUID
    fee_type: FeeCategory
    amount: Decimal
    date: dt.date
    recorded_by: str
    timestamp: dt.datetime

    class Config:
        from_attributes = True


class PaymentResponse(BaseModel):
    transaction: TransactionResponse
    profile: FeeProfileResponse


class FeeDashboardResponse(BaseModel):
    schema_version: int = FEE_SCHEMA_VERSION
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal
    paid_count: int
    partial_count: int
    unpaid_count: int
    profile_count: int
    by_category: Dict[FeeCategory, FeeLine]


class ClassFeeBreakdown(BaseModel):
    class_id: UUID
    class_name: str
    student_count: int
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal


class DepartmentFeeBreakdown(BaseModel):
    department_id: UUID
    department_name: str
    student_count: int
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal
    classes: List[ClassFeeBreakdown]


class FeeAuditResponse(BaseModel):
    student_id: UUID
    clean: bool
    violations: List[str]
