"""Fees service: fee profiles, payments, transaction history, dashboard and audit.

Every write goes through ``_write_profile``: the profile row is locked and re-read from the
database, mutated through the pure ledger functions, and committed together with any
transaction rows. A version conflict rolls back and retries against fresh state.
"""

import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from rollcall.api.v1.roster.service import StudentRef, get_student_ref, list_student_refs
from rollcall.auth.rbac import ensure_class_access, scoped_class_id
from rollcall.auth.schemas import CurrentUser
from rollcall.core.config import settings
from rollcall.core.enums import FeeCategory, FeeStatus
from rollcall.core.events import track_mutation
from rollcall.core.exceptions import NotFoundError, PersistenceError, ServiceError, ValidationError
from rollcall.core.models import FeeLedgerLine, FeeProfile, FeeTransaction

from .ledger import (
    CATEGORIES,
    ZERO,
    Ledger,
    apply_payment,
    apply_totals,
    fee_status,
    reconcile,
    summarize,
    to_money,
)
from .schemas import (
    ClassFeeBreakdown,
    DepartmentFeeBreakdown,
    FeeAuditResponse,
    FeeDashboardResponse,
    FeeLine,
    FeeProfileResponse,
    FeeTotalsUpdate,
    PaymentCreate,
    PaymentResponse,
    TransactionResponse,
)

logger = logging.getLogger(__name__)

FEE_EXPORT_HEADERS = [
    "Register No",
    "Student",
    "Department",
    "Class",
    *[f"{c.title()} Balance" for c in CATEGORIES],
    "Total Amount",
    "Total Paid",
    "Total Balance",
    "Status",
]


def _ledger_of(profile: FeeProfile) -> Ledger:
    return reconcile({line.category: (line.total, line.paid) for line in profile.lines})


def _new_profile(student_id: UUID) -> FeeProfile:
    return FeeProfile(
        student_id=student_id,
        total_amount=ZERO,
        total_paid=ZERO,
        total_balance=ZERO,
        lines=[FeeLedgerLine(category=cat, total=ZERO, paid=ZERO, balance=ZERO) for cat in CATEGORIES],
    )


def _write_ledger(profile: FeeProfile, ledger: Ledger, actor: str) -> None:
    rows = {line.category: line for line in profile.lines}
    for cat, line in ledger.lines.items():
        row = rows.get(cat)
        if row is None:
            row = FeeLedgerLine(category=cat)
            profile.lines.append(row)
        row.total = line.total
        row.paid = line.paid
        row.balance = line.balance
    profile.total_amount = ledger.total_amount
    profile.total_paid = ledger.total_paid
    profile.total_balance = ledger.total_balance
    profile.recorded_by = actor
    profile.updated_at = datetime.now(timezone.utc)


def _profile_to_response(profile: FeeProfile, ref: StudentRef) -> FeeProfileResponse:
    stored = {line.category: line for line in profile.lines}
    fees: Dict[FeeCategory, FeeLine] = {}
    for cat in CATEGORIES:
        line = stored.get(cat)
        fees[FeeCategory(cat)] = FeeLine(
            total=to_money(line.total if line else None),
            paid=to_money(line.paid if line else None),
            balance=to_money(line.balance if line else None),
        )
    return FeeProfileResponse(
        id=ref.id,
        student_id=ref.id,
        student_name=ref.name,
        register_no=ref.register_no,
        department_id=ref.department_id,
        department_name=ref.department_name,
        class_id=ref.class_id,
        class_name=ref.class_name,
        exists=True,
        fees=fees,
        total_amount=to_money(profile.total_amount),
        total_paid=to_money(profile.total_paid),
        total_balance=to_money(profile.total_balance),
        status=fee_status(profile.total_amount, profile.total_paid, profile.total_balance),
        recorded_by=profile.recorded_by,
        updated_at=profile.updated_at,
        version=profile.version,
    )


def _empty_profile_response(ref: StudentRef) -> FeeProfileResponse:
    zero = FeeLine(total=ZERO, paid=ZERO, balance=ZERO)
    return FeeProfileResponse(
        id=ref.id,
        student_id=ref.id,
        student_name=ref.name,
        register_no=ref.register_no,
        department_id=ref.department_id,
        department_name=ref.department_name,
        class_id=ref.class_id,
        class_name=ref.class_name,
        exists=False,
        fees={FeeCategory(cat): zero for cat in CATEGORIES},
        total_amount=ZERO,
        total_paid=ZERO,
        total_balance=ZERO,
    )


async def _student_in_scope(db: AsyncSession, student_id: UUID, current_user: CurrentUser) -> StudentRef:
    ref = await get_student_ref(db, student_id)
    ensure_class_access(current_user, ref.class_id)
    return ref


async def _lock_profile(db: AsyncSession, student_id: UUID) -> Optional[FeeProfile]:
    """Read the committed profile, bypassing whatever the session has cached."""
    stmt = (
        select(FeeProfile)
        .where(FeeProfile.student_id == student_id)
        .options(selectinload(FeeProfile.lines))
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return (await db.execute(stmt)).scalar_one_or_none()


async def _write_profile(
    db: AsyncSession,
    student_id: UUID,
    operation: str,
    actor: str,
    mutate: Callable[[AsyncSession, FeeProfile], object],
    create_missing: bool = False,
) -> Tuple[FeeProfile, object]:
    attempts = settings.payment_max_retries
    async with track_mutation(operation, str(student_id), actor=actor) as event:
        attempt = 0
        while True:
            attempt += 1
            try:
                profile = await _lock_profile(db, student_id)
                if profile is None:
                    if not create_missing:
                        raise NotFoundError("Fee record not found for this student")
                    profile = _new_profile(student_id)
                    db.add(profile)
                result = mutate(db, profile)
                await db.commit()
            except (StaleDataError, IntegrityError) as e:
                # Another writer got there first (version bump or concurrent insert)
                await db.rollback()
                logger.warning(
                    "%s %s: concurrent update, attempt %d of %d", operation, student_id, attempt, attempts
                )
                if attempt >= attempts:
                    raise PersistenceError("Fee record is being updated by someone else. Please retry.") from e
                continue
            except ServiceError:
                await db.rollback()
                raise
            except SQLAlchemyError as e:
                await db.rollback()
                logger.error("%s %s: store rejected the write", operation, student_id, exc_info=True)
                raise PersistenceError("Failed to save fee record") from e
            event.details["version"] = str(profile.version)
            return profile, result


# --- Fee profiles ---
async def get_fee_profile(
    db: AsyncSession,
    student_id: UUID,
    current_user: CurrentUser,
) -> FeeProfileResponse:
    """Stored profile, or an all-zero profile with exists=False when nothing was recorded yet."""
    ref = await _student_in_scope(db, student_id, current_user)
    profile = (
        await db.execute(
            select(FeeProfile)
            .where(FeeProfile.student_id == student_id)
            .options(selectinload(FeeProfile.lines))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if profile is None:
        return _empty_profile_response(ref)
    return _profile_to_response(profile, ref)


async def update_fee_totals(
    db: AsyncSession,
    student_id: UUID,
    payload: FeeTotalsUpdate,
    current_user: CurrentUser,
) -> FeeProfileResponse:
    """Set category totals; creates the profile on first edit. Paid amounts are never touched."""
    ref = await _student_in_scope(db, student_id, current_user)
    totals = {cat.value: amount for cat, amount in payload.fees.items()}

    def _edit(session: AsyncSession, profile: FeeProfile) -> None:
        ledger = apply_totals(_ledger_of(profile), totals)
        _write_ledger(profile, ledger, current_user.name)

    profile, _ = await _write_profile(
        db, ref.id, "fees.update_totals", current_user.name, _edit, create_missing=True
    )
    logger.info(
        "Fee totals for %s set to %s by %s",
        ref.register_no,
        {k: str(v) for k, v in totals.items()},
        current_user.name,
    )
    return _profile_to_response(profile, ref)


async def record_payment(
    db: AsyncSession,
    student_id: UUID,
    payload: PaymentCreate,
    current_user: CurrentUser,
) -> PaymentResponse:
    """Apply one payment to one category and append its transaction, all or nothing."""
    ref = await _student_in_scope(db, student_id, current_user)
    category = payload.fee_type.value
    amount = to_money(payload.amount)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    paid_on = payload.date or date.today()

    def _pay(session: AsyncSession, profile: FeeProfile) -> FeeTransaction:
        ledger = apply_payment(_ledger_of(profile), category, amount)
        _write_ledger(profile, ledger, current_user.name)
        txn = FeeTransaction(
            fee_id=profile.student_id,
            fee_type=category,
            amount=amount,
            date=paid_on,
            recorded_by=current_user.name,
        )
        session.add(txn)
        return txn

    profile, txn = await _write_profile(db, ref.id, "fees.record_payment", current_user.name, _pay)
    logger.info(
        "Payment of %s (%s) recorded for %s by %s", amount, category, ref.register_no, current_user.name
    )
    return PaymentResponse(
        transaction=TransactionResponse.model_validate(txn),
        profile=_profile_to_response(profile, ref),
    )


async def _profiles_in_scope(
    db: AsyncSession,
    current_user: CurrentUser,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    search: Optional[str] = None,
) -> List[Tuple[StudentRef, FeeProfile]]:
    class_id = scoped_class_id(current_user, class_id)
    refs = await list_student_refs(db, department_id=department_id, class_id=class_id, search=search)
    if not refs:
        return []
    result = await db.execute(
        select(FeeProfile)
        .where(FeeProfile.student_id.in_([r.id for r in refs]))
        .options(selectinload(FeeProfile.lines))
        .execution_options(populate_existing=True)
    )
    by_student = {p.student_id: p for p in result.scalars().all()}
    return [(r, by_student[r.id]) for r in refs if r.id in by_student]


async def list_fee_profiles(
    db: AsyncSession,
    current_user: CurrentUser,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
    search: Optional[str] = None,
    status: Optional[FeeStatus] = None,
) -> List[FeeProfileResponse]:
    items = [
        _profile_to_response(profile, ref)
        for ref, profile in await _profiles_in_scope(db, current_user, department_id, class_id, search)
    ]
    if status is not None:
        items = [i for i in items if i.status == status]
    return items


async def fee_dashboard(
    db: AsyncSession,
    current_user: CurrentUser,
    department_id: Optional[UUID] = None,
    class_id: Optional[UUID] = None,
) -> FeeDashboardResponse:
    pairs = await _profiles_in_scope(db, current_user, department_id, class_id)
    totals = summarize(_ledger_of(profile) for _, profile in pairs)
    return FeeDashboardResponse(
        total_amount=totals.total_amount,
        total_paid=totals.total_paid,
        total_balance=totals.total_balance,
        paid_count=totals.paid_count,
        partial_count=totals.partial_count,
        unpaid_count=totals.unpaid_count,
        profile_count=totals.profile_count,
        by_category={
            FeeCategory(cat): FeeLine(total=line.total, paid=line.paid, balance=line.balance)
            for cat, line in totals.by_category.items()
        },
    )


async def fee_breakdown(
    db: AsyncSession,
    current_user: CurrentUser,
    department_id: Optional[UUID] = None,
) -> List[DepartmentFeeBreakdown]:
    """Department -> class rollup of fee totals. Groups without any fee record are left out."""
    pairs = await _profiles_in_scope(db, current_user, department_id=department_id)
    departments: Dict[UUID, DepartmentFeeBreakdown] = {}
    classes: Dict[UUID, ClassFeeBreakdown] = {}
    for ref, profile in pairs:
        amount = to_money(profile.total_amount)
        paid = to_money(profile.total_paid)
        balance = to_money(profile.total_balance)
        dept = departments.get(ref.department_id)
        if dept is None:
            dept = DepartmentFeeBreakdown(
                department_id=ref.department_id,
                department_name=ref.department_name,
                student_count=0,
                total_amount=ZERO,
                total_paid=ZERO,
                total_balance=ZERO,
                classes=[],
            )
            departments[ref.department_id] = dept
        cls = classes.get(ref.class_id)
        if cls is None:
            cls = ClassFeeBreakdown(
                class_id=ref.class_id,
                class_name=ref.class_name,
                student_count=0,
                total_amount=ZERO,
                total_paid=ZERO,
                total_balance=ZERO,
            )
            classes[ref.class_id] = cls
            dept.classes.append(cls)
        for group in (dept, cls):
            group.student_count += 1
            group.total_amount += amount
            group.total_paid += paid
            group.total_balance += balance
    out = sorted(departments.values(), key=lambda d: d.department_name)
    for dept in out:
        dept.classes.sort(key=lambda c: c.class_name)
    return out


# --- Transactions ---
async def list_transactions(
    db: AsyncSession,
    student_id: UUID,
    current_user: CurrentUser,
    category: Optional[FeeCategory] = None,
) -> List[TransactionResponse]:
    """Payment history for one student, newest first."""
    ref = await _student_in_scope(db, student_id, current_user)
    stmt = select(FeeTransaction).where(FeeTransaction.fee_id == ref.id)
    if category is not None:
        stmt = stmt.where(FeeTransaction.fee_type == category.value)
    stmt = stmt.order_by(FeeTransaction.timestamp.desc(), FeeTransaction.date.desc())
    result = await db.execute(stmt)
    return [TransactionResponse.model_validate(t) for t in result.scalars().all()]


async def audit_fee_profile(
    db: AsyncSession,
    student_id: UUID,
    current_user: CurrentUser,
) -> FeeAuditResponse:
    """Check a stored profile against its ledger arithmetic and its transaction log."""
    ref = await _student_in_scope(db, student_id, current_user)
    profile = (
        await db.execute(
            select(FeeProfile)
            .where(FeeProfile.student_id == ref.id)
            .options(selectinload(FeeProfile.lines))
            .execution_options(populate_existing=True)
        )
    ).scalar_one_or_none()
    if profile is None:
        raise NotFoundError("Fee record not found for this student")

    violations: List[str] = []
    stored = {line.category: line for line in profile.lines}
    for cat in CATEGORIES:
        if cat not in stored:
            violations.append(f"{cat}: ledger line missing")
            continue
        line = stored[cat]
        total, paid, balance = to_money(line.total), to_money(line.paid), to_money(line.balance)
        if total < ZERO or paid < ZERO:
            violations.append(f"{cat}: negative amount (total {total}, paid {paid})")
        if balance != total - paid:
            violations.append(f"{cat}: balance {balance} != total {total} - paid {paid}")

    expected = _ledger_of(profile)
    for label, actual, want in (
        ("totalAmount", profile.total_amount, expected.total_amount),
        ("totalPaid", profile.total_paid, expected.total_paid),
    ):
        if to_money(actual) != want:
            violations.append(f"{label} {to_money(actual)} != sum of categories {want}")
    if to_money(profile.total_balance) != to_money(profile.total_amount) - to_money(profile.total_paid):
        violations.append(
            f"totalBalance {to_money(profile.total_balance)} != totalAmount - totalPaid"
        )

    sums = await db.execute(
        select(FeeTransaction.fee_type, func.sum(FeeTransaction.amount))
        .where(FeeTransaction.fee_id == ref.id)
        .group_by(FeeTransaction.fee_type)
    )
    logged = {fee_type: to_money(total) for fee_type, total in sums.all()}
    for cat in CATEGORIES:
        paid = to_money(stored[cat].paid) if cat in stored else ZERO
        if logged.get(cat, ZERO) != paid:
            violations.append(f"{cat}: transactions sum to {logged.get(cat, ZERO)} but paid is {paid}")

    if violations:
        logger.warning("Fee audit for %s found %d violation(s)", ref.register_no, len(violations))
    return FeeAuditResponse(student_id=ref.id, clean=not violations, violations=violations)


def fee_export_rows(items: List[FeeProfileResponse]) -> List[list]:
    rows = []
    for item in items:
        rows.append(
            [
                item.register_no,
                item.student_name,
                item.department_name,
                item.class_name,
                *[item.fees[FeeCategory(c)].balance for c in CATEGORIES],
                item.total_amount,
                item.total_paid,
                item.total_balance,
                item.status.value if item.status else "",
            ]
        )
    return rows
