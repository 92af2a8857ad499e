from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select, update

from rollcall.api.v1.fees import service
from rollcall.api.v1.fees.schemas import FeeTotalsUpdate, PaymentCreate
from rollcall.core.config import settings
from rollcall.core.enums import FeeCategory, FeeStatus, MutationState, StaffRole
from rollcall.core.events import error_emitter
from rollcall.core.exceptions import (
    InvalidTotalError,
    NotFoundError,
    OverpaymentError,
    PermissionDeniedError,
    PersistenceError,
)
from rollcall.core.models import FeeLedgerLine, FeeProfile, FeeTransaction

from conftest import make_user

D = Decimal
TUITION = FeeCategory.TUITION


def totals(**amounts) -> FeeTotalsUpdate:
    return FeeTotalsUpdate(fees={FeeCategory(k): D(v) for k, v in amounts.items()})


def pay(category: FeeCategory, amount: str) -> PaymentCreate:
    return PaymentCreate(fee_type=category, amount=D(amount))


async def transaction_sum(db, student_id, category: FeeCategory) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(FeeTransaction.amount), 0)).where(
            FeeTransaction.fee_id == student_id, FeeTransaction.fee_type == category.value
        )
    )
    return D(str(result.scalar()))


async def test_missing_profile_reads_as_zero(db_session, roster, admin_user) -> None:
    profile = await service.get_fee_profile(db_session, roster.arun, admin_user)

    assert profile.exists is False
    assert profile.schema_version == 1
    assert profile.total_amount == D("0")
    assert set(profile.fees) == set(FeeCategory)


async def test_unknown_student_is_not_found(db_session, roster, admin_user) -> None:
    with pytest.raises(NotFoundError):
        await service.get_fee_profile(db_session, uuid4(), admin_user)


async def test_first_edit_creates_profile(db_session, roster, admin_user) -> None:
    profile = await service.update_fee_totals(db_session, roster.arun, totals(exam="2000"), admin_user)

    assert profile.exists is True
    assert profile.fees[FeeCategory.EXAM].total == D("2000")
    assert profile.fees[FeeCategory.EXAM].balance == D("2000")
    assert profile.fees[FeeCategory.TUITION].total == D("0")
    assert profile.total_amount == D("2000")
    assert profile.status == FeeStatus.unpaid
    assert profile.recorded_by == "Admin"
    assert profile.version == 1


async def test_payment_settles_tuition(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="10000"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "4000"), admin_user)

    result = await service.record_payment(db_session, roster.arun, pay(TUITION, "6000"), admin_user)

    tuition = result.profile.fees[TUITION]
    assert (tuition.total, tuition.paid, tuition.balance) == (D("10000"), D("10000"), D("0"))
    assert result.profile.status == FeeStatus.paid
    assert result.transaction.amount == D("6000")
    assert result.transaction.fee_type == TUITION
    assert await transaction_sum(db_session, roster.arun, TUITION) == D("10000")

    audit = await service.audit_fee_profile(db_session, roster.arun, admin_user)
    assert audit.clean, audit.violations


async def test_payment_without_profile_is_not_found(db_session, roster, admin_user) -> None:
    with pytest.raises(NotFoundError):
        await service.record_payment(db_session, roster.arun, pay(TUITION, "100"), admin_user)


async def test_overpayment_leaves_store_unchanged(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(hostel="3000"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(FeeCategory.HOSTEL, "1000"), admin_user)

    with pytest.raises(OverpaymentError):
        await service.record_payment(db_session, roster.arun, pay(FeeCategory.HOSTEL, "2500"), admin_user)

    profile = await service.get_fee_profile(db_session, roster.arun, admin_user)
    assert profile.fees[FeeCategory.HOSTEL].paid == D("1000")
    assert profile.fees[FeeCategory.HOSTEL].balance == D("2000")
    history = await service.list_transactions(db_session, roster.arun, admin_user)
    assert len(history) == 1


async def test_total_below_paid_is_rejected(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="10000"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "4000"), admin_user)

    with pytest.raises(InvalidTotalError):
        await service.update_fee_totals(db_session, roster.arun, totals(tuition="3000"), admin_user)

    profile = await service.get_fee_profile(db_session, roster.arun, admin_user)
    assert profile.fees[TUITION].total == D("10000")
    assert profile.fees[TUITION].paid == D("4000")


async def test_edit_keeps_paid_amounts(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="10000", exam="500"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "4000"), admin_user)

    profile = await service.update_fee_totals(db_session, roster.arun, totals(tuition="12000"), admin_user)

    assert profile.fees[TUITION].paid == D("4000")
    assert profile.fees[TUITION].balance == D("8000")
    assert profile.fees[FeeCategory.EXAM].total == D("500")
    assert profile.total_balance == profile.total_amount - profile.total_paid


async def test_teacher_cannot_touch_other_class(db_session, roster) -> None:
    teacher = make_user(StaffRole.TEACHER, class_id=roster.cse3)
    with pytest.raises(PermissionDeniedError):
        await service.update_fee_totals(db_session, roster.arun, totals(tuition="100"), teacher)
    with pytest.raises(PermissionDeniedError):
        await service.get_fee_profile(db_session, roster.arun, teacher)


async def test_payment_reads_committed_state_not_session_cache(session_factory, roster, admin_user) -> None:
    async with session_factory() as setup:
        await service.update_fee_totals(setup, roster.arun, totals(tuition="1000"), admin_user)

    async with session_factory() as stale:
        # Profile now sits in this session's identity map with balance 1000
        before = await service.get_fee_profile(stale, roster.arun, admin_user)
        assert before.fees[TUITION].balance == D("1000")

        async with session_factory() as other:
            await service.record_payment(other, roster.arun, pay(TUITION, "1000"), admin_user)

        with pytest.raises(OverpaymentError):
            await service.record_payment(stale, roster.arun, pay(TUITION, "1"), admin_user)


async def test_concurrent_payment_is_retried_on_fresh_state(
    session_factory, roster, admin_user, monkeypatch
) -> None:
    async with session_factory() as setup:
        await service.update_fee_totals(setup, roster.arun, totals(tuition="1000"), admin_user)

    original = service._lock_profile
    calls = {"n": 0}

    async def interleaved(db, student_id):
        profile = await original(db, student_id)
        calls["n"] += 1
        if calls["n"] == 1:
            # Another clerk commits a payment between our read and our write
            async with session_factory() as other:
                await service.record_payment(other, student_id, pay(TUITION, "100"), admin_user)
        return profile

    monkeypatch.setattr(service, "_lock_profile", interleaved)

    async with session_factory() as db:
        result = await service.record_payment(db, roster.arun, pay(TUITION, "100"), admin_user)

    assert calls["n"] == 3  # first read, the other clerk's read, our retry
    assert result.profile.fees[TUITION].paid == D("200")
    assert result.profile.fees[TUITION].balance == D("800")
    assert result.profile.version == 3

    async with session_factory() as check:
        assert await transaction_sum(check, roster.arun, TUITION) == D("200")
        audit = await service.audit_fee_profile(check, roster.arun, admin_user)
        assert audit.clean, audit.violations


async def test_conflict_after_last_retry_is_persistence_error(
    session_factory, roster, admin_user, monkeypatch
) -> None:
    async with session_factory() as setup:
        await service.update_fee_totals(setup, roster.arun, totals(tuition="1000"), admin_user)

    original = service._lock_profile
    calls = {"n": 0}

    async def interleaved(db, student_id):
        profile = await original(db, student_id)
        calls["n"] += 1
        if calls["n"] == 1:
            async with session_factory() as other:
                await service.record_payment(other, student_id, pay(TUITION, "300"), admin_user)
        return profile

    monkeypatch.setattr(service, "_lock_profile", interleaved)
    monkeypatch.setattr(settings, "payment_max_retries", 1)
    events = []
    unsubscribe = error_emitter.subscribe(events.append)
    try:
        async with session_factory() as db:
            with pytest.raises(PersistenceError):
                await service.record_payment(db, roster.arun, pay(TUITION, "100"), admin_user)
    finally:
        unsubscribe()

    assert events and events[-1].state == MutationState.FAILED
    assert events[-1].operation == "fees.record_payment"
    async with session_factory() as check:
        profile = await service.get_fee_profile(check, roster.arun, admin_user)
        assert profile.fees[TUITION].paid == D("300")
        assert await transaction_sum(check, roster.arun, TUITION) == D("300")


async def test_list_search_and_status_filter(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="1000"), admin_user)
    await service.update_fee_totals(db_session, roster.bala, totals(tuition="1000"), admin_user)
    await service.record_payment(db_session, roster.bala, pay(TUITION, "1000"), admin_user)
    await service.update_fee_totals(db_session, roster.farah, totals(exam="400"), admin_user)

    everyone = await service.list_fee_profiles(db_session, admin_user)
    assert [p.register_no for p in everyone] == ["CSE2A01", "CSE2A02", "MBA101"]

    paid = await service.list_fee_profiles(db_session, admin_user, status=FeeStatus.paid)
    assert [p.student_name for p in paid] == ["Bala"]

    found = await service.list_fee_profiles(db_session, admin_user, search="mba1")
    assert [p.student_name for p in found] == ["Farah"]

    in_mba = await service.list_fee_profiles(db_session, admin_user, department_id=roster.mba)
    assert [p.student_name for p in in_mba] == ["Farah"]


async def test_teacher_list_is_scoped_to_own_class(db_session, roster, admin_user, teacher_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="1000"), admin_user)
    await service.update_fee_totals(db_session, roster.deepa, totals(tuition="1000"), admin_user)

    listed = await service.list_fee_profiles(db_session, teacher_user)

    assert [p.student_name for p in listed] == ["Arun"]
    with pytest.raises(PermissionDeniedError):
        await service.list_fee_profiles(db_session, teacher_user, class_id=roster.cse3)


async def test_dashboard_and_breakdown(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="1000"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "1000"), admin_user)
    await service.update_fee_totals(db_session, roster.bala, totals(tuition="1000"), admin_user)
    await service.record_payment(db_session, roster.bala, pay(TUITION, "500"), admin_user)
    await service.update_fee_totals(db_session, roster.farah, totals(tuition="1000"), admin_user)

    dashboard = await service.fee_dashboard(db_session, admin_user)
    assert (dashboard.paid_count, dashboard.partial_count, dashboard.unpaid_count) == (1, 1, 1)
    assert dashboard.total_balance == D("1500")
    assert dashboard.total_paid == D("1500")
    assert dashboard.by_category[TUITION].total == D("3000")

    breakdown = await service.fee_breakdown(db_session, admin_user)
    assert [d.department_name for d in breakdown] == [
        "Computer Science and Engineering",
        "Master of Business Administration",
    ]
    cse = breakdown[0]
    assert cse.student_count == 2
    assert cse.total_paid == D("1500")
    # III-A has no fee records and is left out
    assert [c.class_name for c in cse.classes] == ["II-A"]


async def test_transactions_newest_first_and_filtered(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="1000", exam="300"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "100"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(FeeCategory.EXAM, "300"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "200"), admin_user)

    history = await service.list_transactions(db_session, roster.arun, admin_user)
    assert [t.amount for t in history] == [D("200"), D("300"), D("100")]

    tuition_only = await service.list_transactions(db_session, roster.arun, admin_user, TUITION)
    assert [t.amount for t in tuition_only] == [D("200"), D("100")]


async def test_audit_reports_tampered_balance(db_session, roster, admin_user) -> None:
    await service.update_fee_totals(db_session, roster.arun, totals(tuition="1000"), admin_user)
    await service.record_payment(db_session, roster.arun, pay(TUITION, "400"), admin_user)
    await db_session.execute(
        update(FeeLedgerLine)
        .where(FeeLedgerLine.fee_id == roster.arun, FeeLedgerLine.category == "tuition")
        .values(balance=D("999"))
        .execution_options(synchronize_session=False)
    )
    await db_session.execute(
        update(FeeProfile)
        .where(FeeProfile.student_id == roster.arun)
        .values(total_paid=D("0"))
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()

    audit = await service.audit_fee_profile(db_session, roster.arun, admin_user)

    assert not audit.clean
    joined = " | ".join(audit.violations)
    assert "tuition: balance" in joined
    assert "totalPaid" in joined


async def test_audit_without_profile_is_not_found(db_session, roster, admin_user) -> None:
    with pytest.raises(NotFoundError):
        await service.audit_fee_profile(db_session, roster.arun, admin_user)
