"""Pure fee-ledger arithmetic: reconciliation, payment application, status and dashboard rollup.

Nothing here touches the database. Amounts are Decimals rounded to cents.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, Mapping, Optional, Tuple

from rollcall.core.enums import FeeCategory, FeeStatus
from rollcall.core.exceptions import InvalidTotalError, OverpaymentError, ValidationError

CATEGORIES: Tuple[str, ...] = tuple(c.value for c in FeeCategory)
ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(val) -> Decimal:
    if val is None:
        return ZERO
    d = val if isinstance(val, Decimal) else Decimal(str(val))
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class LedgerLine:
    total: Decimal
    paid: Decimal
    balance: Decimal


@dataclass(frozen=True)
class Ledger:
    lines: Dict[str, LedgerLine]
    total_amount: Decimal
    total_paid: Decimal
    total_balance: Decimal

    def pairs(self) -> Dict[str, Tuple[Decimal, Decimal]]:
        return {cat: (line.total, line.paid) for cat, line in self.lines.items()}


def reconcile(pairs: Mapping[str, Tuple[Decimal, Decimal]]) -> Ledger:
    """
    Recompute every balance and aggregate from (total, paid) per category.

    Categories missing from ``pairs`` come back as zeros. Idempotent:
    reconcile(reconcile(x).pairs()) == reconcile(x).
    """
    lines: Dict[str, LedgerLine] = {}
    for cat in CATEGORIES:
        total, paid = pairs.get(cat, (ZERO, ZERO))
        total, paid = to_money(total), to_money(paid)
        lines[cat] = LedgerLine(total=total, paid=paid, balance=total - paid)
    total_amount = sum((line.total for line in lines.values()), ZERO)
    total_paid = sum((line.paid for line in lines.values()), ZERO)
    return Ledger(
        lines=lines,
        total_amount=total_amount,
        total_paid=total_paid,
        total_balance=total_amount - total_paid,
    )


def apply_payment(ledger: Ledger, category: str, amount) -> Ledger:
    if category not in CATEGORIES:
        raise ValidationError(f"Unknown fee category: {category}")
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    line = ledger.lines[category]
    if amount > line.balance:
        raise OverpaymentError(
            f"Payment of {amount} exceeds the remaining {category} balance of {line.balance}"
        )
    pairs = ledger.pairs()
    pairs[category] = (line.total, line.paid + amount)
    return reconcile(pairs)


def apply_totals(ledger: Ledger, totals: Mapping[str, Decimal]) -> Ledger:
    """Set new category totals; unspecified categories and all paid values are kept."""
    pairs = ledger.pairs()
    for category, new_total in totals.items():
        if category not in CATEGORIES:
            raise ValidationError(f"Unknown fee category: {category}")
        new_total = to_money(new_total)
        if new_total < ZERO:
            raise ValidationError(f"{category} total cannot be negative")
        _, paid = pairs[category]
        if new_total < paid:
            raise InvalidTotalError(
                f"{category} total {new_total} is below the {paid} already paid"
            )
        pairs[category] = (new_total, paid)
    return reconcile(pairs)


def fee_status(amount, paid, balance) -> Optional[FeeStatus]:
    """paid / partial / unpaid, or None for a profile with nothing owed."""
    amount, paid, balance = to_money(amount), to_money(paid), to_money(balance)
    if amount <= ZERO:
        return None
    if balance <= ZERO:
        return FeeStatus.paid
    if paid > ZERO:
        return FeeStatus.partial
    return FeeStatus.unpaid


@dataclass
class DashboardTotals:
    total_amount: Decimal = ZERO
    total_paid: Decimal = ZERO
    total_balance: Decimal = ZERO
    paid_count: int = 0
    partial_count: int = 0
    unpaid_count: int = 0
    profile_count: int = 0
    by_category: Dict[str, LedgerLine] = field(default_factory=dict)


def summarize(ledgers: Iterable[Ledger]) -> DashboardTotals:
    """Roll profiles up into dashboard figures. Recomputed on every call."""
    out = DashboardTotals()
    cat_pairs: Dict[str, Tuple[Decimal, Decimal]] = {cat: (ZERO, ZERO) for cat in CATEGORIES}
    for ledger in ledgers:
        out.profile_count += 1
        out.total_amount += ledger.total_amount
        out.total_paid += ledger.total_paid
        out.total_balance += ledger.total_balance
        status = fee_status(ledger.total_amount, ledger.total_paid, ledger.total_balance)
        if status == FeeStatus.paid:
            out.paid_count += 1
        elif status == FeeStatus.partial:
            out.partial_count += 1
        elif status == FeeStatus.unpaid:
            out.unpaid_count += 1
        for cat, line in ledger.lines.items():
            total, paid = cat_pairs[cat]
            cat_pairs[cat] = (total + line.total, paid + line.paid)
    out.by_category = reconcile(cat_pairs).lines
    return out
