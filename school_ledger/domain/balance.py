"""Balance and late-fee calculator - pure functions over one student's records"""

from datetime import date, datetime
from decimal import Decimal
from typing import Collection, Iterable, Optional

from school_ledger.domain.models import (
    AccountSnapshot,
    Debt,
    DebtStatus,
    LateFeeBreakdown,
    LateFeePolicy,
    LateFeeTotals,
    Payment,
)
from school_ledger.domain.money import ZERO, quantize, safe_amount
from school_ledger.utils.date_utils import as_date

# Statuses that count toward "what must I pay now"
_PENDING_STATUSES = {DebtStatus.PENDING, DebtStatus.OVERDUE}


def compute_account_snapshot(
    debts: Optional[Iterable[Debt]],
    payments: Optional[Iterable[Payment]],
) -> AccountSnapshot:
    """
    Derive totals and balance for one student.

    Balance policy:
    - Any non-paid debt: balance = -total_debt, even if unapplied payments exist
      (they must be allocated first, they never cancel an unrelated open debt)
    - No non-paid debt: balance = unapplied payment total (credit)

    pending_debt_total only sums debts still in pending (or legacy overdue) status;
    partial debts are in total_debt but not in pending_debt_total.
    """
    debts = list(debts or [])
    payments = list(payments or [])

    open_debts = [d for d in debts if d.status != DebtStatus.PAID]

    total_debt = sum((safe_amount(d.amount) for d in open_debts), ZERO)
    pending_debt_total = sum(
        (safe_amount(d.amount) for d in open_debts if d.status in _PENDING_STATUSES), ZERO
    )
    total_paid = sum((safe_amount(p.amount) for p in payments), ZERO)
    unapplied_total = sum((safe_amount(p.amount) for p in payments if not p.is_linked), ZERO)

    if open_debts:
        balance = -total_debt
    else:
        balance = unapplied_total

    return AccountSnapshot(
        total_debt=total_debt,
        total_paid=total_paid,
        balance=balance,
        pending_debt_total=pending_debt_total,
        unapplied_total=unapplied_total,
    )


def is_overdue(debt: Debt, now: date | datetime) -> bool:
    """Due date strictly before today and not settled"""
    return debt.status != DebtStatus.PAID and debt.due_date < as_date(now)


def apply_late_fee(
    debt: Debt,
    policy: LateFeePolicy,
    now: date | datetime,
    exempt: bool = False,
) -> LateFeeBreakdown:
    """
    Compute surcharge for a single debt.

    fee = principal * surcharge_percent / 100, only when the policy is enabled,
    the debt is overdue and unpaid, and its concept is not exempt.
    """
    principal = safe_amount(debt.amount)
    fee = ZERO

    if policy.enabled and not exempt and is_overdue(debt, now):
        fee = quantize(principal * Decimal(policy.surcharge_percent) / Decimal(100))

    return LateFeeBreakdown(principal=principal, fee=fee, total=principal + fee)


def total_with_late_fees(
    debts: Iterable[Debt],
    policy: LateFeePolicy,
    now: date | datetime,
    exempt_concepts: Collection[int] = (),
) -> LateFeeTotals:
    """Aggregate principal and surcharges over a set of debts"""
    total_principal = ZERO
    total_fees = ZERO
    debts_with_fee = 0

    for debt in debts:
        breakdown = apply_late_fee(debt, policy, now, exempt=debt.concept_id in exempt_concepts)
        total_principal += breakdown.principal
        total_fees += breakdown.fee
        if breakdown.fee > 0:
            debts_with_fee += 1

    return LateFeeTotals(
        total_principal=total_principal,
        total_fees=total_fees,
        total=total_principal + total_fees,
        debts_with_fee=debts_with_fee,
    )


def count_overdue(debts: Iterable[Debt], now: date | datetime) -> int:
    return sum(1 for d in debts if is_overdue(d, now))


def compliance_percent(debts: Iterable[Debt], payments: Iterable[Payment]) -> int:
    """
    Share of all historical debt (paid or not) covered by linked payments.

    Returns 100 when the student has never been billed.
    """
    billed = sum((safe_amount(d.amount) for d in debts), ZERO)
    if billed <= 0:
        return 100

    applied = sum((safe_amount(p.amount) for p in payments if p.is_linked), ZERO)
    return int((applied / billed * 100).to_integral_value())


def last_payment_date(payments: Iterable[Payment]) -> Optional[date]:
    dates = [p.payment_date for p in payments]
    return max(dates) if dates else None
