"""Risk tier classification and monthly snapshot derivation"""

from datetime import date
from typing import Dict, Iterable, List

from school_ledger.domain.balance import compute_account_snapshot, is_overdue
from school_ledger.domain.models import Debt, Payment, RiskSnapshot, RiskTier
from school_ledger.utils.date_utils import days_between


def classify_by_overdue_count(overdue_count: int) -> RiskTier:
    """
    Tier by number of overdue obligations (account statement call site).

    - 0:   low
    - 1-2: medium
    - 3+:  high
    """
    if overdue_count <= 0:
        return RiskTier.LOW
    elif overdue_count <= 2:
        return RiskTier.MEDIUM
    else:
        return RiskTier.HIGH


# Statement pages and the request layer call it by this name
classify_risk = classify_by_overdue_count


def classify_by_days_overdue(days_overdue: int) -> RiskTier:
    """
    Tier by days past due (reminder messaging and monthly snapshots).

    - <= 0:  low (not yet due)
    - 1-15:  medium (recently overdue)
    - > 15:  high
    """
    if days_overdue <= 0:
        return RiskTier.LOW
    elif days_overdue <= 15:
        return RiskTier.MEDIUM
    else:
        return RiskTier.HIGH


def max_days_overdue(debts: Iterable[Debt], today: date) -> int:
    """Days past due of the oldest overdue debt, 0 if none"""
    days = [days_between(d.due_date, today) for d in debts if is_overdue(d, today)]
    return max(days) if days else 0


def count_on_time_payments(debts: Iterable[Debt], payments: Iterable[Payment]) -> int:
    """Linked payments made on or before their debt's due date"""
    due_by_debt: Dict[int, date] = {d.id: d.due_date for d in debts}
    return sum(
        1
        for p in payments
        if p.debt_id in due_by_debt and p.payment_date <= due_by_debt[p.debt_id]
    )


def build_risk_snapshot(
    student_id: int,
    month: int,
    year: int,
    debts: List[Debt],
    payments: List[Payment],
    today: date,
) -> RiskSnapshot:
    """Derive the immutable risk record for one student and period"""
    account = compute_account_snapshot(debts, payments)
    overdue_count = sum(1 for d in debts if is_overdue(d, today))

    return RiskSnapshot(
        student_id=student_id,
        month=month,
        year=year,
        risk_tier=classify_by_days_overdue(max_days_overdue(debts, today)),
        total_debt=account.total_debt,
        total_paid=account.total_paid,
        overdue_count=overdue_count,
        on_time_payments=count_on_time_payments(debts, payments),
    )
