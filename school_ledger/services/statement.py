"""Account statement assembly for the request layer"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from school_ledger.config import settings
from school_ledger.domain.balance import (
    apply_late_fee,
    compliance_percent,
    compute_account_snapshot,
    count_overdue,
    is_overdue,
    last_payment_date,
    total_with_late_fees,
)
from school_ledger.domain.exceptions import ResourceUnavailableError
from school_ledger.domain.models import (
    Debt,
    LateFeeBreakdown,
    LateFeePolicy,
    LateFeeTotals,
    Payment,
    RiskTier,
    Student,
)
from school_ledger.domain.money import parse_amount
from school_ledger.domain.risk import classify_by_overdue_count
from school_ledger.infrastructure.database.repositories import (
    DebtRepository,
    DirectoryRepository,
    PaymentRepository,
    SettingsRepository,
    to_debt,
    to_payment,
)
from school_ledger.utils.date_utils import utcnow


@dataclass
class DebtLine:
    debt: Debt
    late_fee: LateFeeBreakdown
    is_overdue: bool


@dataclass
class AccountStatement:
    student: Student
    debts: List[DebtLine]
    payments: List[Payment]
    total_debt: Decimal
    total_paid: Decimal
    balance: Decimal
    pending_debt_total: Decimal
    unapplied_total: Decimal
    late_fees: LateFeeTotals
    overdue_count: int
    risk_tier: RiskTier
    compliance_percent: int
    last_payment_date: Optional[date]
    policy: LateFeePolicy = field(default_factory=LateFeePolicy)


def default_late_fee_policy() -> LateFeePolicy:
    return LateFeePolicy(
        enabled=settings.late_fee_default_enabled,
        surcharge_percent=parse_amount(settings.late_fee_default_percent),
    )


class StatementService:
    def __init__(self, db: Session):
        self.debts = DebtRepository(db)
        self.payments = PaymentRepository(db)
        self.directory = DirectoryRepository(db)
        self.settings = SettingsRepository(db)

    def build(self, student_id: int, now: Optional[datetime] = None) -> AccountStatement:
        """
        Assemble the account statement for one student.

        Raises:
            ResourceUnavailableError: Student does not exist
        """
        now = now or utcnow()

        student = self.directory.get_student(student_id)
        if student is None:
            raise ResourceUnavailableError("student", student_id)

        debts = [to_debt(r) for r in self.debts.list_by_student(student_id)]
        payments = [to_payment(r) for r in self.payments.list_by_student(student_id)]
        policy = self.settings.get_late_fee_policy(default_late_fee_policy())
        exempt = set(self.directory.exempt_concept_ids())

        account = compute_account_snapshot(debts, payments)
        open_debts = [d for d in debts if not d.is_paid]
        overdue_count = count_overdue(open_debts, now)

        lines = [
            DebtLine(
                debt=d,
                late_fee=apply_late_fee(d, policy, now, exempt=d.concept_id in exempt),
                is_overdue=is_overdue(d, now),
            )
            for d in debts
        ]

        return AccountStatement(
            student=student,
            debts=lines,
            payments=payments,
            total_debt=account.total_debt,
            total_paid=account.total_paid,
            balance=account.balance,
            pending_debt_total=account.pending_debt_total,
            unapplied_total=account.unapplied_total,
            late_fees=total_with_late_fees(open_debts, policy, now, exempt_concepts=exempt),
            overdue_count=overdue_count,
            risk_tier=classify_by_overdue_count(overdue_count),
            compliance_percent=compliance_percent(debts, payments),
            last_payment_date=last_payment_date(payments),
            policy=policy,
        )
