"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union

from school_ledger.domain.exceptions import InvalidDebtTransitionError


class DebtStatus(str, Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"  # legacy: a pending debt past its due date


class PaymentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


class RiskTier(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Methods settled at the counter or by the card processor
AUTO_CONFIRMED_METHODS = {"cash", "card"}

OPEN_DEBT_STATUSES = {DebtStatus.PENDING, DebtStatus.OVERDUE, DebtStatus.PARTIAL}

_ALLOWED_TRANSITIONS = {
    DebtStatus.PENDING: {DebtStatus.PARTIAL, DebtStatus.PAID, DebtStatus.OVERDUE},
    DebtStatus.OVERDUE: {DebtStatus.PARTIAL, DebtStatus.PAID},
    DebtStatus.PARTIAL: {DebtStatus.PAID},
    DebtStatus.PAID: set(),
}


def payment_status_for_method(method: str) -> PaymentStatus:
    """Cash and card are confirmed on receipt; transfers wait for manual confirmation"""
    if method.strip().lower() in AUTO_CONFIRMED_METHODS:
        return PaymentStatus.CONFIRMED
    return PaymentStatus.PENDING


@dataclass
class Debt:
    """Billable obligation owed by a student for a payment concept"""

    id: int
    student_id: int
    concept_id: int
    amount: Decimal
    due_date: date
    status: DebtStatus
    created_at: datetime

    @property
    def is_paid(self) -> bool:
        return self.status == DebtStatus.PAID

    def advance(self, new_status: DebtStatus) -> None:
        """Move along pending -> partial -> paid; never back out of paid"""
        if new_status == self.status:
            return
        if new_status not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidDebtTransitionError(
                f"Debt {self.id} cannot move from {self.status.value} to {new_status.value}"
            )
        self.status = new_status


@dataclass
class Payment:
    """Funds received for a student, optionally linked to the debt it settles"""

    id: int
    student_id: int
    concept_id: int
    amount: Decimal
    payment_date: date
    method: str
    status: PaymentStatus
    debt_id: Optional[int] = None

    @property
    def is_linked(self) -> bool:
        return self.debt_id is not None


@dataclass
class PaymentConcept:
    id: int
    name: str
    late_fee_exempt: bool = False


@dataclass
class Student:
    id: int
    full_name: str


@dataclass
class Contact:
    """Responsible party (parent/guardian) for a student"""

    id: int
    student_id: int
    name: str
    email: Optional[str] = None


@dataclass
class LateFeePolicy:
    """Institution-level surcharge configuration"""

    enabled: bool = False
    surcharge_percent: Decimal = Decimal("10")


@dataclass
class LateFeeBreakdown:
    principal: Decimal
    fee: Decimal
    total: Decimal


@dataclass
class LateFeeTotals:
    total_principal: Decimal
    total_fees: Decimal
    total: Decimal
    debts_with_fee: int


@dataclass
class AccountSnapshot:
    """Derived balances for one student (negative balance = amount owed)"""

    total_debt: Decimal
    total_paid: Decimal
    balance: Decimal
    pending_debt_total: Decimal
    unapplied_total: Decimal


@dataclass
class RiskSnapshot:
    """Point-in-time risk record for one student and period"""

    student_id: int
    month: int
    year: int
    risk_tier: RiskTier
    total_debt: Decimal
    total_paid: Decimal
    overdue_count: int
    on_time_payments: int


@dataclass
class Applied:
    """Payment linked to a debt during an allocation pass"""

    debt_id: int
    payment_id: int
    amount: Decimal
    debt_status: DebtStatus
    surplus: Decimal


@dataclass
class Skipped:
    """Record left untouched by an allocation pass"""

    reason: str
    debt_id: Optional[int] = None
    payment_id: Optional[int] = None


AllocationOutcome = Union[Applied, Skipped]


@dataclass
class AllocationResult:
    student_id: int
    outcomes: List[AllocationOutcome] = field(default_factory=list)
    remaining_debts: int = 0
    remaining_payments: int = 0

    @property
    def applied(self) -> List[Applied]:
        return [o for o in self.outcomes if isinstance(o, Applied)]

    @property
    def skipped(self) -> List[Skipped]:
        return [o for o in self.outcomes if isinstance(o, Skipped)]

    @property
    def debts_settled(self) -> int:
        return sum(1 for o in self.applied if o.debt_status == DebtStatus.PAID)

    @property
    def amount_applied(self) -> Decimal:
        return sum((o.amount for o in self.applied), Decimal("0.00"))


@dataclass
class BatchResult:
    """Aggregate outcome of a sweep; one bad record never aborts the batch"""

    success: int = 0
    errors: int = 0
    omitted: int = 0
    details: List[str] = field(default_factory=list)


@dataclass
class ReminderNotice:
    """Everything the notification sender needs for one debt"""

    debt_id: int
    student_id: int
    student_name: str
    concept_name: str
    amount: Decimal
    due_date: date
    days_overdue: int
    risk_tier: RiskTier
    recipients: List[str]

    @property
    def is_overdue(self) -> bool:
        return self.days_overdue > 0
