"""FIFO allocation of unlinked payments to outstanding debts"""

from collections import deque
from decimal import Decimal
from typing import Callable, Deque, Dict, Iterable, List, Mapping, Optional

from school_ledger.domain.models import (
    Applied,
    AllocationResult,
    Debt,
    DebtStatus,
    Payment,
    PaymentStatus,
    Skipped,
)
from school_ledger.domain.money import ZERO

# Skip reasons
DEBT_ALREADY_PAID = "debt_already_paid"
PAYMENT_ALREADY_LINKED = "payment_already_linked"
NON_POSITIVE_AMOUNT = "non_positive_amount"
PAYMENT_NOT_CONFIRMED = "payment_not_confirmed"
OWNER_MISMATCH = "owner_mismatch"


def order_debts(debts: Iterable[Debt]) -> List[Debt]:
    """Oldest obligation first; id breaks ties so the order is total"""
    return sorted(debts, key=lambda d: (d.created_at, d.id))


def order_payments(payments: Iterable[Payment]) -> List[Payment]:
    return sorted(payments, key=lambda p: (p.payment_date, p.id))


def settle(debt: Debt, payment: Payment, outstanding: Decimal) -> Applied:
    """
    Apply one payment to one debt.

    A payment is always consumed whole by the debt it is linked to. Any surplus
    over the outstanding amount is reported but not carried to the next debt;
    carrying it forward would mean keeping the payment at the head of the queue
    while surplus > 0.
    """
    if payment.amount >= outstanding:
        status = DebtStatus.PAID
        surplus = payment.amount - max(outstanding, ZERO)
    else:
        status = DebtStatus.PARTIAL
        surplus = ZERO

    return Applied(
        debt_id=debt.id,
        payment_id=payment.id,
        amount=payment.amount,
        debt_status=status,
        surplus=surplus,
    )


def _eligible_debts(student_id: int, debts: Iterable[Debt], outcomes: list) -> Deque[Debt]:
    queue: Deque[Debt] = deque()
    for debt in order_debts(debts):
        if debt.student_id != student_id:
            outcomes.append(Skipped(OWNER_MISMATCH, debt_id=debt.id))
        elif debt.is_paid:
            outcomes.append(Skipped(DEBT_ALREADY_PAID, debt_id=debt.id))
        else:
            queue.append(debt)
    return queue


def _eligible_payments(student_id: int, payments: Iterable[Payment], outcomes: list) -> Deque[Payment]:
    queue: Deque[Payment] = deque()
    for payment in order_payments(payments):
        if payment.student_id != student_id:
            outcomes.append(Skipped(OWNER_MISMATCH, payment_id=payment.id))
        elif payment.is_linked:
            outcomes.append(Skipped(PAYMENT_ALREADY_LINKED, payment_id=payment.id))
        elif payment.amount <= 0:
            outcomes.append(Skipped(NON_POSITIVE_AMOUNT, payment_id=payment.id))
        elif payment.status != PaymentStatus.CONFIRMED:
            outcomes.append(Skipped(PAYMENT_NOT_CONFIRMED, payment_id=payment.id))
        else:
            queue.append(payment)
    return queue


def allocate(
    student_id: int,
    debts: Iterable[Debt],
    payments: Iterable[Payment],
    applied_totals: Optional[Mapping[int, Decimal]] = None,
    on_applied: Optional[Callable[[Applied], Optional[bool]]] = None,
) -> AllocationResult:
    """
    Match unlinked payments to non-paid debts, oldest first on both sides.

    Records are mutated in place (debt.status, payment.debt_id). on_applied is
    invoked after every step so callers can persist progress as it happens.
    If it returns False the step was not stored (the payment got linked
    elsewhere): the step is undone, the debt stays at the head of the queue and
    the payment is reported as Skipped. If it raises, the pass stops and earlier
    steps stay applied.

    Args:
        student_id: Owner of the records; foreign records are skipped
        debts: Snapshot of the student's debts
        payments: Snapshot of the student's payments
        applied_totals: Sum of payments already linked per debt id, so a
            partial debt is compared against what is still outstanding
        on_applied: Persistence hook called with each Applied step; returns
            False when the step could not be stored
    """
    result = AllocationResult(student_id=student_id)
    debt_queue = _eligible_debts(student_id, debts, result.outcomes)
    payment_queue = _eligible_payments(student_id, payments, result.outcomes)
    already_applied: Dict[int, Decimal] = dict(applied_totals or {})

    while debt_queue and payment_queue:
        debt = debt_queue[0]
        payment = payment_queue.popleft()

        outstanding = debt.amount - already_applied.get(debt.id, ZERO)
        step = settle(debt, payment, outstanding)

        previous_status = debt.status
        previous_applied = already_applied.get(debt.id, ZERO)

        debt.advance(step.debt_status)
        payment.debt_id = debt.id
        already_applied[debt.id] = previous_applied + payment.amount

        if on_applied is not None and on_applied(step) is False:
            # Not stored: restore the snapshot so the next payment meets the same debt
            debt.status = previous_status
            payment.debt_id = None
            already_applied[debt.id] = previous_applied
            result.outcomes.append(Skipped(PAYMENT_ALREADY_LINKED, payment_id=payment.id))
            continue

        result.outcomes.append(step)
        if step.debt_status == DebtStatus.PAID:
            debt_queue.popleft()

    result.remaining_debts = len(debt_queue)
    result.remaining_payments = len(payment_queue)
    return result
