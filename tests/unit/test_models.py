"""Unit tests for debt lifecycle and payment status rules"""

import pytest
from school_ledger.domain.exceptions import InvalidDebtTransitionError
from school_ledger.domain.models import DebtStatus, PaymentStatus, payment_status_for_method


def test_debt_moves_forward(make_debt):
    debt = make_debt(1, "100.00")

    debt.advance(DebtStatus.PARTIAL)
    debt.advance(DebtStatus.PARTIAL)  # no-op
    debt.advance(DebtStatus.PAID)

    assert debt.is_paid


def test_paid_debt_never_reopens(make_debt):
    debt = make_debt(1, "100.00", status=DebtStatus.PAID)

    with pytest.raises(InvalidDebtTransitionError):
        debt.advance(DebtStatus.PARTIAL)


def test_partial_cannot_return_to_pending(make_debt):
    debt = make_debt(1, "100.00", status=DebtStatus.PARTIAL)

    with pytest.raises(InvalidDebtTransitionError):
        debt.advance(DebtStatus.PENDING)


@pytest.mark.parametrize(
    "method,status",
    [
        ("cash", PaymentStatus.CONFIRMED),
        (" Card ", PaymentStatus.CONFIRMED),
        ("transfer", PaymentStatus.PENDING),
        ("spei", PaymentStatus.PENDING),
        ("cheque", PaymentStatus.PENDING),
    ],
)
def test_payment_status_follows_method(method, status):
    assert payment_status_for_method(method) == status
