"""Record intake for debts and payments"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from school_ledger.domain.exceptions import InvalidAmountError, ResourceUnavailableError
from school_ledger.domain.models import Debt, Payment, PaymentStatus, payment_status_for_method
from school_ledger.domain.money import parse_amount
from school_ledger.infrastructure.database.repositories import (
    DebtRepository,
    DirectoryRepository,
    PaymentRepository,
    to_debt,
    to_payment,
)


class LedgerService:
    def __init__(self, db: Session):
        self.db = db
        self.debts = DebtRepository(db)
        self.payments = PaymentRepository(db)
        self.directory = DirectoryRepository(db)

    def _require_owner(self, student_id: int, concept_id: int) -> None:
        if self.directory.get_student(student_id) is None:
            raise ResourceUnavailableError("student", student_id)
        if self.directory.get_concept(concept_id) is None:
            raise ResourceUnavailableError("concept", concept_id)

    def record_debt(
        self,
        student_id: int,
        concept_id: int,
        amount: Decimal | str,
        due_date: date,
        created_at: Optional[datetime] = None,
    ) -> Debt:
        value = parse_amount(amount)
        if value < 0:
            raise InvalidAmountError(f"Debt amount must be >= 0, got {value}")
        self._require_owner(student_id, concept_id)

        record = self.debts.create(student_id, concept_id, value, due_date, created_at=created_at)
        self.db.commit()
        logging.info("Debt recorded", extra={"debt_id": record.id, "student_id": student_id})
        return to_debt(record)

    def record_payment(
        self,
        student_id: int,
        concept_id: int,
        amount: Decimal | str,
        payment_date: date,
        method: str,
        reference: Optional[str] = None,
    ) -> Payment:
        """Create a payment; its status follows from the payment method"""
        value = parse_amount(amount)
        if value <= 0:
            raise InvalidAmountError(f"Payment amount must be > 0, got {value}")
        self._require_owner(student_id, concept_id)

        record = self.payments.create(
            student_id=student_id,
            concept_id=concept_id,
            amount=value,
            payment_date=payment_date,
            method=method,
            status=payment_status_for_method(method),
            reference=reference,
        )
        self.db.commit()
        logging.info(
            "Payment recorded",
            extra={"payment_id": record.id, "student_id": student_id, "status": record.status},
        )
        return to_payment(record)

    def confirm_payment(self, payment_id: int) -> Payment:
        """
        Mark a pending payment (transfer, SPEI) as received.

        Only confirmed payments are picked up by allocation. Confirming an
        already confirmed payment changes nothing.
        """
        record = self.payments.get(payment_id)
        if record is None:
            raise ResourceUnavailableError("payment", payment_id)

        if record.status != PaymentStatus.CONFIRMED.value:
            record.status = PaymentStatus.CONFIRMED.value
            self.db.commit()
            logging.info(
                "Payment confirmed",
                extra={"payment_id": payment_id, "student_id": record.student_id},
            )
        return to_payment(record)

    def delete_debt(self, debt_id: int) -> None:
        """Logical deletion only"""
        if not self.debts.soft_delete(debt_id):
            raise ResourceUnavailableError("debt", debt_id)
        self.db.commit()
