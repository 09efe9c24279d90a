"""POST /v1/debts, POST /v1/payments, POST /v1/payments/{payment_id}/confirm, DELETE /v1/debts/{debt_id}"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from school_ledger.api.dependencies import get_request_id
from school_ledger.api.v1.schemas import (
    DebtCreateRequest,
    DebtSchema,
    PaymentCreateRequest,
    PaymentSchema,
)
from school_ledger.domain.exceptions import (
    InvalidAmountError,
    ResourceUnavailableError,
    StoreUnavailableError,
)
from school_ledger.domain.models import Debt, Payment
from school_ledger.infrastructure.database.session import get_db
from school_ledger.infrastructure.observability.metrics import store_failures_counter
from school_ledger.services.ledger import LedgerService

router = APIRouter()


def debt_schema(debt: Debt) -> DebtSchema:
    return DebtSchema(
        id=debt.id,
        student_id=debt.student_id,
        concept_id=debt.concept_id,
        amount=debt.amount,
        due_date=debt.due_date,
        status=debt.status.value,
        created_at=debt.created_at,
    )


def payment_schema(payment: Payment) -> PaymentSchema:
    return PaymentSchema(
        id=payment.id,
        student_id=payment.student_id,
        concept_id=payment.concept_id,
        amount=payment.amount,
        payment_date=payment.payment_date,
        method=payment.method,
        status=payment.status.value,
        debt_id=payment.debt_id,
    )


@router.post("/debts", response_model=DebtSchema, status_code=201)
def create_debt(request_body: DebtCreateRequest, request: Request, db: Session = Depends(get_db)):
    """Record a billable obligation in pending status"""
    request_id = get_request_id(request)
    try:
        debt = LedgerService(db).record_debt(
            student_id=request_body.student_id,
            concept_id=request_body.concept_id,
            amount=request_body.amount,
            due_date=request_body.due_date,
        )
    except ResourceUnavailableError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        db.rollback()
        logging.error(f"Store error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return debt_schema(debt)


@router.post("/payments", response_model=PaymentSchema, status_code=201)
def create_payment(request_body: PaymentCreateRequest, request: Request, db: Session = Depends(get_db)):
    """
    Record a received payment.

    Cash and card payments are confirmed immediately; transfers stay pending
    until manually confirmed. The payment is left unlinked for the allocator.
    """
    request_id = get_request_id(request)
    try:
        payment = LedgerService(db).record_payment(
            student_id=request_body.student_id,
            concept_id=request_body.concept_id,
            amount=request_body.amount,
            payment_date=request_body.payment_date,
            method=request_body.method,
            reference=request_body.reference,
        )
    except ResourceUnavailableError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidAmountError as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        db.rollback()
        logging.error(f"Store error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return payment_schema(payment)


@router.post("/payments/{payment_id}/confirm", response_model=PaymentSchema)
def confirm_payment(payment_id: int, request: Request, db: Session = Depends(get_db)):
    """Confirm a pending transfer so the next allocation run can apply it"""
    try:
        payment = LedgerService(db).confirm_payment(payment_id)
    except ResourceUnavailableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        db.rollback()
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return payment_schema(payment)


@router.delete("/debts/{debt_id}", status_code=204)
def delete_debt(debt_id: int, db: Session = Depends(get_db)):
    """Logically delete a debt; the row is kept for linked payments"""
    try:
        LedgerService(db).delete_debt(debt_id)
    except ResourceUnavailableError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailableError:
        store_failures_counter.inc()
        db.rollback()
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return Response(status_code=204)
