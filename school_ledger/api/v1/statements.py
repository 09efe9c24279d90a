"""GET /v1/students/{student_id}/statement - account statement"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from school_ledger.api.dependencies import get_request_id
from school_ledger.api.v1.records import payment_schema
from school_ledger.api.v1.schemas import (
    LateFeePolicySchema,
    StatementDebtSchema,
    StatementResponse,
    StudentSchema,
)
from school_ledger.domain.exceptions import ResourceUnavailableError, StoreUnavailableError
from school_ledger.infrastructure.database.session import get_db
from school_ledger.infrastructure.observability.metrics import store_failures_counter
from school_ledger.services.statement import StatementService

router = APIRouter()


@router.get("/students/{student_id}/statement", response_model=StatementResponse)
def get_statement(student_id: int, request: Request, db: Session = Depends(get_db)):
    """
    Account statement: debts with surcharges, payments, totals and risk tier.

    Balance is negative while any debt is open; a positive balance only shows
    unapplied credit once every debt is paid.
    """
    try:
        statement = StatementService(db).build(student_id)
    except ResourceUnavailableError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    debts = [
        StatementDebtSchema(
            id=line.debt.id,
            student_id=line.debt.student_id,
            concept_id=line.debt.concept_id,
            amount=line.debt.amount,
            due_date=line.debt.due_date,
            status=line.debt.status.value,
            created_at=line.debt.created_at,
            late_fee=line.late_fee.fee,
            total_with_late_fee=line.late_fee.total,
            is_overdue=line.is_overdue,
        )
        for line in statement.debts
    ]

    return StatementResponse(
        student=StudentSchema(id=statement.student.id, full_name=statement.student.full_name),
        debts=debts,
        payments=[payment_schema(p) for p in statement.payments],
        total_debt=statement.total_debt,
        total_paid=statement.total_paid,
        balance=statement.balance,
        pending_debt_total=statement.pending_debt_total,
        unapplied_total=statement.unapplied_total,
        total_late_fees=statement.late_fees.total_fees,
        total_with_late_fees=statement.late_fees.total,
        overdue_count=statement.overdue_count,
        risk_tier=statement.risk_tier.value,
        compliance_percent=statement.compliance_percent,
        last_payment_date=statement.last_payment_date,
        late_fee_policy=LateFeePolicySchema(
            enabled=statement.policy.enabled,
            surcharge_percent=statement.policy.surcharge_percent,
        ),
    )
