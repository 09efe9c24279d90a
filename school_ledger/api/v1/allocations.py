"""POST /v1/students/{student_id}/allocations and /v1/allocations/sweep"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from school_ledger.api.dependencies import get_request_id, get_student_locks
from school_ledger.api.v1.schemas import AllocationResponse, AllocationStepSchema, BatchResponse
from school_ledger.domain.exceptions import StoreUnavailableError
from school_ledger.domain.models import Applied
from school_ledger.infrastructure.database.repositories import DirectoryRepository
from school_ledger.infrastructure.database.session import get_db
from school_ledger.infrastructure.observability.metrics import store_failures_counter
from school_ledger.services.allocation import AllocationService
from school_ledger.services.locks import StudentLocks

router = APIRouter()


@router.post("/students/{student_id}/allocations", response_model=AllocationResponse)
def run_allocation(
    student_id: int,
    request: Request,
    db: Session = Depends(get_db),
    locks: StudentLocks = Depends(get_student_locks),
):
    """
    Match the student's unlinked payments to open debts, oldest first.

    Steps are committed as they run; re-running with no new records is a no-op.
    """
    request_id = get_request_id(request)
    try:
        if DirectoryRepository(db).get_student(student_id) is None:
            raise HTTPException(status_code=404, detail=f"student {student_id} not found")
        result = AllocationService(db, locks).run(student_id)
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        db.rollback()
        logging.error(f"Store error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    steps = []
    for outcome in result.outcomes:
        if isinstance(outcome, Applied):
            steps.append(
                AllocationStepSchema(
                    kind="applied",
                    debt_id=outcome.debt_id,
                    payment_id=outcome.payment_id,
                    amount=outcome.amount,
                    debt_status=outcome.debt_status.value,
                    surplus=outcome.surplus,
                )
            )
        else:
            steps.append(
                AllocationStepSchema(
                    kind="skipped",
                    debt_id=outcome.debt_id,
                    payment_id=outcome.payment_id,
                    reason=outcome.reason,
                )
            )

    return AllocationResponse(
        student_id=student_id,
        payments_applied=len(result.applied),
        debts_settled=result.debts_settled,
        amount_applied=result.amount_applied,
        remaining_debts=result.remaining_debts,
        remaining_payments=result.remaining_payments,
        steps=steps,
    )


@router.post("/allocations/sweep", response_model=BatchResponse)
def run_allocation_sweep(
    request: Request,
    db: Session = Depends(get_db),
    locks: StudentLocks = Depends(get_student_locks),
):
    """Allocation pass for every student with open debts"""
    try:
        batch = AllocationService(db, locks).run_all()
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        db.rollback()
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return BatchResponse(success=batch.success, errors=batch.errors, omitted=batch.omitted, details=batch.details)
