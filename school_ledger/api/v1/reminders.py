"""POST /v1/reminders/sweep and GET /v1/debts/{debt_id}/reminder-eligibility"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from school_ledger.api.dependencies import (
    get_clock,
    get_notification_client,
    get_request_id,
    get_sweep_state,
)
from school_ledger.api.v1.schemas import BatchResponse, ReminderEligibilityResponse
from school_ledger.config import settings
from school_ledger.domain.exceptions import StoreUnavailableError
from school_ledger.domain.reminders import Clock, ReminderGuard, ReminderSweepState
from school_ledger.infrastructure.clients.notifier import NotificationClient
from school_ledger.infrastructure.database.repositories import DebtRepository, NotificationLogRepository
from school_ledger.infrastructure.database.session import get_db
from school_ledger.infrastructure.observability.metrics import store_failures_counter
from school_ledger.services.reminders import ReminderService

router = APIRouter()


@router.post("/reminders/sweep", response_model=BatchResponse)
async def run_reminder_sweep(
    request: Request,
    force: bool = Query(False, description="Run even if a sweep already ran today"),
    db: Session = Depends(get_db),
    notifier: NotificationClient = Depends(get_notification_client),
    state: ReminderSweepState = Depends(get_sweep_state),
    clock: Clock = Depends(get_clock),
):
    """
    Send reminders for debts due within the lookahead window or overdue.

    Flow:
    1. Select open debts due soon or overdue
    2. Skip debts reminded within the dedup window
    3. Resolve student, concept and contact addresses (missing data = omission)
    4. Deliver through the notification service and log each outcome
    """
    try:
        result = await ReminderService(db, notifier, state, clock=clock).run(force=force)
    except StoreUnavailableError as e:
        store_failures_counter.inc()
        db.rollback()
        logging.error(f"Store error: {e}", extra={"request_id": get_request_id(request)})
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return BatchResponse(success=result.success, errors=result.errors, omitted=result.omitted, details=result.details)


@router.get("/debts/{debt_id}/reminder-eligibility", response_model=ReminderEligibilityResponse)
def get_reminder_eligibility(
    debt_id: int,
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
):
    """Whether a reminder for this debt may be sent now"""
    try:
        if DebtRepository(db).get(debt_id) is None:
            raise HTTPException(status_code=404, detail=f"debt {debt_id} not found")
        guard = ReminderGuard(NotificationLogRepository(db), clock=clock, window_hours=settings.reminder_window_hours)
        should_send = guard.should_send_reminder(debt_id)
    except StoreUnavailableError:
        store_failures_counter.inc()
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return ReminderEligibilityResponse(debt_id=debt_id, should_send=should_send)
