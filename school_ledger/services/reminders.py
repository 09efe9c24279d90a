"""Reminder sweep - selects due/overdue debts and hands them to the notification sender"""

import logging
import time
from datetime import date
from typing import List, Union

from sqlalchemy.orm import Session

from school_ledger.config import settings
from school_ledger.domain.models import BatchResult, Debt, ReminderNotice
from school_ledger.domain.reminders import (
    Clock,
    ReminderGuard,
    ReminderSweepState,
    days_overdue,
    is_reminder_candidate,
)
from school_ledger.domain.risk import classify_by_days_overdue
from school_ledger.infrastructure.clients.notifier import NotificationSender
from school_ledger.infrastructure.database.repositories import (
    DebtRepository,
    DirectoryRepository,
    NotificationLogRepository,
    to_debt,
)
from school_ledger.infrastructure.observability.logging import log_batch
from school_ledger.infrastructure.observability.metrics import record_reminder_sweep
from school_ledger.utils.date_utils import utcnow

# Omission reasons recorded in the notification log
OMIT_RECENTLY_SENT = "reminder already sent within the dedup window"
OMIT_STUDENT_MISSING = "student record not found"
OMIT_CONCEPT_MISSING = "payment concept not found"
OMIT_NO_CONTACTS = "no responsible contacts on file"
OMIT_NO_ADDRESS = "no contact has a usable email address"


def usable_addresses(emails: List[str | None]) -> List[str]:
    return [e.strip() for e in emails if e and "@" in e.strip()]


class ReminderService:
    """
    Sends payment reminders for debts due within the lookahead window or overdue.

    Per-debt problems are omissions, per-delivery failures are errors; neither
    stops the sweep. A second unforced sweep on the same day is a no-op.
    """

    def __init__(
        self,
        db: Session,
        sender: NotificationSender,
        state: ReminderSweepState,
        clock: Clock = utcnow,
        window_hours: int | None = None,
        lookahead_days: int | None = None,
    ):
        self.db = db
        self.sender = sender
        self.state = state
        self.clock = clock
        self.lookahead_days = lookahead_days if lookahead_days is not None else settings.reminder_lookahead_days
        self.debts = DebtRepository(db)
        self.directory = DirectoryRepository(db)
        self.logs = NotificationLogRepository(db)
        self.guard = ReminderGuard(
            self.logs,
            clock=clock,
            window_hours=window_hours if window_hours is not None else settings.reminder_window_hours,
        )

    async def run(self, force: bool = False) -> BatchResult:
        start_time = time.time()
        now = self.clock()

        if not force and self.state.has_run_today(now):
            return BatchResult(details=[f"sweep already ran at {self.state.last_run.isoformat()}"])

        result = BatchResult()
        today = now.date()

        notices: List[ReminderNotice] = []
        for record in self.debts.list_open():
            debt = to_debt(record)
            if not is_reminder_candidate(debt, today, self.lookahead_days):
                continue

            try:
                prepared = self._prepare(debt, today)
            except Exception as e:
                self.db.rollback()
                prepared = f"unexpected error: {e}"

            if isinstance(prepared, ReminderNotice):
                notices.append(prepared)
            else:
                self._omit(result, debt, prepared)

        for notice in notices:
            await self._deliver(result, notice)

        self.state.record(result, now)
        record_reminder_sweep(result)
        log_batch("reminder_sweep", result, (time.time() - start_time) * 1000)
        return result

    def _prepare(self, debt: Debt, today: date) -> Union[ReminderNotice, str]:
        """Resolve everything a reminder needs, or the reason it cannot be sent"""
        if not self.guard.should_send_reminder(debt.id):
            return OMIT_RECENTLY_SENT

        student = self.directory.get_student(debt.student_id)
        if student is None:
            return OMIT_STUDENT_MISSING

        concept = self.directory.get_concept(debt.concept_id)
        if concept is None:
            return OMIT_CONCEPT_MISSING

        contacts = self.directory.list_contacts(student.id)
        if not contacts:
            return OMIT_NO_CONTACTS

        recipients = usable_addresses([c.email for c in contacts])
        if not recipients:
            return OMIT_NO_ADDRESS

        days = days_overdue(today, debt.due_date)
        return ReminderNotice(
            debt_id=debt.id,
            student_id=student.id,
            student_name=student.full_name,
            concept_name=concept.name,
            amount=debt.amount,
            due_date=debt.due_date,
            days_overdue=days,
            risk_tier=classify_by_days_overdue(days),
            recipients=recipients,
        )

    def _omit(self, result: BatchResult, debt: Debt, reason: str) -> None:
        result.omitted += 1
        result.details.append(f"debt {debt.id}: omitted: {reason}")
        logging.info("Reminder omitted", extra={"debt_id": debt.id, "reason": reason})

        try:
            self.logs.create(
                status="omitted",
                debt_id=debt.id,
                student_id=debt.student_id,
                message=reason,
                sent_at=self.clock(),
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logging.error(f"Could not record omission: {e}", extra={"debt_id": debt.id})

    async def _deliver(self, result: BatchResult, notice: ReminderNotice) -> None:
        try:
            await self.sender.send_reminder(notice)
        except Exception as e:
            result.errors += 1
            result.details.append(f"debt {notice.debt_id}: error: {e}")
            logging.error(f"Reminder delivery failed: {e}", extra={"debt_id": notice.debt_id})
            status, message = "error", str(e)
        else:
            result.success += 1
            result.details.append(f"debt {notice.debt_id}: sent to {', '.join(notice.recipients)}")
            status, message = "sent", None

        try:
            self.logs.create(
                status=status,
                debt_id=notice.debt_id,
                student_id=notice.student_id,
                recipients=notice.recipients,
                message=message,
                sent_at=self.clock(),
            )
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logging.error(f"Could not record reminder outcome: {e}", extra={"debt_id": notice.debt_id})
