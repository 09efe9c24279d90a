"""Reminder selection, per-debt dedup guard and sweep-level run tracker"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Callable, Optional, Protocol

from school_ledger.domain.models import BatchResult, Debt, OPEN_DEBT_STATUSES
from school_ledger.utils.date_utils import days_between, utcnow

Clock = Callable[[], datetime]


class SentLogReader(Protocol):
    def count_sent_since(self, debt_id: int, since: datetime) -> int: ...


def days_overdue(today: date, due_date: date) -> int:
    """Positive once past due, negative while still upcoming"""
    return days_between(due_date, today)


def is_reminder_candidate(debt: Debt, today: date, lookahead_days: int = 3) -> bool:
    """Open debts due within the lookahead window or already overdue"""
    if debt.status not in OPEN_DEBT_STATUSES:
        return False
    return days_overdue(today, debt.due_date) >= -lookahead_days


class ReminderGuard:
    """
    Rolling-window dedup for outbound reminders.

    A debt is safe to remind only if no "sent" log entry exists within the
    trailing window (24h by default) measured from call time.
    """

    def __init__(self, logs: SentLogReader, clock: Clock = utcnow, window_hours: int = 24):
        self.logs = logs
        self.clock = clock
        self.window = timedelta(hours=window_hours)

    def should_send_reminder(self, debt_id: int) -> bool:
        since = self.clock() - self.window
        return self.logs.count_sent_since(debt_id, since) == 0


@dataclass
class ReminderSweepState:
    """Tracks the last completed sweep; one instance per application"""

    last_run: Optional[datetime] = None
    result: Optional[BatchResult] = None

    def record(self, result: BatchResult, at: datetime) -> None:
        self.last_run = at
        self.result = result

    def has_run_today(self, now: datetime) -> bool:
        if self.last_run is None:
            return False
        return self.last_run.date() == now.date()
