"""Dependency injection for FastAPI endpoints"""

from fastapi import Request

from school_ledger.domain.reminders import Clock, ReminderSweepState
from school_ledger.infrastructure.clients.notifier import NotificationClient
from school_ledger.services.locks import StudentLocks
from school_ledger.utils.date_utils import utcnow


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def get_student_locks(request: Request) -> StudentLocks:
    """Per-student allocation locks shared by every request of this app"""
    return request.app.state.student_locks


def get_sweep_state(request: Request) -> ReminderSweepState:
    return request.app.state.reminder_sweep_state


def get_clock() -> Clock:
    return utcnow
