"""Notification webhook client with exponential backoff retry logic"""

import asyncio
from typing import Any, Dict, Protocol

import httpx

from school_ledger.config import settings
from school_ledger.domain.exceptions import NotificationDeliveryError
from school_ledger.domain.models import ReminderNotice
from school_ledger.domain.money import format_amount
from school_ledger.infrastructure.observability.metrics import (
    notification_failure_counter,
    notification_latency_histogram,
)


class NotificationSender(Protocol):
    async def send_reminder(self, notice: ReminderNotice) -> None: ...


def reminder_payload(notice: ReminderNotice) -> Dict[str, Any]:
    return {
        "event": "PAYMENT_OVERDUE" if notice.is_overdue else "PAYMENT_DUE_SOON",
        "debt_id": notice.debt_id,
        "student_id": notice.student_id,
        "student_name": notice.student_name,
        "concept": notice.concept_name,
        "amount": format_amount(notice.amount),
        "due_date": notice.due_date.isoformat(),
        "days_overdue": notice.days_overdue,
        "risk_tier": notice.risk_tier.value,
        "recipients": notice.recipients,
    }


class NotificationClient:
    """Client for handing reminders to the external notification service"""

    def __init__(self, webhook_url: str | None = None, timeout: float | None = None):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base

    async def send_reminder(self, notice: ReminderNotice) -> None:
        """
        Deliver one reminder with retry logic.

        Retry strategy:
        - Exponential backoff: 1s, 2s, 4s, 8s (base * 2^(attempt-1))
        - Retries on 5xx/4xx responses and network failures

        Raises:
            NotificationDeliveryError: After the final attempt fails
        """
        payload = reminder_payload(notice)
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            while True:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                        response.raise_for_status()
                        return  # Success

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        raise NotificationDeliveryError(
                            f"Reminder for debt {notice.debt_id} failed after {attempt} attempts: {e}"
                        ) from e

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
