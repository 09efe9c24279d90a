"""Structured JSON logging for production observability"""

import logging
import sys
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from school_ledger.config import settings
from school_ledger.domain.models import AllocationResult, BatchResult
from school_ledger.utils.date_utils import utcnow


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = utcnow().isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_allocation_run(result: AllocationResult, duration_ms: float) -> None:
    """Log structured allocation outcome for one student"""
    logging.info(
        "Allocation run completed",
        extra={
            "student_id": result.student_id,
            "step": "allocation_complete",
            "payments_applied": len(result.applied),
            "debts_settled": result.debts_settled,
            "amount_applied": str(result.amount_applied),
            "skipped": [s.reason for s in result.skipped],
            "remaining_debts": result.remaining_debts,
            "remaining_payments": result.remaining_payments,
            "duration_ms": duration_ms,
        },
    )


def log_batch(step: str, result: BatchResult, duration_ms: float) -> None:
    """Log the summary of a sweep (reminders, allocation, snapshots)"""
    logging.info(
        "Batch completed",
        extra={
            "step": step,
            "success": result.success,
            "errors": result.errors,
            "omitted": result.omitted,
            "duration_ms": duration_ms,
        },
    )
