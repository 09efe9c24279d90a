"""Monthly risk snapshot generation (write-once per student and period)"""

import logging
import time
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from school_ledger.domain.models import BatchResult
from school_ledger.domain.risk import build_risk_snapshot
from school_ledger.infrastructure.database.repositories import (
    DebtRepository,
    DirectoryRepository,
    PaymentRepository,
    RiskSnapshotRepository,
    to_debt,
    to_payment,
)
from school_ledger.infrastructure.observability.logging import log_batch
from school_ledger.infrastructure.observability.metrics import risk_snapshot_counter
from school_ledger.utils.date_utils import utcnow


class RiskSnapshotService:
    def __init__(self, db: Session):
        self.db = db
        self.debts = DebtRepository(db)
        self.payments = PaymentRepository(db)
        self.snapshots = RiskSnapshotRepository(db)
        self.directory = DirectoryRepository(db)

    def generate(self, month: int, year: int, today: Optional[date] = None) -> BatchResult:
        """
        Write one snapshot per student for (month, year).

        Students that already have a row for the period are omitted; existing
        rows are never overwritten.
        """
        if not 1 <= month <= 12:
            raise ValueError(f"month must be 1-12, got {month}")

        start_time = time.time()
        today = today or utcnow().date()
        batch = BatchResult()

        for student_id in self.directory.list_student_ids():
            try:
                if self.snapshots.exists(student_id, month, year):
                    batch.omitted += 1
                    batch.details.append(f"student {student_id}: already recorded for {month:02d}/{year}")
                    continue

                debts = [to_debt(r) for r in self.debts.list_by_student(student_id)]
                payments = [to_payment(r) for r in self.payments.list_by_student(student_id)]
                snapshot = build_risk_snapshot(student_id, month, year, debts, payments, today)

                self.snapshots.create(snapshot)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                batch.errors += 1
                batch.details.append(f"student {student_id}: error: {e}")
                logging.error(f"Risk snapshot failed: {e}", extra={"student_id": student_id})
                continue

            batch.success += 1
            batch.details.append(f"student {student_id}: {snapshot.risk_tier.value}")
            risk_snapshot_counter.labels(tier=snapshot.risk_tier.value).inc()

        log_batch("risk_snapshots", batch, (time.time() - start_time) * 1000)
        return batch
