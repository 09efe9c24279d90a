"""Allocation runner - reads a snapshot, runs FIFO matching, persists each step"""

import logging
import time

from sqlalchemy.orm import Session

from school_ledger.domain.allocation import allocate
from school_ledger.domain.models import AllocationResult, Applied, BatchResult
from school_ledger.infrastructure.database.repositories import (
    DebtRepository,
    PaymentRepository,
    to_debt,
    to_payment,
)
from school_ledger.infrastructure.observability.logging import log_allocation_run, log_batch
from school_ledger.infrastructure.observability.metrics import (
    allocation_duration_histogram,
    record_allocation,
)
from school_ledger.services.locks import StudentLocks


class AllocationService:
    """
    Reconciles unlinked payments against open debts for one student.

    The snapshot is read once at the start of a run; rows inserted afterwards
    wait for the next run. Each step is committed as it happens, so a crash
    mid-run leaves the completed steps in place.
    """

    def __init__(self, db: Session, locks: StudentLocks):
        self.db = db
        self.locks = locks
        self.debts = DebtRepository(db)
        self.payments = PaymentRepository(db)

    def run(self, student_id: int) -> AllocationResult:
        start_time = time.time()

        with self.locks.hold(student_id), allocation_duration_histogram.time():
            debts = [to_debt(r) for r in self.debts.list_open_by_student(student_id)]
            payments = [to_payment(r) for r in self.payments.list_unlinked_by_student(student_id)]
            applied_totals = self.payments.applied_totals(d.id for d in debts)

            result = allocate(
                student_id,
                debts,
                payments,
                applied_totals=applied_totals,
                on_applied=self._persist_step,
            )

        duration_ms = (time.time() - start_time) * 1000
        record_allocation(result)
        log_allocation_run(result, duration_ms)
        return result

    def _persist_step(self, step: Applied) -> bool:
        if not self.payments.link_to_debt(step.payment_id, step.debt_id):
            # Linked by correction tooling after our snapshot was read
            logging.warning(
                "Payment already linked, step not persisted",
                extra={"payment_id": step.payment_id, "debt_id": step.debt_id},
            )
            self.db.rollback()
            return False

        self.debts.update_status(step.debt_id, step.debt_status)
        self.db.commit()
        return True

    def run_all(self) -> BatchResult:
        """Allocation sweep over every student with open debts"""
        start_time = time.time()
        batch = BatchResult()

        for student_id in self.debts.student_ids_with_open_debts():
            try:
                result = self.run(student_id)
            except Exception as e:
                self.db.rollback()
                batch.errors += 1
                batch.details.append(f"student {student_id}: error: {e}")
                logging.error(f"Allocation failed: {e}", extra={"student_id": student_id})
                continue

            if result.applied:
                batch.success += 1
                batch.details.append(
                    f"student {student_id}: {len(result.applied)} payments applied, "
                    f"{result.debts_settled} debts settled"
                )
            else:
                batch.omitted += 1
                batch.details.append(f"student {student_id}: nothing to allocate")

        log_batch("allocation_sweep", batch, (time.time() - start_time) * 1000)
        return batch
