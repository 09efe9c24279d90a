"""Integration tests for allocation runs against the SQLite store"""

import pytest
from unittest.mock import patch
from datetime import date, timedelta
from decimal import Decimal
from sqlalchemy.orm import Session
from school_ledger.infrastructure.database.models import DebtRecord, PaymentRecord, StudentRecord
from school_ledger.infrastructure.database.repositories import (
    DebtRepository,
    PaymentRepository,
    to_debt,
    to_payment,
)
from school_ledger.domain.allocation import PAYMENT_ALREADY_LINKED, PAYMENT_NOT_CONFIRMED
from school_ledger.domain.balance import compute_account_snapshot
from school_ledger.domain.models import AllocationResult
from school_ledger.services.allocation import AllocationService
from school_ledger.services.ledger import LedgerService
from school_ledger.services.locks import StudentLocks

pytestmark = pytest.mark.integration


def snapshot_of(db: Session, student_id: int):
    debts = [to_debt(r) for r in DebtRepository(db).list_by_student(student_id)]
    payments = [to_payment(r) for r in PaymentRepository(db).list_by_student(student_id)]
    return debts, payments


def test_exact_payment_scenario(db, student, concept):
    ledger = LedgerService(db)
    today = date.today()
    debt = ledger.record_debt(student.id, concept.id, "500", today - timedelta(days=1))
    payment = ledger.record_payment(student.id, concept.id, "500", today, "cash")

    result = AllocationService(db, StudentLocks()).run(student.id)

    assert result.debts_settled == 1
    assert db.get(DebtRecord, debt.id).status == "paid"
    assert db.get(PaymentRecord, payment.id).debt_id == debt.id

    debts, payments = snapshot_of(db, student.id)
    assert compute_account_snapshot(debts, payments).pending_debt_total == Decimal("0")


def test_partial_payment_scenario(db, student, concept):
    ledger = LedgerService(db)
    debt = ledger.record_debt(student.id, concept.id, "800", date.today())
    payment = ledger.record_payment(student.id, concept.id, "300", date.today(), "cash")

    AllocationService(db, StudentLocks()).run(student.id)

    assert db.get(DebtRecord, debt.id).status == "partial"
    assert db.get(PaymentRecord, payment.id).debt_id == debt.id

    debts, payments = snapshot_of(db, student.id)
    account = compute_account_snapshot(debts, payments)
    assert account.total_debt == Decimal("800.00")
    assert account.balance == Decimal("-800.00")
    assert account.unapplied_total == Decimal("0")


def test_partial_debt_completed_by_later_payment(db, student, concept):
    ledger = LedgerService(db)
    service = AllocationService(db, StudentLocks())
    debt = ledger.record_debt(student.id, concept.id, "800", date.today())
    ledger.record_payment(student.id, concept.id, "300", date.today(), "cash")
    service.run(student.id)

    ledger.record_payment(student.id, concept.id, "500", date.today(), "cash")
    service.run(student.id)

    assert db.get(DebtRecord, debt.id).status == "paid"


def test_status_sum_properties_hold_after_run(db, student, concept):
    ledger = LedgerService(db)
    for amount in ("250", "400", "100"):
        ledger.record_debt(student.id, concept.id, amount, date.today())
    for amount in ("250", "150", "100", "20"):
        ledger.record_payment(student.id, concept.id, amount, date.today(), "card")

    AllocationService(db, StudentLocks()).run(student.id)

    debts, payments = snapshot_of(db, student.id)
    for debt in debts:
        linked = sum((p.amount for p in payments if p.debt_id == debt.id), Decimal("0"))
        if debt.status.value == "paid":
            assert linked >= debt.amount
        elif debt.status.value == "partial":
            assert Decimal("0") < linked < debt.amount


def test_second_run_is_a_no_op(db, student, concept):
    ledger = LedgerService(db)
    service = AllocationService(db, StudentLocks())
    ledger.record_debt(student.id, concept.id, "500", date.today())
    ledger.record_debt(student.id, concept.id, "800", date.today())
    ledger.record_payment(student.id, concept.id, "500", date.today(), "cash")
    ledger.record_payment(student.id, concept.id, "300", date.today(), "cash")

    service.run(student.id)
    before = snapshot_of(db, student.id)
    second = service.run(student.id)

    assert second.applied == []
    assert snapshot_of(db, student.id) == before


def test_deleted_debt_is_not_allocated(db, student, concept):
    ledger = LedgerService(db)
    removed = ledger.record_debt(student.id, concept.id, "100", date.today())
    kept = ledger.record_debt(student.id, concept.id, "100", date.today())
    ledger.record_payment(student.id, concept.id, "100", date.today(), "cash")
    ledger.delete_debt(removed.id)

    AllocationService(db, StudentLocks()).run(student.id)

    assert db.get(DebtRecord, kept.id).status == "paid"
    assert db.get(DebtRecord, removed.id).status == "pending"


def test_sweep_reports_each_student(db, student, concept):
    other = StudentRecord(full_name="Bruno Díaz")
    db.add(other)
    db.commit()

    ledger = LedgerService(db)
    ledger.record_debt(student.id, concept.id, "100", date.today())
    ledger.record_payment(student.id, concept.id, "100", date.today(), "cash")
    ledger.record_debt(other.id, concept.id, "100", date.today())

    batch = AllocationService(db, StudentLocks()).run_all()

    assert batch.success == 1
    assert batch.omitted == 1
    assert batch.errors == 0
    assert f"student {other.id}: nothing to allocate" in batch.details


def test_transfer_waits_for_confirmation(db, student, concept):
    ledger = LedgerService(db)
    service = AllocationService(db, StudentLocks())
    debt = ledger.record_debt(student.id, concept.id, "500", date.today())
    transfer = ledger.record_payment(student.id, concept.id, "500", date.today(), "transfer")

    first = service.run(student.id)

    assert first.applied == []
    assert [s.reason for s in first.skipped] == [PAYMENT_NOT_CONFIRMED]
    assert db.get(DebtRecord, debt.id).status == "pending"
    assert db.get(PaymentRecord, transfer.id).debt_id is None

    confirmed = ledger.confirm_payment(transfer.id)
    service.run(student.id)

    assert confirmed.status.value == "confirmed"
    assert db.get(DebtRecord, debt.id).status == "paid"
    assert db.get(PaymentRecord, transfer.id).debt_id == debt.id


def test_link_lost_to_another_writer_keeps_fifo_order(db, student, concept):
    """A payment linked elsewhere mid-run is skipped and the oldest debt is still served first"""
    ledger = LedgerService(db)
    older = ledger.record_debt(student.id, concept.id, "100", date.today())
    newer = ledger.record_debt(student.id, concept.id, "100", date.today())
    taken = ledger.record_payment(student.id, concept.id, "100", date.today(), "cash")
    fresh = ledger.record_payment(student.id, concept.id, "100", date.today(), "cash")

    real_link = PaymentRepository.link_to_debt

    def link_all_but_taken(repo, payment_id, debt_id):
        if payment_id == taken.id:
            return False
        return real_link(repo, payment_id, debt_id)

    with patch.object(PaymentRepository, "link_to_debt", autospec=True, side_effect=link_all_but_taken):
        result = AllocationService(db, StudentLocks()).run(student.id)

    assert [(s.debt_id, s.payment_id) for s in result.applied] == [(older.id, fresh.id)]
    assert [(s.payment_id, s.reason) for s in result.skipped] == [(taken.id, PAYMENT_ALREADY_LINKED)]
    assert db.get(DebtRecord, older.id).status == "paid"
    assert db.get(DebtRecord, newer.id).status == "pending"
    assert db.get(PaymentRecord, fresh.id).debt_id == older.id


def test_run_holds_the_student_lock(db, student):
    locks = StudentLocks()
    held_during_run = []

    def fake_allocate(student_id, debts, payments, applied_totals=None, on_applied=None):
        held_during_run.append(locks.is_held(student_id))
        return AllocationResult(student_id=student_id)

    with patch("school_ledger.services.allocation.allocate", side_effect=fake_allocate):
        AllocationService(db, locks).run(student.id)

    assert held_during_run == [True]
    assert locks.is_held(student.id) is False
