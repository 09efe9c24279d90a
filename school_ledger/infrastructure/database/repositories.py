"""Data access layer for ledger entities"""

import functools
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session

from school_ledger.domain.exceptions import InvalidAmountError, StoreUnavailableError
from school_ledger.domain.models import (
    Contact,
    Debt,
    DebtStatus,
    LateFeePolicy,
    Payment,
    PaymentConcept,
    PaymentStatus,
    RiskSnapshot,
    Student,
)
from school_ledger.domain.money import parse_amount, safe_amount
from school_ledger.infrastructure.database.models import (
    DebtRecord,
    InstitutionSettingRecord,
    NotificationLogRecord,
    PaymentConceptRecord,
    PaymentRecord,
    RiskSnapshotRecord,
    StudentContactRecord,
    StudentRecord,
)
from school_ledger.utils.date_utils import utcnow

LATE_FEE_ENABLED_KEY = "late_fee_enabled"
LATE_FEE_PERCENT_KEY = "late_fee_percent"

_OPEN_STATUSES = [DebtStatus.PENDING.value, DebtStatus.PARTIAL.value, DebtStatus.OVERDUE.value]


def store_call(fn):
    """Surface connectivity failures as StoreUnavailableError"""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, InterfaceError) as e:
            raise StoreUnavailableError(f"Store unavailable during {fn.__name__}: {e.orig}") from e

    return wrapper


def to_debt(record: DebtRecord) -> Debt:
    return Debt(
        id=record.id,
        student_id=record.student_id,
        concept_id=record.concept_id,
        amount=safe_amount(record.amount),
        due_date=record.due_date,
        status=DebtStatus(record.status),
        created_at=record.created_at,
    )


def to_payment(record: PaymentRecord) -> Payment:
    return Payment(
        id=record.id,
        student_id=record.student_id,
        concept_id=record.concept_id,
        amount=safe_amount(record.amount),
        payment_date=record.payment_date,
        method=record.method,
        status=PaymentStatus(record.status),
        debt_id=record.debt_id,
    )


class DebtRepository:
    """Repository for debts; deleted rows are invisible to every query"""

    def __init__(self, db: Session):
        self.db = db

    def _live(self):
        return self.db.query(DebtRecord).filter(DebtRecord.deleted_at.is_(None))

    @store_call
    def get(self, debt_id: int) -> Optional[DebtRecord]:
        return self._live().filter(DebtRecord.id == debt_id).first()

    @store_call
    def list_by_student(self, student_id: int) -> List[DebtRecord]:
        return self._live().filter(DebtRecord.student_id == student_id).order_by(DebtRecord.id).all()

    @store_call
    def list_open_by_student(self, student_id: int) -> List[DebtRecord]:
        """Non-paid debts, oldest first (FIFO order)"""
        return (
            self._live()
            .filter(DebtRecord.student_id == student_id, DebtRecord.status.in_(_OPEN_STATUSES))
            .order_by(DebtRecord.created_at.asc(), DebtRecord.id.asc())
            .all()
        )

    @store_call
    def list_open(self) -> List[DebtRecord]:
        return (
            self._live()
            .filter(DebtRecord.status.in_(_OPEN_STATUSES))
            .order_by(DebtRecord.due_date.asc(), DebtRecord.id.asc())
            .all()
        )

    @store_call
    def student_ids_with_open_debts(self) -> List[int]:
        rows = (
            self.db.query(DebtRecord.student_id)
            .filter(DebtRecord.deleted_at.is_(None), DebtRecord.status.in_(_OPEN_STATUSES))
            .distinct()
            .order_by(DebtRecord.student_id)
            .all()
        )
        return [row[0] for row in rows]

    @store_call
    def create(
        self,
        student_id: int,
        concept_id: int,
        amount: Decimal,
        due_date: date,
        created_at: Optional[datetime] = None,
    ) -> DebtRecord:
        record = DebtRecord(
            student_id=student_id,
            concept_id=concept_id,
            amount=amount,
            due_date=due_date,
            status=DebtStatus.PENDING.value,
            created_at=created_at or utcnow(),
        )
        self.db.add(record)
        self.db.flush()
        return record

    @store_call
    def update_status(self, debt_id: int, status: DebtStatus) -> None:
        self.db.query(DebtRecord).filter(DebtRecord.id == debt_id).update(
            {DebtRecord.status: status.value}, synchronize_session="fetch"
        )

    @store_call
    def soft_delete(self, debt_id: int) -> bool:
        """Logical deletion; the row stays so linked payments keep their reference"""
        updated = (
            self.db.query(DebtRecord)
            .filter(DebtRecord.id == debt_id, DebtRecord.deleted_at.is_(None))
            .update({DebtRecord.deleted_at: utcnow()}, synchronize_session="fetch")
        )
        return updated > 0


class PaymentRepository:
    """Repository for payments"""

    def __init__(self, db: Session):
        self.db = db

    @store_call
    def get(self, payment_id: int) -> Optional[PaymentRecord]:
        return self.db.query(PaymentRecord).filter(PaymentRecord.id == payment_id).first()

    @store_call
    def list_by_student(self, student_id: int) -> List[PaymentRecord]:
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.student_id == student_id)
            .order_by(PaymentRecord.payment_date.asc(), PaymentRecord.id.asc())
            .all()
        )

    @store_call
    def list_unlinked_by_student(self, student_id: int) -> List[PaymentRecord]:
        """Payments with no debt link, oldest first"""
        return (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.student_id == student_id, PaymentRecord.debt_id.is_(None))
            .order_by(PaymentRecord.payment_date.asc(), PaymentRecord.id.asc())
            .all()
        )

    @store_call
    def applied_totals(self, debt_ids: Iterable[int]) -> Dict[int, Decimal]:
        """Sum of linked payment amounts per debt"""
        debt_ids = list(debt_ids)
        if not debt_ids:
            return {}
        rows = (
            self.db.query(PaymentRecord.debt_id, func.sum(PaymentRecord.amount))
            .filter(PaymentRecord.debt_id.in_(debt_ids))
            .group_by(PaymentRecord.debt_id)
            .all()
        )
        return {debt_id: safe_amount(total) for debt_id, total in rows}

    @store_call
    def create(
        self,
        student_id: int,
        concept_id: int,
        amount: Decimal,
        payment_date: date,
        method: str,
        status: PaymentStatus,
        reference: Optional[str] = None,
    ) -> PaymentRecord:
        record = PaymentRecord(
            student_id=student_id,
            concept_id=concept_id,
            amount=amount,
            payment_date=payment_date,
            method=method,
            status=status.value,
            reference=reference,
        )
        self.db.add(record)
        self.db.flush()
        return record

    @store_call
    def link_to_debt(self, payment_id: int, debt_id: int) -> bool:
        """Write-once link: only a payment without a link is updated"""
        updated = (
            self.db.query(PaymentRecord)
            .filter(PaymentRecord.id == payment_id, PaymentRecord.debt_id.is_(None))
            .update({PaymentRecord.debt_id: debt_id}, synchronize_session="fetch")
        )
        return updated > 0


class NotificationLogRepository:
    """Repository for reminder outcomes"""

    def __init__(self, db: Session):
        self.db = db

    @store_call
    def create(
        self,
        status: str,
        debt_id: Optional[int] = None,
        student_id: Optional[int] = None,
        recipients: Iterable[str] = (),
        message: Optional[str] = None,
        sent_at: Optional[datetime] = None,
    ) -> NotificationLogRecord:
        record = NotificationLogRecord(
            debt_id=debt_id,
            student_id=student_id,
            status=status,
            recipients=", ".join(recipients),
            message=message,
            sent_at=sent_at or utcnow(),
        )
        self.db.add(record)
        self.db.flush()
        return record

    @store_call
    def count_sent_since(self, debt_id: int, since: datetime) -> int:
        return (
            self.db.query(NotificationLogRecord)
            .filter(
                NotificationLogRecord.debt_id == debt_id,
                NotificationLogRecord.status == "sent",
                NotificationLogRecord.sent_at >= since,
            )
            .count()
        )

    @store_call
    def list_by_debt(self, debt_id: int) -> List[NotificationLogRecord]:
        return (
            self.db.query(NotificationLogRecord)
            .filter(NotificationLogRecord.debt_id == debt_id)
            .order_by(NotificationLogRecord.sent_at.desc())
            .all()
        )


class RiskSnapshotRepository:
    """Repository for monthly risk snapshots (insert-only)"""

    def __init__(self, db: Session):
        self.db = db

    @store_call
    def exists(self, student_id: int, month: int, year: int) -> bool:
        return (
            self.db.query(RiskSnapshotRecord.id)
            .filter(
                RiskSnapshotRecord.student_id == student_id,
                RiskSnapshotRecord.month == month,
                RiskSnapshotRecord.year == year,
            )
            .first()
            is not None
        )

    @store_call
    def create(self, snapshot: RiskSnapshot) -> RiskSnapshotRecord:
        record = RiskSnapshotRecord(
            student_id=snapshot.student_id,
            month=snapshot.month,
            year=snapshot.year,
            risk_tier=snapshot.risk_tier.value,
            total_debt=snapshot.total_debt,
            total_paid=snapshot.total_paid,
            overdue_count=snapshot.overdue_count,
            on_time_payments=snapshot.on_time_payments,
        )
        self.db.add(record)
        self.db.flush()
        return record

    @store_call
    def list_by_period(self, month: int, year: int) -> List[RiskSnapshotRecord]:
        return (
            self.db.query(RiskSnapshotRecord)
            .filter(RiskSnapshotRecord.month == month, RiskSnapshotRecord.year == year)
            .order_by(RiskSnapshotRecord.student_id)
            .all()
        )


class DirectoryRepository:
    """Read access to students, concepts and contacts owned by other modules"""

    def __init__(self, db: Session):
        self.db = db

    @store_call
    def get_student(self, student_id: int) -> Optional[Student]:
        record = self.db.query(StudentRecord).filter(StudentRecord.id == student_id).first()
        return Student(id=record.id, full_name=record.full_name) if record else None

    @store_call
    def list_student_ids(self) -> List[int]:
        return [row[0] for row in self.db.query(StudentRecord.id).order_by(StudentRecord.id).all()]

    @store_call
    def get_concept(self, concept_id: int) -> Optional[PaymentConcept]:
        record = self.db.query(PaymentConceptRecord).filter(PaymentConceptRecord.id == concept_id).first()
        if not record:
            return None
        return PaymentConcept(id=record.id, name=record.name, late_fee_exempt=record.late_fee_exempt)

    @store_call
    def exempt_concept_ids(self) -> List[int]:
        rows = self.db.query(PaymentConceptRecord.id).filter(PaymentConceptRecord.late_fee_exempt.is_(True)).all()
        return [row[0] for row in rows]

    @store_call
    def list_contacts(self, student_id: int) -> List[Contact]:
        records = (
            self.db.query(StudentContactRecord)
            .filter(StudentContactRecord.student_id == student_id)
            .order_by(StudentContactRecord.id)
            .all()
        )
        return [
            Contact(id=r.id, student_id=r.student_id, name=r.name, email=r.email)
            for r in records
        ]


class SettingsRepository:
    """Institution-level settings"""

    def __init__(self, db: Session):
        self.db = db

    @store_call
    def get_value(self, key: str) -> Optional[str]:
        record = self.db.query(InstitutionSettingRecord).filter(InstitutionSettingRecord.key == key).first()
        return record.value if record else None

    @store_call
    def set_value(self, key: str, value: str) -> None:
        record = self.db.query(InstitutionSettingRecord).filter(InstitutionSettingRecord.key == key).first()
        if record:
            record.value = value
        else:
            self.db.add(InstitutionSettingRecord(key=key, value=value))
        self.db.flush()

    def get_late_fee_policy(self, default: LateFeePolicy) -> LateFeePolicy:
        """
        Stored policy, or default for any key that is absent.

        An unreadable or negative stored percent disables the surcharge.
        """
        enabled_raw = self.get_value(LATE_FEE_ENABLED_KEY)
        percent_raw = self.get_value(LATE_FEE_PERCENT_KEY)

        enabled = default.enabled
        if enabled_raw is not None:
            enabled = enabled_raw.strip().lower() in ("true", "1", "yes")

        percent = default.surcharge_percent
        if percent_raw is not None:
            try:
                percent = parse_amount(percent_raw)
            except InvalidAmountError:
                return LateFeePolicy(enabled=False, surcharge_percent=default.surcharge_percent)
            if percent < 0:
                return LateFeePolicy(enabled=False, surcharge_percent=default.surcharge_percent)

        return LateFeePolicy(enabled=enabled, surcharge_percent=percent)
