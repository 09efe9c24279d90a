"""SQLAlchemy ORM models for the ledger tables"""

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from school_ledger.utils.date_utils import utcnow

Base = declarative_base()

MONEY = Numeric(12, 2)


class StudentRecord(Base):
    """Student collaborator record (owned by the enrollment module)"""

    __tablename__ = "student"

    id = Column(Integer, primary_key=True, autoincrement=True)
    full_name = Column(Text, nullable=False)

    contacts = relationship("StudentContactRecord", back_populates="student", cascade="all, delete-orphan")


class StudentContactRecord(Base):
    """Responsible party who receives reminders"""

    __tablename__ = "student_contact"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("student.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)

    student = relationship("StudentRecord", back_populates="contacts")


class PaymentConceptRecord(Base):
    """Billable concept (tuition, enrollment, materials...)"""

    __tablename__ = "payment_concept"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False)
    late_fee_exempt = Column(Boolean, nullable=False, default=False)


class DebtRecord(Base):
    """Billable obligation; logically deleted only"""

    __tablename__ = "debt"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("student.id"), nullable=False, index=True)
    concept_id = Column(Integer, ForeignKey("payment_concept.id"), nullable=False)
    amount = Column(MONEY, nullable=False)
    due_date = Column(Date, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    created_at = Column(DateTime, nullable=False, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    payments = relationship("PaymentRecord", back_populates="debt")


class PaymentRecord(Base):
    """Received payment, optionally linked to the debt it settles"""

    __tablename__ = "payment"

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("student.id"), nullable=False, index=True)
    concept_id = Column(Integer, ForeignKey("payment_concept.id"), nullable=False)
    debt_id = Column(Integer, ForeignKey("debt.id"), nullable=True, index=True)
    amount = Column(MONEY, nullable=False)
    payment_date = Column(Date, nullable=False)
    method = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="pending")
    reference = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    debt = relationship("DebtRecord", back_populates="payments")


class NotificationLogRecord(Base):
    """Outcome of each reminder attempt (sent | error | omitted)"""

    __tablename__ = "notification_log"

    id = Column(Integer, primary_key=True, autoincrement=True)
    debt_id = Column(Integer, nullable=True, index=True)
    student_id = Column(Integer, nullable=True)
    status = Column(Text, nullable=False)
    recipients = Column(Text, nullable=False, default="")
    message = Column(Text, nullable=True)
    sent_at = Column(DateTime, nullable=False, default=utcnow, index=True)


class RiskSnapshotRecord(Base):
    """Monthly risk classification; written once per student and period"""

    __tablename__ = "risk_snapshot"
    __table_args__ = (UniqueConstraint("student_id", "month", "year", name="uq_risk_snapshot_period"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    student_id = Column(Integer, ForeignKey("student.id"), nullable=False, index=True)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    risk_tier = Column(Text, nullable=False)
    total_debt = Column(MONEY, nullable=False, default=0)
    total_paid = Column(MONEY, nullable=False, default=0)
    overdue_count = Column(Integer, nullable=False, default=0)
    on_time_payments = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class InstitutionSettingRecord(Base):
    """Key/value institution configuration (late fee policy lives here)"""

    __tablename__ = "institution_setting"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(Text, nullable=False, unique=True)
    value = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
