"""Pytest fixtures for testing"""

import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from school_ledger.api.main import create_app
from school_ledger.domain.models import Debt, DebtStatus, Payment, PaymentStatus
from school_ledger.infrastructure.database.models import (
    Base,
    PaymentConceptRecord,
    StudentContactRecord,
    StudentRecord,
)
from school_ledger.infrastructure.database.session import get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

BASE_TIME = datetime(2024, 1, 1, 8, 0, 0)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture
def student(db: Session) -> StudentRecord:
    """Student with one reachable guardian"""
    record = StudentRecord(full_name="Ana Torres")
    db.add(record)
    db.flush()
    db.add(StudentContactRecord(student_id=record.id, name="Laura Torres", email="laura@example.com"))
    db.commit()
    return record


@pytest.fixture
def concept(db: Session) -> PaymentConceptRecord:
    record = PaymentConceptRecord(name="Tuition", late_fee_exempt=False)
    db.add(record)
    db.commit()
    return record


@pytest.fixture
def make_debt():
    """Factory for in-memory debts; created_at advances with the id so FIFO order follows ids"""

    def _make(
        id: int,
        amount: str,
        status: DebtStatus = DebtStatus.PENDING,
        student_id: int = 1,
        concept_id: int = 1,
        due_date: date = date(2024, 2, 1),
        created_at: datetime | None = None,
    ) -> Debt:
        return Debt(
            id=id,
            student_id=student_id,
            concept_id=concept_id,
            amount=Decimal(amount),
            due_date=due_date,
            status=status,
            created_at=created_at or BASE_TIME + timedelta(minutes=id),
        )

    return _make


@pytest.fixture
def make_payment():
    """Factory for in-memory payments"""

    def _make(
        id: int,
        amount: str,
        student_id: int = 1,
        concept_id: int = 1,
        payment_date: date = date(2024, 1, 15),
        method: str = "cash",
        debt_id: int | None = None,
        status: PaymentStatus = PaymentStatus.CONFIRMED,
    ) -> Payment:
        return Payment(
            id=id,
            student_id=student_id,
            concept_id=concept_id,
            amount=Decimal(amount),
            payment_date=payment_date,
            method=method,
            status=status,
            debt_id=debt_id,
        )

    return _make
