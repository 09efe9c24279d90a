"""POST/GET /v1/risk-snapshots - monthly risk classification"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from school_ledger.api.v1.schemas import (
    BatchResponse,
    RiskSnapshotListResponse,
    RiskSnapshotSchema,
    SnapshotRequest,
)
from school_ledger.domain.exceptions import StoreUnavailableError
from school_ledger.infrastructure.database.repositories import RiskSnapshotRepository
from school_ledger.infrastructure.database.session import get_db
from school_ledger.infrastructure.observability.metrics import store_failures_counter
from school_ledger.services.snapshots import RiskSnapshotService

router = APIRouter()


@router.post("/risk-snapshots", response_model=BatchResponse, status_code=201)
def generate_risk_snapshots(request_body: SnapshotRequest, db: Session = Depends(get_db)):
    """Write one snapshot per student for the period; existing rows are kept"""
    try:
        batch = RiskSnapshotService(db).generate(request_body.month, request_body.year)
    except StoreUnavailableError:
        store_failures_counter.inc()
        db.rollback()
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    return BatchResponse(success=batch.success, errors=batch.errors, omitted=batch.omitted, details=batch.details)


@router.get("/risk-snapshots", response_model=RiskSnapshotListResponse)
def list_risk_snapshots(
    month: int = Query(..., ge=1, le=12),
    year: int = Query(..., ge=2000),
    db: Session = Depends(get_db),
):
    try:
        records = RiskSnapshotRepository(db).list_by_period(month, year)
    except StoreUnavailableError:
        store_failures_counter.inc()
        raise HTTPException(status_code=503, detail="Ledger store unavailable")

    snapshots = [
        RiskSnapshotSchema(
            student_id=r.student_id,
            month=r.month,
            year=r.year,
            risk_tier=r.risk_tier,
            total_debt=r.total_debt,
            total_paid=r.total_paid,
            overdue_count=r.overdue_count,
            on_time_payments=r.on_time_payments,
            created_at=r.created_at.isoformat(),
        )
        for r in records
    ]

    return RiskSnapshotListResponse(month=month, year=year, snapshots=snapshots)
