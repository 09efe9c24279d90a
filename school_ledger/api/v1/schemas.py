"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class DebtCreateRequest(BaseModel):
    """Request body for POST /v1/debts"""

    student_id: int = Field(..., gt=0)
    concept_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., ge=0, description="Principal owed")
    due_date: date


class PaymentCreateRequest(BaseModel):
    """Request body for POST /v1/payments"""

    student_id: int = Field(..., gt=0)
    concept_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., gt=0)
    payment_date: date
    method: str = Field(..., min_length=1, description="cash | card | transfer | spei ...")
    reference: Optional[str] = None


class SnapshotRequest(BaseModel):
    """Request body for POST /v1/risk-snapshots"""

    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=9999)


class DebtSchema(BaseModel):
    id: int
    student_id: int
    concept_id: int
    amount: Decimal
    due_date: date
    status: str
    created_at: datetime


class PaymentSchema(BaseModel):
    id: int
    student_id: int
    concept_id: int
    amount: Decimal
    payment_date: date
    method: str
    status: str
    debt_id: Optional[int] = None


class StatementDebtSchema(DebtSchema):
    """Debt line with its surcharge breakdown"""

    late_fee: Decimal
    total_with_late_fee: Decimal
    is_overdue: bool


class StudentSchema(BaseModel):
    id: int
    full_name: str


class LateFeePolicySchema(BaseModel):
    enabled: bool
    surcharge_percent: Decimal


class StatementResponse(BaseModel):
    """Response for GET /v1/students/{student_id}/statement"""

    student: StudentSchema
    debts: List[StatementDebtSchema]
    payments: List[PaymentSchema]
    total_debt: Decimal
    total_paid: Decimal
    balance: Decimal
    pending_debt_total: Decimal
    unapplied_total: Decimal
    total_late_fees: Decimal
    total_with_late_fees: Decimal
    overdue_count: int
    risk_tier: str
    compliance_percent: int
    last_payment_date: Optional[date] = None
    late_fee_policy: LateFeePolicySchema


class AllocationStepSchema(BaseModel):
    kind: Literal["applied", "skipped"]
    debt_id: Optional[int] = None
    payment_id: Optional[int] = None
    amount: Optional[Decimal] = None
    debt_status: Optional[str] = None
    surplus: Optional[Decimal] = None
    reason: Optional[str] = None


class AllocationResponse(BaseModel):
    """Response for POST /v1/students/{student_id}/allocations"""

    student_id: int
    payments_applied: int
    debts_settled: int
    amount_applied: Decimal
    remaining_debts: int
    remaining_payments: int
    steps: List[AllocationStepSchema]


class BatchResponse(BaseModel):
    """Aggregate result of a sweep"""

    success: int
    errors: int
    omitted: int
    details: List[str]


class ReminderEligibilityResponse(BaseModel):
    debt_id: int
    should_send: bool


class RiskSnapshotSchema(BaseModel):
    student_id: int
    month: int
    year: int
    risk_tier: str
    total_debt: Decimal
    total_paid: Decimal
    overdue_count: int
    on_time_payments: int
    created_at: str


class RiskSnapshotListResponse(BaseModel):
    month: int
    year: int
    snapshots: List[RiskSnapshotSchema]
