"""Prometheus metrics for allocation runs, reminder sweeps and risk snapshots"""

from prometheus_client import Counter, Histogram

from school_ledger.domain.models import AllocationResult, BatchResult

# Allocation metrics
allocation_outcome_counter = Counter(
    "ledger_allocation_outcomes_total",
    "Allocation steps by outcome",
    ["outcome"],  # applied | skipped
)

debts_settled_counter = Counter(
    "ledger_debts_settled_total",
    "Debts moved to paid by the allocation engine",
)

allocation_duration_histogram = Histogram(
    "ledger_allocation_duration_seconds",
    "Wall time of a single-student allocation run",
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)

# Reminder metrics
reminder_outcome_counter = Counter(
    "ledger_reminder_outcomes_total",
    "Reminder sweep results per debt",
    ["outcome"],  # sent | error | omitted
)

notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Risk snapshot metrics
risk_snapshot_counter = Counter(
    "ledger_risk_snapshots_total",
    "Risk snapshots written by tier",
    ["tier"],  # low | medium | high
)

# Store health
store_failures_counter = Counter(
    "ledger_store_failures_total",
    "Operations aborted because the store was unavailable",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_allocation(result: AllocationResult) -> None:
    """Record per-step allocation outcomes"""
    allocation_outcome_counter.labels(outcome="applied").inc(len(result.applied))
    allocation_outcome_counter.labels(outcome="skipped").inc(len(result.skipped))
    debts_settled_counter.inc(result.debts_settled)


def record_reminder_sweep(result: BatchResult) -> None:
    reminder_outcome_counter.labels(outcome="sent").inc(result.success)
    reminder_outcome_counter.labels(outcome="error").inc(result.errors)
    reminder_outcome_counter.labels(outcome="omitted").inc(result.omitted)
