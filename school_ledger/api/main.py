"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from school_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from school_ledger.api.v1 import allocations, records, reminders, snapshots, statements
from school_ledger.domain.reminders import ReminderSweepState
from school_ledger.infrastructure.observability.logging import setup_logging
from school_ledger.config import settings
from school_ledger.services.locks import StudentLocks

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="School Ledger",
        description="Student debts, payment allocation, reminders and risk snapshots",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Shared per-app state: allocation locks and the reminder sweep tracker
    app.state.student_locks = StudentLocks()
    app.state.reminder_sweep_state = ReminderSweepState()

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(records.router, prefix="/v1", tags=["records"])
    app.include_router(statements.router, prefix="/v1", tags=["statements"])
    app.include_router(allocations.router, prefix="/v1", tags=["allocations"])
    app.include_router(reminders.router, prefix="/v1", tags=["reminders"])
    app.include_router(snapshots.router, prefix="/v1", tags=["risk-snapshots"])

    return app


app = create_app()
