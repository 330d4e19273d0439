from fastapi import APIRouter, Depends, Request
from sqlalchemy import text
from sqlalchemy.orm import Session

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import get_db
from discount_manager.repositories.unit_of_work import UnitOfWork
from discount_manager.schemas.system import HealthCheckResponse, SystemMetricsResponse
from discount_manager.services.scheduler_service import sweep_state

router = APIRouter(tags=["System"])


@router.get("/health", response_model=HealthCheckResponse)
def health_check(request: Request, db: Session = Depends(get_db)):
    """
    Lightweight public health check.
    Returns ok + DB connectivity check (SELECT 1).
    """
    now = utcnow()
    start_time = getattr(request.app.state, "start_time", now)
    uptime_seconds = (now - start_time).total_seconds()

    db_ok = True
    extra = {}
    try:
        db.execute(text("SELECT 1"))
    except Exception as e:
        db_ok = False
        extra["db_error"] = str(e)

    return HealthCheckResponse(
        status="ok" if db_ok else "degraded",
        now=now,
        uptime_seconds=uptime_seconds,
        db_ok=db_ok,
        extra=extra or None,
    )


@router.get("/metrics", response_model=SystemMetricsResponse)
def system_metrics(request: Request, db: Session = Depends(get_db)):
    """
    System metrics in JSON form: in-process request counters stored on
    app.state.metrics plus rule, schedule and ledger counts from the DB.
    """
    now = utcnow()
    start_time = getattr(request.app.state, "start_time", now)
    uptime_seconds = (now - start_time).total_seconds()

    metrics = getattr(request.app.state, "metrics", None) or {}
    requests_count = int(metrics.get("requests", 0))
    total_response_ms = float(metrics.get("total_response_ms", 0.0))
    avg_response_ms = (total_response_ms / requests_count) if requests_count > 0 else None

    uow = UnitOfWork(db)
    return SystemMetricsResponse(
        uptime_seconds=uptime_seconds,
        now=now,
        requests_count=requests_count,
        avg_response_ms=avg_response_ms,
        rules_by_status=uow.rules.count_by_status(),
        pending_events=uow.events.count_pending(),
        overdue_events=uow.events.count_pending(due_by=now),
        ledger_entries=uow.ledger.total(),
        items_push_pending=uow.items.count({"push_pending": True}),
        last_sweep_at=sweep_state["last_sweep_at"],
    )
