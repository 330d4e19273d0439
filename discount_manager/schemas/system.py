from pydantic import BaseModel
from typing import Optional, Dict, Any
from datetime import datetime


class HealthCheckResponse(BaseModel):
    status: str
    now: datetime
    uptime_seconds: float
    db_ok: bool
    extra: Optional[Dict[str, Any]] = None


class SystemMetricsResponse(BaseModel):
    uptime_seconds: float
    now: datetime

    # middleware counters
    requests_count: int
    avg_response_ms: Optional[float] = None

    # DB metrics
    rules_by_status: Dict[str, int] = {}
    pending_events: int
    overdue_events: int
    ledger_entries: int
    items_push_pending: int

    last_sweep_at: Optional[datetime] = None
