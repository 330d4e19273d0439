from typing import List

from fastapi import APIRouter, Depends

from discount_manager.dependencies.services import get_services
from discount_manager.schemas.scheduled_event import (
    PushFailure,
    ResyncReport,
    ScheduledEventResponse,
    SweepReport,
)
from discount_manager.services.container import Services
from discount_manager.services.scheduler_service import sweep_state

router = APIRouter(prefix="/scheduler", tags=["Scheduler"])


# ---------- SWEEP WEBHOOK ----------

@router.post("/sweep", response_model=SweepReport)
def sweep_route(services: Services = Depends(get_services)):
    """Apply every due event now. Safe to call any number of times, from anywhere."""
    report = services.scheduler.sweep()
    sweep_state["last_sweep_at"] = report.finished_at
    sweep_state["last_report"] = report
    return report


# ---------- PENDING EVENTS ----------

@router.get("/events", response_model=List[ScheduledEventResponse])
def pending_events_route(limit: int = 500, services: Services = Depends(get_services)):
    return services.scheduler.pending_events(limit)


# ---------- RESYNC UNCONFIRMED PRICES ----------

@router.post("/resync", response_model=ResyncReport)
def resync_route(services: Services = Depends(get_services)):
    pushed, failures = services.items.resync_pending()
    return ResyncReport(
        pushed=pushed,
        failures=[
            PushFailure(item_id=f.item_id, price=f.price, error=str(f.cause))
            for f in failures
        ],
    )
