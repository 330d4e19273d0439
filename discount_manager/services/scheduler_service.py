import asyncio
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from discount_manager.core.clock import utcnow
from discount_manager.core.config import settings
from discount_manager.database.connection import SessionLocal
from discount_manager.schemas.scheduled_event import SweepReport
from discount_manager.services.container import build_services

logger = logging.getLogger(__name__)

# floor between sweeps while an overdue event keeps failing
MIN_SLEEP_SECONDS = 1.0

sweep_state = {
    "last_sweep_at": None,
    "last_report": None,
}

_loop: Optional[asyncio.AbstractEventLoop] = None
_wakeup: Optional[asyncio.Event] = None


def get_db_session() -> Session:
    return SessionLocal()


def run_sweep(now: Optional[datetime] = None) -> Tuple[SweepReport, Optional[datetime]]:
    """One sweep on a fresh session; returns the report and the next pending fire time."""
    db = get_db_session()
    try:
        scheduler = build_services(db).scheduler
        report = scheduler.sweep(now)
        next_at = scheduler.next_fire_at()
    finally:
        db.close()

    sweep_state["last_sweep_at"] = report.finished_at
    sweep_state["last_report"] = report
    return report, next_at


def request_sweep() -> None:
    """Wake the background loop early (safe to call from any thread)."""
    if _loop is not None and _wakeup is not None:
        _loop.call_soon_threadsafe(_wakeup.set)


def _sleep_for(next_at: Optional[datetime], interval: float) -> float:
    if next_at is None:
        return interval
    until_next = (next_at - utcnow()).total_seconds()
    return max(MIN_SLEEP_SECONDS, min(interval, until_next))


# ---------- SWEEP SCHEDULER ----------

async def sweep_scheduler_loop(interval: Optional[float] = None):
    """
    Runs a sweep every SWEEP_INTERVAL_SECONDS, or sooner when a scheduled
    event comes due or request_sweep() is called.
    """
    global _loop, _wakeup
    _loop = asyncio.get_running_loop()
    _wakeup = asyncio.Event()
    interval = interval or settings.SWEEP_INTERVAL_SECONDS

    logger.info("Sweep loop started (interval %ss)", interval)
    while True:
        _wakeup.clear()
        next_at = None
        try:
            _, next_at = await asyncio.to_thread(run_sweep)
        except Exception:
            logger.exception("Sweep loop iteration failed")

        try:
            await asyncio.wait_for(_wakeup.wait(), timeout=_sleep_for(next_at, interval))
        except asyncio.TimeoutError:
            pass
