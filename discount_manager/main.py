import asyncio
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from discount_manager.core.clock import utcnow
from discount_manager.core.config import settings
from discount_manager.core.exceptions import (
    ConcurrentItemUpdate,
    DiscountError,
    EntryNotFound,
    ItemNotFound,
    RuleNotFound,
    RuleStateError,
    RuleValidationError,
    SinkFailure,
)
from discount_manager.core.logging import configure_logging
from discount_manager.database.init_db import init_db
from discount_manager.middleware.metrics import MetricsMiddleware, new_metrics
from discount_manager.routes import system
from discount_manager.routes.analytics import router as analytics_router
from discount_manager.routes.catalog_items import router as catalog_items_router
from discount_manager.routes.discount_rules import router as discount_rules_router
from discount_manager.routes.items import router as items_router
from discount_manager.routes.scheduler import router as scheduler_router
from discount_manager.services.scheduler_service import sweep_scheduler_loop

configure_logging()
logger = logging.getLogger(__name__)

init_db()

app = FastAPI(title="Discount Rule & Scheduling Service")

app.add_middleware(MetricsMiddleware)

app.include_router(discount_rules_router)
app.include_router(items_router)
app.include_router(scheduler_router)
app.include_router(catalog_items_router)
app.include_router(analytics_router)
app.include_router(system.router)


# ---------- ERROR MAPPING ----------

@app.exception_handler(RuleValidationError)
async def rule_validation_handler(request: Request, exc: RuleValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "issues": [{"field": i.field, "message": i.message} for i in exc.issues],
        },
    )


@app.exception_handler(RuleNotFound)
@app.exception_handler(ItemNotFound)
@app.exception_handler(EntryNotFound)
async def not_found_handler(request: Request, exc: DiscountError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(RuleStateError)
@app.exception_handler(ConcurrentItemUpdate)
async def conflict_handler(request: Request, exc: DiscountError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(SinkFailure)
async def sink_failure_handler(request: Request, exc: SinkFailure):
    # state and ledger are committed; the push is retried through /scheduler/resync
    return JSONResponse(
        status_code=502,
        content={"detail": str(exc), "item_id": exc.item_id, "price": str(exc.price)},
    )


@app.on_event("startup")
async def startup_event():
    app.state.start_time = utcnow()
    app.state.metrics = new_metrics()
    if settings.SCHEDULER_ENABLED:
        app.state.sweep_task = asyncio.create_task(sweep_scheduler_loop())
    else:
        logger.info("Background sweep loop disabled; sweeps run only via /scheduler/sweep")


@app.on_event("shutdown")
async def shutdown_event():
    task = getattr(app.state, "sweep_task", None)
    if task is not None:
        task.cancel()
