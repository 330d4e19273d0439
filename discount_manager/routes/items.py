import math

from fastapi import APIRouter, Depends, Query

from discount_manager.core.config import settings
from discount_manager.dependencies.services import get_services
from discount_manager.schemas.item_price_state import (
    ItemPriceStateResponse,
    ManualOverrideRequest,
    RestoreResponse,
)
from discount_manager.schemas.price_ledger import (
    LedgerEntryResponse,
    LedgerPageMeta,
    LedgerPageResponse,
)
from discount_manager.services.container import Services

router = APIRouter(prefix="/items", tags=["Item Prices"])


# ---------- PRICE STATE ----------

@router.get("/{item_id}/price-state", response_model=ItemPriceStateResponse)
def get_price_state_route(item_id: str, services: Services = Depends(get_services)):
    return services.items.get_state(item_id)


# ---------- PRICE HISTORY ----------

@router.get("/{item_id}/price-history", response_model=LedgerPageResponse)
def get_price_history_route(
    item_id: str,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1),
    services: Services = Depends(get_services),
):
    entries, total = services.ledger.history(item_id, page=page, page_size=page_size)
    page_size = min(page_size, settings.PRICE_HISTORY_MAX_PAGE_SIZE)
    return LedgerPageResponse(
        items=[LedgerEntryResponse.model_validate(e) for e in entries],
        meta=LedgerPageMeta(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=math.ceil(total / page_size) if total else 0,
        ),
    )


@router.get("/{item_id}/price-history/{entry_id}", response_model=LedgerEntryResponse)
def get_price_entry_route(item_id: str, entry_id: str, services: Services = Depends(get_services)):
    return services.ledger.get_entry(item_id, entry_id)


# ---------- RESTORE ----------

@router.post("/{item_id}/restore/{entry_id}", response_model=RestoreResponse)
def restore_price_route(item_id: str, entry_id: str, services: Services = Depends(get_services)):
    entry = services.ledger.restore(item_id, entry_id)
    return RestoreResponse(
        state=ItemPriceStateResponse.model_validate(services.items.get_state(item_id)),
        entry_id=entry.entry_id,
    )


@router.post("/{item_id}/restore-original", response_model=RestoreResponse)
def restore_original_route(item_id: str, services: Services = Depends(get_services)):
    entry = services.ledger.restore_to_original(item_id)
    return RestoreResponse(
        state=ItemPriceStateResponse.model_validate(services.items.get_state(item_id)),
        entry_id=entry.entry_id,
    )


# ---------- MANUAL OVERRIDE ----------

@router.put("/{item_id}/override", response_model=LedgerEntryResponse)
def manual_override_route(
    item_id: str,
    data: ManualOverrideRequest,
    services: Services = Depends(get_services),
):
    return services.items.manual_override(item_id, data.price)
