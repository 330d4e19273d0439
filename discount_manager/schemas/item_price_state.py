from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import BaseModel, Field


class ItemPriceStateResponse(BaseModel):
    item_id: str
    original_price: Decimal
    current_price: Decimal
    active_rule_ids: List[str] = []
    push_pending: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ManualOverrideRequest(BaseModel):
    price: Decimal = Field(ge=0, decimal_places=2)


class RestoreResponse(BaseModel):
    state: ItemPriceStateResponse
    entry_id: str
