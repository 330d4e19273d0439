from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class LedgerEntryResponse(BaseModel):
    entry_id: str
    item_id: str
    old_price: Decimal
    new_price: Decimal
    reason: str
    cause_rule_id: Optional[str] = None
    restored_from_entry_id: Optional[str] = None
    timestamp: datetime

    class Config:
        from_attributes = True


class LedgerPageMeta(BaseModel):
    total: int
    page: int
    page_size: int
    total_pages: int


class LedgerPageResponse(BaseModel):
    items: List[LedgerEntryResponse]
    meta: LedgerPageMeta
