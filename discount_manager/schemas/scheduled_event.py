from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel


class ScheduledEventResponse(BaseModel):
    event_id: str
    rule_id: str
    kind: str
    fire_at: datetime
    applied_at: Optional[datetime] = None
    cancelled: bool = False

    class Config:
        from_attributes = True


class EventFailure(BaseModel):
    event_id: str
    rule_id: str
    error: str


class ItemFailure(BaseModel):
    event_id: str
    rule_id: str
    item_id: str
    error: str


class PushFailure(BaseModel):
    item_id: str
    price: Optional[Decimal] = None
    error: str


class SweepReport(BaseModel):
    started_at: datetime
    finished_at: Optional[datetime] = None
    due: int = 0
    applied: List[str] = []
    skipped: List[str] = []
    failed: List[EventFailure] = []
    # items left out of an applied activation
    item_failures: List[ItemFailure] = []
    push_failures: List[PushFailure] = []
    tag_failures: List[PushFailure] = []


class ResyncReport(BaseModel):
    pushed: List[str] = []
    failures: List[PushFailure] = []
