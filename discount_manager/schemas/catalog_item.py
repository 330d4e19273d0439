from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class CatalogItemBase(BaseModel):
    title: str
    vendor: Optional[str] = None
    product_type: Optional[str] = None
    collections: List[str] = []
    tags: List[str] = []
    price: Decimal = Field(ge=0)


class CatalogItemCreate(CatalogItemBase):
    item_id: str


class CatalogItemResponse(CatalogItemBase):
    item_id: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
