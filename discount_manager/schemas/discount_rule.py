from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from discount_manager.enums.discounts import RuleKind, RuleStatus, TargetScope


class TargetSchema(BaseModel):
    scope: TargetScope
    scope_id: str


class ScheduleSchema(BaseModel):
    # naive timestamps are read in `timezone`
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    timezone: str = "UTC"


class TagMutationsSchema(BaseModel):
    add: List[str] = []
    remove: List[str] = []

    @field_validator("add", "remove")
    @classmethod
    def _dedupe(cls, tags: List[str]) -> List[str]:
        return list(dict.fromkeys(t.strip() for t in tags if t and t.strip()))


class DiscountRuleBase(BaseModel):
    name: str = ""
    kind: RuleKind
    value: str
    target: TargetSchema
    schedule: ScheduleSchema
    tag_mutations: TagMutationsSchema = TagMutationsSchema()

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, v):
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class DiscountRuleCreate(DiscountRuleBase):
    # drafts are stored without scheduling until published
    draft: bool = False


class DiscountRuleUpdate(DiscountRuleBase):
    pass


class DiscountRuleResponse(DiscountRuleBase):
    rule_id: str
    status: RuleStatus
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---------- Price preview ----------

class RulePreviewSpec(BaseModel):
    kind: RuleKind
    value: str

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, v):
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class PricePreviewRequest(BaseModel):
    rules: List[RulePreviewSpec] = Field(min_length=1)
    prices: List[Decimal] = Field(min_length=1)


class PricePreviewItem(BaseModel):
    base_price: Decimal
    discounted_price: Decimal
    discount: Decimal


class PricePreviewResponse(BaseModel):
    items: List[PricePreviewItem]


class ValidationIssueResponse(BaseModel):
    field: str
    message: str
