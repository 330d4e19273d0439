from typing import List, Optional

from fastapi import APIRouter, Depends

from discount_manager.dependencies.services import get_services
from discount_manager.enums.discounts import RuleStatus
from discount_manager.schemas.discount_rule import (
    DiscountRuleCreate,
    DiscountRuleResponse,
    DiscountRuleUpdate,
    PricePreviewItem,
    PricePreviewRequest,
    PricePreviewResponse,
    ValidationIssueResponse,
)
from discount_manager.schemas.scheduled_event import ScheduledEventResponse
from discount_manager.services import rule_engine
from discount_manager.services.container import Services
from discount_manager.services.scheduler_service import request_sweep

router = APIRouter(prefix="/discount-rules", tags=["Discount Rules"])


# ---------- CREATE RULE ----------

@router.post("/", response_model=DiscountRuleResponse, status_code=201)
def create_rule_route(data: DiscountRuleCreate, services: Services = Depends(get_services)):
    rule = services.rules.create_rule(data)
    request_sweep()
    return rule


# ---------- LIST RULES ----------

@router.get("/", response_model=List[DiscountRuleResponse])
def list_rules_route(
    status: Optional[RuleStatus] = None,
    include_deleted: bool = False,
    skip: int = 0,
    limit: int = 100,
    services: Services = Depends(get_services),
):
    return services.rules.list_rules(
        status=status, include_deleted=include_deleted, skip=skip, limit=limit
    )


# ---------- VALIDATE / PREVIEW (nothing persisted) ----------

@router.post("/validate", response_model=List[ValidationIssueResponse])
def validate_rule_route(data: DiscountRuleCreate):
    return [
        ValidationIssueResponse(field=issue.field, message=issue.message)
        for issue in rule_engine.validate(data)
    ]


@router.post("/preview", response_model=PricePreviewResponse)
def preview_rules_route(data: PricePreviewRequest):
    for spec in data.rules:
        rule_engine.ensure_valid_value(spec.kind, spec.value)

    items = [
        PricePreviewItem(base_price=base, discounted_price=discounted, discount=base - discounted)
        for base, discounted in rule_engine.preview(data.rules, data.prices)
    ]
    return PricePreviewResponse(items=items)


# ---------- GET SINGLE RULE ----------

@router.get("/{rule_id}", response_model=DiscountRuleResponse)
def get_rule_route(rule_id: str, services: Services = Depends(get_services)):
    return services.rules.get_rule(rule_id)


# ---------- UPDATE RULE ----------

@router.put("/{rule_id}", response_model=DiscountRuleResponse)
def update_rule_route(
    rule_id: str,
    data: DiscountRuleUpdate,
    services: Services = Depends(get_services),
):
    rule = services.rules.update_rule(rule_id, data)
    request_sweep()
    return rule


# ---------- PUBLISH DRAFT ----------

@router.post("/{rule_id}/publish", response_model=DiscountRuleResponse)
def publish_rule_route(rule_id: str, services: Services = Depends(get_services)):
    rule = services.rules.publish_rule(rule_id)
    request_sweep()
    return rule


# ---------- DELETE RULE ----------

@router.delete("/{rule_id}", response_model=DiscountRuleResponse)
def delete_rule_route(rule_id: str, services: Services = Depends(get_services)):
    return services.rules.delete_rule(rule_id)


# ---------- RULE EVENTS ----------

@router.get("/{rule_id}/events", response_model=List[ScheduledEventResponse])
def list_rule_events_route(rule_id: str, services: Services = Depends(get_services)):
    return services.rules.list_rule_events(rule_id)
