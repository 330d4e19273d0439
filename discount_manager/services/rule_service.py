import logging
import uuid
from datetime import datetime
from typing import List, Optional

from discount_manager.core.clock import to_utc_naive, utcnow
from discount_manager.core.exceptions import RuleNotFound, RuleStateError
from discount_manager.enums.discounts import EventKind, RuleKind, RuleStatus, TargetScope
from discount_manager.models.discount_rule import DiscountRule
from discount_manager.models.scheduled_event import ScheduledEvent
from discount_manager.repositories.unit_of_work import UnitOfWork
from discount_manager.schemas.discount_rule import DiscountRuleCreate, DiscountRuleUpdate
from discount_manager.services.item_price_state import ItemPriceService
from discount_manager.services.rule_engine import ensure_valid
from discount_manager.services.scheduler import Scheduler

logger = logging.getLogger(__name__)


def _generate_rule_id() -> str:
    return f"RULE_{uuid.uuid4().hex[:8].upper()}"


class RuleService:
    """Operator-facing lifecycle of discount rules: draft -> scheduled -> active -> completed."""

    def __init__(self, uow: UnitOfWork, items: ItemPriceService, scheduler: Scheduler):
        self.uow = uow
        self.items = items
        self.scheduler = scheduler

    # ---------- READ ----------

    def get_rule(self, rule_id: str) -> DiscountRule:
        rule = self.uow.rules.get(rule_id)
        if rule is None:
            raise RuleNotFound(rule_id)
        return rule

    def list_rules(
        self,
        status: Optional[RuleStatus] = None,
        include_deleted: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> List[DiscountRule]:
        return self.uow.rules.list_rules(
            status=RuleStatus(status).value if status else None,
            include_deleted=include_deleted,
            skip=skip,
            limit=limit,
        )

    def list_rule_events(self, rule_id: str) -> List[ScheduledEvent]:
        self.get_rule(rule_id)
        return self.uow.events.for_rule(rule_id)

    # ---------- WRITE ----------

    def _apply_fields(self, rule: DiscountRule, data) -> None:
        tz_name = data.schedule.timezone or "UTC"
        rule.name = data.name.strip()
        rule.kind = RuleKind(data.kind).value
        rule.value = str(data.value).strip()
        rule.target_scope = TargetScope(data.target.scope).value
        rule.target_id = data.target.scope_id.strip()
        rule.start_at = to_utc_naive(data.schedule.start_at, tz_name)
        rule.end_at = (
            to_utc_naive(data.schedule.end_at, tz_name)
            if data.schedule.end_at is not None
            else None
        )
        rule.timezone = tz_name
        rule.tags_add = list(data.tag_mutations.add)
        rule.tags_remove = list(data.tag_mutations.remove)

    def create_rule(self, data: DiscountRuleCreate, now: Optional[datetime] = None) -> DiscountRule:
        """
        Validate and store a new rule. Unless `data.draft` is set it is
        scheduled right away; a start time in the past activates on the next
        sweep.
        """
        ensure_valid(data)

        rule = DiscountRule(rule_id=_generate_rule_id(), status=RuleStatus.draft.value)
        self._apply_fields(rule, data)
        try:
            self.uow.rules.add(rule)
            if not data.draft:
                self.scheduler.upsert_schedule(rule, now, commit=False)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise

        logger.info("Created rule %s (%s %s) as %s", rule.rule_id, rule.kind, rule.value, rule.status)
        return rule

    def update_rule(
        self,
        rule_id: str,
        data: DiscountRuleUpdate,
        now: Optional[datetime] = None,
    ) -> DiscountRule:
        """
        Replace a rule's definition and reschedule it. Items already holding
        an active rule are repriced right away. The target of an active rule
        cannot change.
        """
        rule = self.get_rule(rule_id)
        status = RuleStatus(rule.status)
        if rule.deleted_at is not None or status == RuleStatus.completed:
            raise RuleStateError(rule_id, status.value, "completed rules cannot be edited")

        ensure_valid(data)

        if status == RuleStatus.active and (
            TargetScope(data.target.scope).value != rule.target_scope
            or data.target.scope_id.strip() != rule.target_id
        ):
            raise RuleStateError(rule_id, status.value, "the target of an active rule cannot change")

        pricing_changed = (RuleKind(data.kind).value, str(data.value).strip()) != (rule.kind, rule.value)
        reprice = status == RuleStatus.active and pricing_changed

        # definition, schedule and holder prices commit together or not at all
        holders = self.uow.items.holding_rule(rule_id) if reprice else []
        with self.items.mutation(holders):
            self._apply_fields(rule, data)
            if status != RuleStatus.draft:
                self.scheduler.upsert_schedule(rule, now, commit=False)
            if reprice:
                self.items.refresh_rule(rule)

        logger.info("Updated rule %s", rule_id)
        return rule

    def publish_rule(self, rule_id: str, now: Optional[datetime] = None) -> DiscountRule:
        rule = self.get_rule(rule_id)
        if rule.deleted_at is not None or rule.status != RuleStatus.draft.value:
            raise RuleStateError(rule_id, rule.status, "only drafts can be published")

        try:
            self.scheduler.upsert_schedule(rule, now, commit=False)
            self.uow.commit()
        except Exception:
            self.uow.rollback()
            raise
        logger.info("Published rule %s", rule_id)
        return rule

    def delete_rule(self, rule_id: str, now: Optional[datetime] = None) -> DiscountRule:
        """
        Retire a rule: pending events are cancelled and, if it is active, it
        is removed from every item holding it. The rule row stays, marked
        completed and deleted, so ledger entries keep their cause.
        """
        now = now or utcnow()
        rule = self.get_rule(rule_id)
        if rule.deleted_at is not None:
            raise RuleStateError(rule_id, rule.status, "rule is already deleted")

        was_active = rule.status == RuleStatus.active.value
        with self.items.mutation(self.uow.items.holding_rule(rule_id), raise_sink_failure=False) as batch:
            self.scheduler.cancel_rule_events(rule_id, now, commit=False)
            # re-read after the cancel: a sweep that claimed first has committed by now
            holders = self.uow.items.holding_rule(rule_id)
            for item_id in holders:
                self.items.remove_rule(item_id, rule_id)
            rule.status = RuleStatus.completed.value
            rule.deleted_at = now

        logger.info("Deleted rule %s, removed from %d item(s)", rule_id, len(holders))

        if was_active or holders:
            for failure in self.scheduler.write_tags(rule, EventKind.deactivate, holders):
                logger.warning("Tag removal for item %s failed: %s", failure.item_id, failure.error)
        if batch.push_failures:
            raise batch.push_failures[0]
        return rule
