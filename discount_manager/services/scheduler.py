"""
Time-driven rule activation and deactivation.

Every rule with a schedule owns at most one pending activate and one pending
deactivate event. A sweep applies the events that are due; each event is
claimed with a conditional UPDATE inside the same transaction as its price
changes, so sweeps may overlap, repeat or run late without applying an event
twice.
"""

import logging
import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from discount_manager.core.clock import utcnow
from discount_manager.core.exceptions import InvalidFormula, RuleStateError
from discount_manager.enums.discounts import EventKind, RuleStatus
from discount_manager.models.discount_rule import DiscountRule
from discount_manager.models.scheduled_event import ScheduledEvent
from discount_manager.repositories.unit_of_work import UnitOfWork
from discount_manager.schemas.scheduled_event import (
    EventFailure,
    ItemFailure,
    PushFailure,
    SweepReport,
)
from discount_manager.services.item_price_state import ItemPriceService

logger = logging.getLogger(__name__)


def _generate_event_id() -> str:
    return f"EVT_{uuid.uuid4().hex[:12].upper()}"


class Scheduler:
    def __init__(self, uow: UnitOfWork, items: ItemPriceService, resolver, tags):
        self.uow = uow
        self.items = items
        self.resolver = resolver
        self.tags = tags

    # ---------- SCHEDULING ----------

    def _new_event(self, rule_id: str, kind: EventKind, fire_at: datetime) -> ScheduledEvent:
        return self.uow.events.add(
            ScheduledEvent(
                event_id=_generate_event_id(),
                rule_id=rule_id,
                kind=kind.value,
                fire_at=fire_at,
                cancelled=False,
            )
        )

    def upsert_schedule(
        self,
        rule: DiscountRule,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> List[ScheduledEvent]:
        """
        Replace the rule's pending events with ones matching its schedule.

        A start time already in the past fires on the next sweep. A rule that
        is already active only gets a new deactivate event.
        """
        now = now or utcnow()
        status = RuleStatus(rule.status)
        if status == RuleStatus.completed:
            raise RuleStateError(rule.rule_id, status.value, "completed rules cannot be rescheduled")

        self.uow.events.cancel_pending(rule.rule_id, now)

        events = []
        if status == RuleStatus.active:
            activate_at = now
        else:
            activate_at = max(rule.start_at, now)
            events.append(self._new_event(rule.rule_id, EventKind.activate, activate_at))

        if rule.end_at is not None:
            # never before the activation, so the pair always fires in order
            deactivate_at = max(rule.end_at, activate_at)
            events.append(self._new_event(rule.rule_id, EventKind.deactivate, deactivate_at))

        if status == RuleStatus.draft:
            rule.status = RuleStatus.scheduled.value

        if commit:
            self.uow.commit()
        logger.info(
            "Scheduled rule %s: %s",
            rule.rule_id,
            ", ".join(f"{e.kind}@{e.fire_at.isoformat()}" for e in events) or "no events",
        )
        return events

    def cancel_rule_events(
        self,
        rule_id: str,
        now: Optional[datetime] = None,
        commit: bool = True,
    ) -> int:
        cancelled = self.uow.events.cancel_pending(rule_id, now or utcnow())
        if commit:
            self.uow.commit()
        if cancelled:
            logger.info("Cancelled %d pending event(s) of rule %s", cancelled, rule_id)
        return cancelled

    def next_fire_at(self) -> Optional[datetime]:
        return self.uow.events.next_fire_at()

    def pending_events(self, limit: int = 500) -> List[ScheduledEvent]:
        return self.uow.events.pending(limit)

    # ---------- SWEEP ----------

    def sweep(self, now: Optional[datetime] = None) -> SweepReport:
        now = now or utcnow()
        report = SweepReport(started_at=utcnow())

        # plain tuples: ORM rows expire on every commit below
        due = [
            (e.event_id, e.rule_id, EventKind(e.kind))
            for e in self.uow.events.due(now)
        ]
        report.due = len(due)

        for event_id, rule_id, kind in due:
            try:
                applied = self._run_event(event_id, rule_id, kind, now, report)
            except Exception as exc:
                self.uow.rollback()
                logger.exception(
                    "Failed to apply %s event %s of rule %s", kind.value, event_id, rule_id
                )
                report.failed.append(EventFailure(event_id=event_id, rule_id=rule_id, error=str(exc)))
                continue

            if applied:
                report.applied.append(event_id)
            else:
                report.skipped.append(event_id)

        report.finished_at = utcnow()
        if due:
            logger.info(
                "Sweep at %s: %d due, %d applied, %d skipped, %d failed",
                now.isoformat(),
                report.due,
                len(report.applied),
                len(report.skipped),
                len(report.failed),
            )
        return report

    def _run_event(
        self,
        event_id: str,
        rule_id: str,
        kind: EventKind,
        now: datetime,
        report: SweepReport,
    ) -> bool:
        rule = self.uow.rules.get(rule_id)
        live = (
            rule is not None
            and rule.deleted_at is None
            and rule.status != RuleStatus.completed.value
        )

        if kind == EventKind.activate and not live:
            claimed = self.uow.events.claim(event_id, now)
            self.uow.commit()
            if claimed:
                logger.info("Activation %s of rule %s consumed without effect", event_id, rule_id)
            return claimed

        # scope lookups and original prices are fetched before any lock is taken
        observed: Dict[str, Decimal] = {}
        if kind == EventKind.activate:
            item_ids = list(self.resolver.resolve_items(rule.target_scope, rule.target_id))
            for item_id in item_ids:
                if self.uow.items.get(item_id) is None:
                    observed[item_id] = self.items.price_source.observed_price(item_id)
        else:
            holders = set(self.uow.items.holding_rule(rule_id))
            if live:
                holders.update(self.resolver.resolve_items(rule.target_scope, rule.target_id))
            item_ids = sorted(holders)

        with self.items.mutation(item_ids, raise_sink_failure=False) as batch:
            if not self.uow.events.claim(event_id, now):
                logger.debug("Event %s already claimed by another sweep", event_id)
                return False

            if kind == EventKind.activate:
                targeted = item_ids
                item_ids = []
                for item_id in targeted:
                    try:
                        self.items.apply_rule(item_id, rule, observed.get(item_id))
                    except InvalidFormula as exc:
                        # undefined at this item's price; the rest of the scope still gets the rule
                        logger.warning(
                            "Rule %s not applied to item %s: %s", rule_id, item_id, exc.reason
                        )
                        report.item_failures.append(
                            ItemFailure(event_id=event_id, rule_id=rule_id, item_id=item_id, error=str(exc))
                        )
                        continue
                    item_ids.append(item_id)
                rule.status = RuleStatus.active.value
            else:
                for item_id in item_ids:
                    self.items.remove_rule(item_id, rule_id)
                if rule is not None and rule.status != RuleStatus.completed.value:
                    rule.status = RuleStatus.completed.value

        logger.info(
            "Applied %s event %s of rule %s to %d item(s)", kind.value, event_id, rule_id, len(item_ids)
        )
        for failure in batch.push_failures:
            report.push_failures.append(
                PushFailure(item_id=failure.item_id, price=failure.price, error=str(failure.cause))
            )

        if rule is not None and item_ids:
            report.tag_failures.extend(self.write_tags(rule, kind, item_ids))
        return True

    def write_tags(self, rule: DiscountRule, kind: EventKind, item_ids: List[str]) -> List[PushFailure]:
        """Apply the rule's tag mutation for `kind`; failures are returned, not raised."""
        if kind == EventKind.activate:
            tags, write = list(rule.tags_add or []), self.tags.add_tags
        else:
            tags, write = list(rule.tags_remove or []), self.tags.remove_tags
        if not tags or not item_ids:
            return []

        try:
            write(item_ids, tags)
        except Exception as exc:
            self.uow.rollback()
            logger.warning("Tag update for rule %s failed: %s", rule.rule_id, exc)
            return [PushFailure(item_id=item_id, error=str(exc)) for item_id in item_ids]
        return []
