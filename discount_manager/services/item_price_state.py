"""
Per-item price state: the original price, the ordered stack of active rules
and the current price derived from them.

Every change runs as one unit of work under the item locks:

    read state -> recompute -> write state + ledger entry -> commit

and only after the commit is the new price handed to the PriceSink. A unit
of work opened while another one is running on the same service joins it, so
the scheduler can apply a rule to a whole scope and commit it together with
its event claim.
"""

import logging
from contextlib import ExitStack, contextmanager
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from discount_manager.core.exceptions import (
    ConcurrentItemUpdate,
    ItemNotFound,
    SinkFailure,
)
from discount_manager.enums.discounts import LedgerReason
from discount_manager.models.item_price_state import ItemPriceState
from discount_manager.models.price_ledger import PriceLedgerEntry
from discount_manager.repositories.unit_of_work import UnitOfWork
from discount_manager.services.locks import ItemLockRegistry, item_locks
from discount_manager.services.price_ledger import build_entry
from discount_manager.services.rule_engine import ZERO, compute, to_money

logger = logging.getLogger(__name__)


class MutationBatch:
    """What one unit of work changed, and what happened when it was pushed."""

    def __init__(self, item_ids: Iterable[str], locks: ExitStack):
        self.item_ids = set(item_ids)
        self.locks = locks
        self.entries: List[PriceLedgerEntry] = []
        self.pushes: Dict[str, Decimal] = {}
        self.push_failures: List[SinkFailure] = []


class ItemPriceService:
    def __init__(
        self,
        uow: UnitOfWork,
        price_source,
        sink,
        locks: ItemLockRegistry = item_locks,
    ):
        self.uow = uow
        self.price_source = price_source
        self.sink = sink
        self.locks = locks
        self._batch: Optional[MutationBatch] = None

    # ===================== UNIT OF WORK =====================

    @contextmanager
    def mutation(self, item_ids: Iterable[str], raise_sink_failure: bool = True):
        """
        Lock `item_ids`, run the body, commit, then push changed prices.

        A version conflict anywhere in the body or at commit rolls everything
        back and raises ConcurrentItemUpdate. With `raise_sink_failure` the
        first failed push is raised after the commit; otherwise failures are
        left on the yielded batch.
        """
        item_ids = list(item_ids)

        if self._batch is not None:
            batch = self._batch
            extra = set(item_ids) - batch.item_ids
            if extra:
                batch.locks.enter_context(self.locks.hold(extra))
                batch.item_ids |= extra
            yield batch
            return

        with ExitStack() as stack:
            stack.enter_context(self.locks.hold(item_ids))
            batch = MutationBatch(item_ids, stack)
            self._batch = batch
            try:
                yield batch
                self.uow.commit()
            except StaleDataError as exc:
                self.uow.rollback()
                logger.warning("Version conflict on items %s, rolled back", sorted(batch.item_ids))
                raise ConcurrentItemUpdate(sorted(batch.item_ids)) from exc
            except Exception:
                self.uow.rollback()
                raise
            finally:
                self._batch = None

        batch.push_failures = self.push_prices(batch.pushes)
        if batch.push_failures and raise_sink_failure:
            raise batch.push_failures[0]

    def _get_or_init(self, item_id: str, observed_price=None) -> ItemPriceState:
        state = self.uow.items.get(item_id)
        if state is not None:
            return state
        return self._add_state(self._new_state(item_id, observed_price))

    def _new_state(self, item_id: str, observed_price=None) -> ItemPriceState:
        if observed_price is None:
            observed_price = self.price_source.observed_price(item_id)
        price = to_money(observed_price)
        if price < ZERO:
            raise ValueError(f"Observed price {price} for item {item_id} is negative")

        return ItemPriceState(
            item_id=item_id,
            original_price=price,
            current_price=price,
            active_rule_ids=[],
            push_pending=False,
        )

    def _add_state(self, state: ItemPriceState) -> ItemPriceState:
        try:
            self.uow.items.add(state)
        except IntegrityError as exc:
            # another process initialised the same item first
            raise ConcurrentItemUpdate([state.item_id]) from exc
        logger.info("Captured original price %s for item %s", state.original_price, state.item_id)
        return state

    def _write(
        self,
        state: ItemPriceState,
        new_price,
        active_rule_ids: Sequence[str],
        reason: LedgerReason,
        cause_rule_id: Optional[str] = None,
        restored_from_entry_id: Optional[str] = None,
    ) -> PriceLedgerEntry:
        old_price = Decimal(state.current_price)
        new_price = to_money(new_price)

        state.current_price = new_price
        state.active_rule_ids = list(active_rule_ids)
        state.push_pending = True

        entry = build_entry(
            state.item_id,
            old_price,
            new_price,
            reason,
            cause_rule_id=cause_rule_id,
            restored_from_entry_id=restored_from_entry_id,
        )
        self.uow.ledger.add(entry)

        self._batch.entries.append(entry)
        self._batch.pushes[state.item_id] = new_price
        return entry

    def _stack(self, rule_ids: Sequence[str], edited=None) -> list:
        """Rules for `rule_ids` in stack order, with `edited` standing in for its stored copy."""
        rules = self.uow.rules.get_many(rule_ids)
        if len(rules) != len(rule_ids):
            missing = set(rule_ids) - {r.rule_id for r in rules}
            logger.warning("Active rules %s no longer exist, skipping them", sorted(missing))
        if edited is not None:
            rules = [edited if r.rule_id == edited.rule_id else r for r in rules]
        return rules

    # ===================== OPERATIONS =====================

    def get_state(self, item_id: str) -> ItemPriceState:
        state = self.uow.items.get(item_id)
        if state is None:
            raise ItemNotFound(item_id)
        return state

    def get_or_init(self, item_id: str, observed_price=None) -> ItemPriceState:
        with self.mutation([item_id]):
            state = self._get_or_init(item_id, observed_price)
        return state

    def apply_rule(self, item_id: str, rule, observed_price=None) -> Decimal:
        """
        Push `rule` onto the item's stack; a rule already active changes nothing.
        If the stack cannot be computed for this item nothing is stored, not
        even its original price.
        """
        with self.mutation([item_id]):
            state = self.uow.items.get(item_id)
            fresh = state is None
            if fresh:
                state = self._new_state(item_id, observed_price)
            active = list(state.active_rule_ids or [])
            if rule.rule_id in active:
                return Decimal(state.current_price)

            active.append(rule.rule_id)
            new_price = compute(state.original_price, self._stack(active, rule))
            if fresh:
                self._add_state(state)
            self._write(state, new_price, active, LedgerReason.rule_applied, cause_rule_id=rule.rule_id)
        return new_price

    def remove_rule(self, item_id: str, rule_id: str) -> Optional[Decimal]:
        """
        Drop `rule_id` from the item's stack and recompute from the original
        price. Removing the last rule lands exactly on the original price.
        Returns None for an item no rule ever touched.
        """
        with self.mutation([item_id]):
            state = self.uow.items.get(item_id)
            if state is None:
                return None
            active = list(state.active_rule_ids or [])
            if rule_id not in active:
                return Decimal(state.current_price)

            remaining = [r for r in active if r != rule_id]
            if remaining:
                new_price = compute(state.original_price, self._stack(remaining))
            else:
                new_price = to_money(state.original_price)
            self._write(state, new_price, remaining, LedgerReason.rule_removed)
        return new_price

    def refresh_rule(self, rule) -> List[str]:
        """Recompute every item holding `rule` after its definition changed."""
        item_ids = self.uow.items.holding_rule(rule.rule_id)
        changed = []
        with self.mutation(item_ids):
            for item_id in item_ids:
                state = self.uow.items.get(item_id)
                active = list(state.active_rule_ids or []) if state else []
                if rule.rule_id not in active:
                    continue
                new_price = compute(state.original_price, self._stack(active, rule))
                if new_price == Decimal(state.current_price):
                    continue
                self._write(state, new_price, active, LedgerReason.rule_updated, cause_rule_id=rule.rule_id)
                changed.append(item_id)

        if changed:
            logger.info("Rule %s edited, repriced %d item(s)", rule.rule_id, len(changed))
        return changed

    def manual_override(self, item_id: str, new_price) -> PriceLedgerEntry:
        """Set the price by hand; the active stack is left as it is."""
        if to_money(new_price) < ZERO:
            raise ValueError("Price must not be negative")
        with self.mutation([item_id]):
            state = self._get_or_init(item_id)
            entry = self._write(state, new_price, state.active_rule_ids or [], LedgerReason.manual_override)
        return entry

    def restore_price(self, item_id: str, price, restored_from_entry_id: str) -> PriceLedgerEntry:
        with self.mutation([item_id]):
            state = self.get_state(item_id)
            entry = self._write(
                state,
                price,
                state.active_rule_ids or [],
                LedgerReason.restore,
                restored_from_entry_id=restored_from_entry_id,
            )
        return entry

    def restore_to_original(self, item_id: str) -> PriceLedgerEntry:
        with self.mutation([item_id]):
            state = self.get_state(item_id)
            entry = self._write(state, state.original_price, [], LedgerReason.restore_original)
        return entry

    # ===================== PRICE SINK =====================

    def push_prices(self, pushes: Dict[str, Decimal]) -> List[SinkFailure]:
        failures: List[SinkFailure] = []
        for item_id, price in pushes.items():
            try:
                self.sink.push(item_id, price)
            except Exception as exc:
                self.uow.rollback()
                logger.warning("Price push failed for item %s (%s): %s", item_id, price, exc)
                failures.append(SinkFailure(item_id, price, exc))
                continue
            self._mark_pushed(item_id, price)
        return failures

    def _mark_pushed(self, item_id: str, price: Decimal) -> None:
        state = self.uow.items.get(item_id)
        # a newer price was written meanwhile and carries its own push
        if state is None or Decimal(state.current_price) != price:
            return
        state.push_pending = False
        try:
            self.uow.commit()
        except StaleDataError:
            self.uow.rollback()

    def resync_pending(self) -> Tuple[List[str], List[SinkFailure]]:
        """Re-send the stored price of every item whose last push is unconfirmed."""
        pushes = {s.item_id: Decimal(s.current_price) for s in self.uow.items.push_pending()}
        failures = self.push_prices(pushes)
        failed = {f.item_id for f in failures}
        pushed = [item_id for item_id in pushes if item_id not in failed]
        logger.info("Resync pushed %d price(s), %d failed", len(pushed), len(failures))
        return pushed, failures
