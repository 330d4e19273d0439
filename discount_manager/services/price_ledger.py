import logging
import uuid
from decimal import Decimal
from typing import List, Optional, Tuple

from discount_manager.core.clock import utcnow
from discount_manager.core.config import settings
from discount_manager.core.exceptions import EntryNotFound
from discount_manager.enums.discounts import LedgerReason
from discount_manager.models.price_ledger import PriceLedgerEntry
from discount_manager.repositories.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)


def _generate_entry_id() -> str:
    return f"PCH_{uuid.uuid4().hex[:12].upper()}"


def build_entry(
    item_id: str,
    old_price: Decimal,
    new_price: Decimal,
    reason: LedgerReason,
    cause_rule_id: Optional[str] = None,
    restored_from_entry_id: Optional[str] = None,
) -> PriceLedgerEntry:
    return PriceLedgerEntry(
        entry_id=_generate_entry_id(),
        item_id=item_id,
        old_price=old_price,
        new_price=new_price,
        reason=LedgerReason(reason).value,
        cause_rule_id=cause_rule_id,
        restored_from_entry_id=restored_from_entry_id,
        timestamp=utcnow(),
    )


class PriceLedger:
    """
    Append-only price history per item.

    Restores do not rewrite history: they go through the item price state
    like any other change and append a new entry pointing at the entry
    they reversed.
    """

    def __init__(self, uow: UnitOfWork, items):
        self.uow = uow
        self.items = items  # ItemPriceService

    def record_change(
        self,
        item_id: str,
        old_price: Decimal,
        new_price: Decimal,
        cause_rule_id: Optional[str] = None,
        reason: LedgerReason = LedgerReason.manual_override,
        restored_from_entry_id: Optional[str] = None,
    ) -> PriceLedgerEntry:
        entry = build_entry(
            item_id,
            old_price,
            new_price,
            reason,
            cause_rule_id=cause_rule_id,
            restored_from_entry_id=restored_from_entry_id,
        )
        self.uow.ledger.add(entry)
        self.uow.commit()
        return entry

    def get_entry(self, item_id: str, entry_id: str) -> PriceLedgerEntry:
        entry = self.uow.ledger.get(entry_id)
        if entry is None or entry.item_id != item_id:
            raise EntryNotFound(item_id, entry_id)
        return entry

    def restore(self, item_id: str, to_entry_id: str) -> PriceLedgerEntry:
        """Put back the price the item had right before `to_entry_id`."""
        target = self.get_entry(item_id, to_entry_id)
        logger.info(
            "Restoring item %s to %s (before entry %s)", item_id, target.old_price, to_entry_id
        )
        return self.items.restore_price(item_id, Decimal(target.old_price), target.entry_id)

    def restore_to_original(self, item_id: str) -> PriceLedgerEntry:
        return self.items.restore_to_original(item_id)

    def history(
        self,
        item_id: str,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[PriceLedgerEntry], int]:
        """
        Returns (entries, total_count), newest first.
        page is 1-based.
        """
        if page < 1:
            page = 1
        if page_size < 1:
            page_size = 1
        if page_size > settings.PRICE_HISTORY_MAX_PAGE_SIZE:
            page_size = settings.PRICE_HISTORY_MAX_PAGE_SIZE

        total = self.uow.ledger.count_for_item(item_id)
        entries = self.uow.ledger.history(
            item_id, offset=(page - 1) * page_size, limit=page_size
        )
        return entries, total
