from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select

from discount_manager.models.price_ledger import PriceLedgerEntry
from discount_manager.repositories.base import SQLAlchemyRepository


class LedgerRepository(SQLAlchemyRepository[PriceLedgerEntry]):
    """Insert and read only; ledger rows are never updated or deleted."""

    model = PriceLedgerEntry

    def get(self, entry_id: str) -> Optional[PriceLedgerEntry]:
        return self.db.execute(
            select(PriceLedgerEntry).where(PriceLedgerEntry.entry_id == entry_id)
        ).scalar_one_or_none()

    def history(self, item_id: str, offset: int = 0, limit: Optional[int] = None) -> List[PriceLedgerEntry]:
        # id breaks ties between entries written within the same timestamp
        stmt = (
            select(PriceLedgerEntry)
            .where(PriceLedgerEntry.item_id == item_id)
            .order_by(PriceLedgerEntry.timestamp.desc(), PriceLedgerEntry.id.desc())
            .offset(offset)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count_for_item(self, item_id: str) -> int:
        return self.count({"item_id": item_id})

    def since(self, start: datetime) -> List[PriceLedgerEntry]:
        stmt = (
            select(PriceLedgerEntry)
            .where(PriceLedgerEntry.timestamp >= start)
            .order_by(PriceLedgerEntry.timestamp.asc(), PriceLedgerEntry.id.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def total(self) -> int:
        return self.db.execute(select(func.count()).select_from(PriceLedgerEntry)).scalar() or 0

    def caused_by(self, rule_ids: List[str], reason: str) -> List[PriceLedgerEntry]:
        if not rule_ids:
            return []
        stmt = select(PriceLedgerEntry).where(
            PriceLedgerEntry.cause_rule_id.in_(rule_ids),
            PriceLedgerEntry.reason == reason,
        )
        return list(self.db.execute(stmt).scalars().all())
