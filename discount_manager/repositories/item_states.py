from typing import List, Optional

from sqlalchemy import select

from discount_manager.models.item_price_state import ItemPriceState
from discount_manager.repositories.base import SQLAlchemyRepository


class ItemStateRepository(SQLAlchemyRepository[ItemPriceState]):
    model = ItemPriceState

    def get(self, item_id: str) -> Optional[ItemPriceState]:
        return self.db.get(ItemPriceState, item_id)

    def holding_rule(self, rule_id: str) -> List[str]:
        """Ids of items whose active stack contains `rule_id`."""
        rows = self.db.execute(
            select(ItemPriceState.item_id, ItemPriceState.active_rule_ids)
        ).all()
        return sorted(item_id for item_id, active in rows if rule_id in (active or []))

    def push_pending(self, limit: int = 500) -> List[ItemPriceState]:
        stmt = (
            select(ItemPriceState)
            .where(ItemPriceState.push_pending.is_(True))
            .order_by(ItemPriceState.updated_at.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())
