from typing import List, Optional

from sqlalchemy import select

from discount_manager.enums.discounts import TargetScope
from discount_manager.models.catalog_item import CatalogItem
from discount_manager.repositories.base import SQLAlchemyRepository


class CatalogRepository(SQLAlchemyRepository[CatalogItem]):
    model = CatalogItem

    def get(self, item_id: str) -> Optional[CatalogItem]:
        return self.db.get(CatalogItem, item_id)

    def in_scope(self, scope: str, scope_id: str) -> List[CatalogItem]:
        scope = TargetScope(scope)

        if scope == TargetScope.product:
            item = self.get(scope_id)
            return [item] if item else []

        if scope == TargetScope.vendor:
            stmt = select(CatalogItem).where(CatalogItem.vendor == scope_id)
        elif scope == TargetScope.product_type:
            stmt = select(CatalogItem).where(CatalogItem.product_type == scope_id)
        else:
            # collection membership lives in a JSON list
            items = self.db.execute(select(CatalogItem)).scalars().all()
            return sorted(
                (i for i in items if scope_id in (i.collections or [])),
                key=lambda i: i.item_id,
            )

        return list(self.db.execute(stmt.order_by(CatalogItem.item_id)).scalars().all())

    def product_types(self) -> List[str]:
        stmt = (
            select(CatalogItem.product_type)
            .where(CatalogItem.product_type.is_not(None))
            .distinct()
            .order_by(CatalogItem.product_type)
        )
        return list(self.db.execute(stmt).scalars().all())
