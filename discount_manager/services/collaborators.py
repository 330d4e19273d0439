"""
Interfaces to the commerce platform, and a default implementation backed by
the local catalog mirror.

The core never talks to the platform itself: it asks a ScopeResolver which
items a rule targets, a PriceSource for an item's price before any rule
touched it, and hands computed prices and tag changes to a PriceSink and a
TagWriter. Those collaborators own their I/O and their retries.
"""

import logging
from decimal import Decimal
from typing import List, Protocol, Sequence

from discount_manager.core.exceptions import ItemNotFound
from discount_manager.repositories.catalog import CatalogRepository

logger = logging.getLogger(__name__)


class ScopeResolver(Protocol):
    def resolve_items(self, scope: str, scope_id: str) -> List[str]:
        ...


class PriceSource(Protocol):
    def observed_price(self, item_id: str) -> Decimal:
        ...


class PriceSink(Protocol):
    def push(self, item_id: str, price: Decimal) -> None:
        """Raise on failure."""
        ...


class TagWriter(Protocol):
    def add_tags(self, item_ids: Sequence[str], tags: Sequence[str]) -> None:
        ...

    def remove_tags(self, item_ids: Sequence[str], tags: Sequence[str]) -> None:
        ...


class CatalogCollaborator:
    """Resolves scopes, reads prices and writes prices/tags in `catalog_items`."""

    def __init__(self, catalog: CatalogRepository):
        self.catalog = catalog

    def resolve_items(self, scope: str, scope_id: str) -> List[str]:
        return [item.item_id for item in self.catalog.in_scope(scope, scope_id)]

    def observed_price(self, item_id: str) -> Decimal:
        item = self.catalog.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        return Decimal(item.price)

    def push(self, item_id: str, price: Decimal) -> None:
        item = self.catalog.get(item_id)
        if item is None:
            raise ItemNotFound(item_id)
        item.price = price
        self.catalog.db.commit()
        logger.debug("Pushed price %s for item %s", price, item_id)

    def add_tags(self, item_ids: Sequence[str], tags: Sequence[str]) -> None:
        self._rewrite_tags(item_ids, lambda current: current + [t for t in tags if t not in current])

    def remove_tags(self, item_ids: Sequence[str], tags: Sequence[str]) -> None:
        self._rewrite_tags(item_ids, lambda current: [t for t in current if t not in tags])

    def _rewrite_tags(self, item_ids, rewrite) -> None:
        for item_id in item_ids:
            item = self.catalog.get(item_id)
            if item is None:
                logger.warning("Cannot update tags of unknown item %s", item_id)
                continue
            item.tags = rewrite(list(item.tags or []))
        self.catalog.db.commit()
