from typing import List, Optional

from sqlalchemy.orm import Session

from discount_manager.models.catalog_item import CatalogItem
from discount_manager.repositories.catalog import CatalogRepository
from discount_manager.schemas.catalog_item import CatalogItemCreate


def create_catalog_item(db: Session, data: CatalogItemCreate) -> Optional[CatalogItem]:
    """Returns None when an item with the same id is already mirrored."""
    repo = CatalogRepository(db)
    if repo.get(data.item_id) is not None:
        return None

    item = CatalogItem(
        item_id=data.item_id,
        title=data.title,
        vendor=data.vendor,
        product_type=data.product_type,
        collections=list(data.collections),
        tags=list(data.tags),
        price=data.price,
    )
    repo.add(item)
    db.commit()
    db.refresh(item)
    return item


def get_catalog_item(db: Session, item_id: str) -> Optional[CatalogItem]:
    return CatalogRepository(db).get(item_id)


def list_catalog_items(
    db: Session,
    vendor: Optional[str] = None,
    product_type: Optional[str] = None,
    skip: int = 0,
    limit: int = 100,
) -> List[CatalogItem]:
    return CatalogRepository(db).list(
        skip=skip,
        limit=limit,
        filters={"vendor": vendor, "product_type": product_type},
    )
