from sqlalchemy import Column, String, Numeric, JSON, DateTime

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import Base


class CatalogItem(Base):
    """Local mirror of the platform catalog used to resolve rule targets."""

    __tablename__ = "catalog_items"

    item_id = Column(String, primary_key=True, index=True)
    title = Column(String, nullable=False)
    vendor = Column(String, nullable=True, index=True)
    product_type = Column(String, nullable=True, index=True)
    collections = Column(JSON, default=list)
    tags = Column(JSON, default=list)
    price = Column(Numeric(12, 2), nullable=False)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
