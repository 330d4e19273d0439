from sqlalchemy import Column, Integer, String, Numeric, DateTime

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import Base


class PriceLedgerEntry(Base):
    """Append-only: rows are inserted, never updated or deleted."""

    __tablename__ = "price_ledger"

    id = Column(Integer, primary_key=True, index=True)
    entry_id = Column(String, unique=True, index=True, nullable=False)  # e.g. PCH_1A2B3C4D5E
    item_id = Column(String, index=True, nullable=False)
    old_price = Column(Numeric(12, 2), nullable=False)
    new_price = Column(Numeric(12, 2), nullable=False)
    reason = Column(String, nullable=False)
    cause_rule_id = Column(String, nullable=True, index=True)
    restored_from_entry_id = Column(String, nullable=True)
    timestamp = Column(DateTime, default=utcnow, index=True)
