from sqlalchemy import Column, String, Numeric, Integer, Boolean, JSON, DateTime

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import Base


class ItemPriceState(Base):
    __tablename__ = "item_price_states"

    item_id = Column(String, primary_key=True, index=True)

    # captured the first time any rule touched the item, never rewritten
    original_price = Column(Numeric(12, 2), nullable=False)
    current_price = Column(Numeric(12, 2), nullable=False)

    # e.g. ["RULE_001", "RULE_003"], in activation order
    active_rule_ids = Column(JSON, nullable=False, default=list)

    push_pending = Column(Boolean, nullable=False, default=False, index=True)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version}
