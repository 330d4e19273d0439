from discount_manager.database.connection import Base, engine

# imported for their table definitions
from discount_manager.models import (  # noqa: F401
    catalog_item,
    discount_rule,
    item_price_state,
    price_ledger,
    scheduled_event,
)


def init_db(bind=None) -> None:
    Base.metadata.create_all(bind=bind or engine)
