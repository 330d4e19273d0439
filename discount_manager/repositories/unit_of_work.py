from sqlalchemy.orm import Session

from discount_manager.repositories.catalog import CatalogRepository
from discount_manager.repositories.events import EventRepository
from discount_manager.repositories.item_states import ItemStateRepository
from discount_manager.repositories.ledger import LedgerRepository
from discount_manager.repositories.rules import RuleRepository


class UnitOfWork:
    """All repositories over one session; commit/rollback cover them together."""

    def __init__(self, db: Session):
        self.db = db
        self.rules = RuleRepository(db)
        self.items = ItemStateRepository(db)
        self.ledger = LedgerRepository(db)
        self.events = EventRepository(db)
        self.catalog = CatalogRepository(db)

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()
