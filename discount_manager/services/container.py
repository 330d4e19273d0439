from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from discount_manager.repositories.unit_of_work import UnitOfWork
from discount_manager.services.collaborators import CatalogCollaborator
from discount_manager.services.item_price_state import ItemPriceService
from discount_manager.services.locks import ItemLockRegistry, item_locks
from discount_manager.services.price_ledger import PriceLedger
from discount_manager.services.rule_service import RuleService
from discount_manager.services.scheduler import Scheduler


@dataclass
class Collaborators:
    resolver: object
    price_source: object
    sink: object
    tags: object


@dataclass
class Services:
    uow: UnitOfWork
    items: ItemPriceService
    ledger: PriceLedger
    scheduler: Scheduler
    rules: RuleService


def catalog_collaborators(uow: UnitOfWork) -> Collaborators:
    catalog = CatalogCollaborator(uow.catalog)
    return Collaborators(resolver=catalog, price_source=catalog, sink=catalog, tags=catalog)


def build_services(
    db: Session,
    collaborators: Optional[Collaborators] = None,
    locks: ItemLockRegistry = item_locks,
) -> Services:
    """Wire every service over one session. Defaults to the catalog mirror collaborators."""
    uow = UnitOfWork(db)
    collaborators = collaborators or catalog_collaborators(uow)

    items = ItemPriceService(uow, collaborators.price_source, collaborators.sink, locks=locks)
    ledger = PriceLedger(uow, items)
    scheduler = Scheduler(uow, items, collaborators.resolver, collaborators.tags)
    rules = RuleService(uow, items, scheduler)
    return Services(uow=uow, items=items, ledger=ledger, scheduler=scheduler, rules=rules)
