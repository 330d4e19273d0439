import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from collections import defaultdict
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from discount_manager.core.exceptions import ItemNotFound
from discount_manager.database.connection import Base
from discount_manager.database.init_db import init_db
from discount_manager.schemas.discount_rule import DiscountRuleCreate
from discount_manager.services.container import Collaborators, build_services
from discount_manager.services.locks import ItemLockRegistry

TEST_DB_URL = "sqlite:///:memory:"

NOW = datetime(2030, 1, 1, 12, 0, 0)


class FakePlatform:
    """In-memory stand-in for the commerce platform: scopes, prices, pushes and tags."""

    def __init__(self):
        self.prices = {}
        self.scopes = defaultdict(list)
        self.pushed = []
        self.failing = set()
        self.fail_tags = False
        self.tags = defaultdict(list)

    def add_item(self, item_id, price, **scopes):
        self.prices[item_id] = Decimal(str(price))
        self.scopes[("product", item_id)].append(item_id)
        for scope, scope_id in scopes.items():
            self.scopes[(scope, scope_id)].append(item_id)

    # ScopeResolver
    def resolve_items(self, scope, scope_id):
        return list(self.scopes.get((scope, scope_id), []))

    # PriceSource
    def observed_price(self, item_id):
        if item_id not in self.prices:
            raise ItemNotFound(item_id)
        return self.prices[item_id]

    # PriceSink
    def push(self, item_id, price):
        if item_id in self.failing:
            raise ConnectionError("platform unavailable")
        self.pushed.append((item_id, price))

    # TagWriter
    def add_tags(self, item_ids, tags):
        if self.fail_tags:
            raise ConnectionError("tag service unavailable")
        for item_id in item_ids:
            self.tags[item_id] += [t for t in tags if t not in self.tags[item_id]]

    def remove_tags(self, item_ids, tags):
        if self.fail_tags:
            raise ConnectionError("tag service unavailable")
        for item_id in item_ids:
            self.tags[item_id] = [t for t in self.tags[item_id] if t not in tags]

    def last_push(self, item_id):
        prices = [p for i, p in self.pushed if i == item_id]
        return prices[-1] if prices else None


@pytest.fixture()
def engine():
    engine = create_engine(
        TEST_DB_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def platform():
    return FakePlatform()


@pytest.fixture()
def locks():
    return ItemLockRegistry()


@pytest.fixture()
def make_services(platform, locks):
    def _make(session):
        collaborators = Collaborators(
            resolver=platform, price_source=platform, sink=platform, tags=platform
        )
        return build_services(session, collaborators, locks=locks)

    return _make


@pytest.fixture()
def services(db, make_services):
    return make_services(db)


@pytest.fixture()
def rule_payload():
    """Build a DiscountRuleCreate; keyword arguments replace whole top-level fields."""

    def _payload(**overrides):
        data = {
            "name": "Spring sale",
            "kind": "percentage",
            "value": "20",
            "target": {"scope": "product", "scope_id": "ITEM_1"},
            "schedule": {"start_at": NOW, "end_at": None, "timezone": "UTC"},
            "tag_mutations": {"add": [], "remove": []},
        }
        data.update(overrides)
        return DiscountRuleCreate(**data)

    return _payload


@pytest.fixture()
def draft_rule(services, rule_payload):
    """Persist a draft rule (no events), for driving item state directly."""

    def _rule(kind="percentage", value="20", **overrides):
        return services.rules.create_rule(
            rule_payload(kind=kind, value=value, draft=True, **overrides), now=NOW
        )

    return _rule
