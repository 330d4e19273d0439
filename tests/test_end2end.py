from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from discount_manager.core.clock import utcnow
from discount_manager.database.connection import Base, get_db
from discount_manager.database.init_db import init_db
from discount_manager.dependencies.services import get_services
from discount_manager.main import app
from discount_manager.services.container import build_services

ITEM = "E2E_ITEM_001"


@pytest.fixture(scope="module")
def session():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="module")
def client(session):
    def _get_db():
        yield session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_services] = lambda: build_services(session)
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(scope="module")
def state():
    return {}


def rule_body(**overrides):
    now = utcnow()
    body = {
        "name": "E2E summer sale",
        "kind": "percentage",
        "value": 20,
        "target": {"scope": "collection", "scope_id": "summer"},
        "schedule": {
            "start_at": (now - timedelta(hours=1)).isoformat(),
            "end_at": (now + timedelta(days=1)).isoformat(),
            "timezone": "UTC",
        },
        "tag_mutations": {"add": ["sale"], "remove": ["sale"]},
    }
    body.update(overrides)
    return body


@pytest.mark.order(1)
def test_mirror_catalog_item(client):
    resp = client.post(
        "/catalog-items/",
        json={
            "item_id": ITEM,
            "title": "Linen shirt",
            "vendor": "acme",
            "collections": ["summer"],
            "price": "100.00",
        },
    )
    assert resp.status_code == 201

    assert client.post("/catalog-items/", json={"item_id": ITEM, "title": "dup", "price": "1"}).status_code == 409
    assert client.get("/catalog-items/", params={"vendor": "acme"}).json()[0]["item_id"] == ITEM


@pytest.mark.order(2)
def test_create_rule_rejects_invalid_definitions(client):
    resp = client.post("/discount-rules/", json=rule_body(value=150))
    assert resp.status_code == 422
    assert resp.json()["issues"][0]["field"] == "value"

    resp = client.post("/discount-rules/", json=rule_body(kind="formula", value="price / 0"))
    assert resp.status_code == 422

    issues = client.post("/discount-rules/validate", json=rule_body(value=-5)).json()
    assert [i["field"] for i in issues] == ["value"]


@pytest.mark.order(3)
def test_create_rule_and_sweep(client, state):
    resp = client.post("/discount-rules/", json=rule_body())
    assert resp.status_code == 201
    rule = resp.json()
    assert rule["status"] == "scheduled"
    state["rule_id"] = rule["rule_id"]

    events = client.get(f"/discount-rules/{rule['rule_id']}/events").json()
    assert sorted(e["kind"] for e in events) == ["activate", "deactivate"]

    report = client.post("/scheduler/sweep").json()
    assert len(report["applied"]) == 1
    assert client.post("/scheduler/sweep").json()["due"] == 0

    price_state = client.get(f"/items/{ITEM}/price-state").json()
    assert Decimal(price_state["current_price"]) == Decimal("80.00")
    assert Decimal(price_state["original_price"]) == Decimal("100.00")
    assert price_state["active_rule_ids"] == [rule["rule_id"]]
    assert price_state["push_pending"] is False

    # pushed to the mirror together with the tag
    item = client.get(f"/catalog-items/{ITEM}").json()
    assert Decimal(item["price"]) == Decimal("80.00")
    assert item["tags"] == ["sale"]


@pytest.mark.order(4)
def test_override_history_and_restore(client, state):
    resp = client.put(f"/items/{ITEM}/override", json={"price": "55.00"})
    assert resp.status_code == 200
    override = resp.json()
    assert override["reason"] == "manual_override"

    page = client.get(f"/items/{ITEM}/price-history", params={"page_size": 1}).json()
    assert page["meta"]["total"] == 2
    assert page["meta"]["total_pages"] == 2
    assert page["items"][0]["entry_id"] == override["entry_id"]

    resp = client.post(f"/items/{ITEM}/restore/{override['entry_id']}")
    assert resp.status_code == 200
    restored = resp.json()
    assert Decimal(restored["state"]["current_price"]) == Decimal("80.00")

    entry = client.get(f"/items/{ITEM}/price-history/{restored['entry_id']}").json()
    assert entry["restored_from_entry_id"] == override["entry_id"]

    assert client.post(f"/items/{ITEM}/restore/PCH_UNKNOWN").status_code == 404
    assert client.put(f"/items/{ITEM}/override", json={"price": "-1"}).status_code == 422


@pytest.mark.order(5)
def test_preview(client):
    resp = client.post(
        "/discount-rules/preview",
        json={
            "rules": [{"kind": "percentage", "value": 10}, {"kind": "formula", "value": "price - 5"}],
            "prices": ["100", "19.99"],
        },
    )
    assert resp.status_code == 200
    items = resp.json()["items"]
    assert [Decimal(i["discounted_price"]) for i in items] == [Decimal("85.00"), Decimal("12.99")]

    bad = client.post(
        "/discount-rules/preview",
        json={"rules": [{"kind": "formula", "value": "price ** 2"}], "prices": ["10"]},
    )
    assert bad.status_code == 422


@pytest.mark.order(6)
def test_analytics_and_system(client):
    analytics = client.get("/analytics/discounts", params={"timeframe": "7d"}).json()
    assert analytics["total_discounts"] == 1
    assert analytics["items_affected"] == 1
    assert analytics["average_discount"] == pytest.approx(20.0)
    assert analytics["revenue_impact"] == pytest.approx(-20.0)
    assert analytics["active_rules"] == 1

    assert client.get("/analytics/discounts", params={"timeframe": "1y"}).status_code == 422
    # the mirrored item has no product type
    assert client.get("/analytics/recommendations").json() == []

    health = client.get("/health").json()
    assert health["status"] == "ok" and health["db_ok"] is True

    metrics = client.get("/metrics").json()
    assert metrics["rules_by_status"] == {"active": 1}
    assert metrics["pending_events"] == 1
    assert metrics["requests_count"] > 0


@pytest.mark.order(7)
def test_delete_rule(client, state):
    rule_id = state["rule_id"]
    resp = client.delete(f"/discount-rules/{rule_id}")
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    assert resp.json()["deleted_at"] is not None

    price_state = client.get(f"/items/{ITEM}/price-state").json()
    assert Decimal(price_state["current_price"]) == Decimal("100.00")
    assert price_state["active_rule_ids"] == []
    assert client.get(f"/catalog-items/{ITEM}").json()["tags"] == []

    assert client.delete(f"/discount-rules/{rule_id}").status_code == 409
    assert client.put(f"/discount-rules/{rule_id}", json=rule_body()).status_code == 409
    assert client.get("/discount-rules/RULE_MISSING").status_code == 404
    assert client.get("/discount-rules/", params={"status": "completed"}).json() == []
    assert len(client.get("/discount-rules/", params={"include_deleted": True}).json()) == 1


@pytest.mark.order(8)
def test_restore_original_and_resync(client):
    resp = client.post(f"/items/{ITEM}/restore-original")
    assert resp.status_code == 200
    assert Decimal(resp.json()["state"]["current_price"]) == Decimal("100.00")

    report = client.post("/scheduler/resync").json()
    assert report["failures"] == []
