import pytest

from discount_manager.schemas.catalog_item import CatalogItemCreate
from discount_manager.services.analytics_service import (
    _confidence,
    get_discount_recommendations,
)
from discount_manager.services.catalog_service import create_catalog_item

from conftest import NOW


def mirror(db, platform, item_id, price, product_type):
    platform.add_item(item_id, price, product_type=product_type)
    create_catalog_item(
        db, CatalogItemCreate(item_id=item_id, title=item_id, product_type=product_type, price=price)
    )


def test_recommendations_per_product_type(db, services, platform, rule_payload):
    mirror(db, platform, "SHIRT_1", "100", "shirts")
    mirror(db, platform, "SHIRT_2", "50", "shirts")
    mirror(db, platform, "HAT_1", "20", "hats")
    services.rules.create_rule(
        rule_payload(target={"scope": "product_type", "scope_id": "shirts"}), now=NOW
    )
    # drafts never ran, so they carry no history
    services.rules.create_rule(
        rule_payload(value="50", target={"scope": "product_type", "scope_id": "hats"}, draft=True),
        now=NOW,
    )
    services.scheduler.sweep(NOW)

    hats, shirts = get_discount_recommendations(db)

    assert hats.category == "hats"
    assert hats.suggested_discount == 15.0
    assert hats.expected_revenue == 0.0
    assert hats.confidence == 0.5

    assert shirts.category == "shirts"
    assert shirts.suggested_discount == 20.0
    assert shirts.expected_revenue == pytest.approx(120.0)
    assert shirts.confidence == 0.5
    assert "20%" in shirts.reasoning


def test_confidence_rewards_consistent_campaigns():
    assert _confidence([100.0]) == 0.5
    assert _confidence([100.0, 100.0]) == pytest.approx(0.76)
    assert _confidence([10.0, 200.0]) == pytest.approx(0.06)
