from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from discount_manager.core.exceptions import (
    InvalidFormula,
    RuleNotFound,
    RuleStateError,
    RuleValidationError,
)
from discount_manager.enums.discounts import RuleStatus
from discount_manager.schemas.discount_rule import DiscountRuleResponse

from conftest import NOW


def test_create_assigns_id_and_schedules(services, rule_payload):
    rule = services.rules.create_rule(rule_payload(), now=NOW)

    assert rule.rule_id.startswith("RULE_")
    assert rule.status == RuleStatus.scheduled.value
    assert [e.kind for e in services.rules.list_rule_events(rule.rule_id)] == ["activate"]


def test_schedule_is_stored_in_utc(services, rule_payload):
    rule = services.rules.create_rule(
        rule_payload(
            schedule={
                "start_at": datetime(2030, 1, 15, 9, 0),
                "end_at": datetime(2030, 1, 15, 18, 0),
                "timezone": "America/New_York",
            }
        ),
        now=NOW,
    )

    assert rule.start_at == datetime(2030, 1, 15, 14, 0)
    assert rule.end_at == datetime(2030, 1, 15, 23, 0)
    assert rule.timezone == "America/New_York"

    body = DiscountRuleResponse.model_validate(rule)
    assert body.schedule.start_at == datetime(2030, 1, 15, 14, 0, tzinfo=timezone.utc)


def test_offset_aware_times_keep_their_offset(services, rule_payload):
    rule = services.rules.create_rule(
        rule_payload(
            schedule={
                "start_at": datetime(2030, 6, 1, 12, 0, tzinfo=timezone(timedelta(hours=2))),
                "end_at": None,
                "timezone": "Asia/Tokyo",
            }
        ),
        now=NOW,
    )
    assert rule.start_at == datetime(2030, 6, 1, 10, 0)


def test_invalid_rule_is_not_persisted(services, rule_payload):
    with pytest.raises(RuleValidationError) as exc:
        services.rules.create_rule(rule_payload(value="150"), now=NOW)
    assert [i.field for i in exc.value.issues] == ["value"]

    with pytest.raises(InvalidFormula):
        services.rules.create_rule(rule_payload(kind="formula", value="price / 0"), now=NOW)

    assert services.rules.list_rules(include_deleted=True) == []


def test_draft_then_publish(services, rule_payload):
    rule = services.rules.create_rule(rule_payload(draft=True), now=NOW)
    assert rule.status == RuleStatus.draft.value
    assert services.rules.list_rule_events(rule.rule_id) == []

    services.rules.publish_rule(rule.rule_id, now=NOW)
    assert rule.status == RuleStatus.scheduled.value
    assert len(services.rules.list_rule_events(rule.rule_id)) == 1

    with pytest.raises(RuleStateError):
        services.rules.publish_rule(rule.rule_id, now=NOW)


def test_editing_a_draft_does_not_schedule_it(services, rule_payload):
    rule = services.rules.create_rule(rule_payload(draft=True), now=NOW)
    services.rules.update_rule(rule.rule_id, rule_payload(name="Renamed", value="15"), now=NOW)

    assert rule.name == "Renamed"
    assert rule.value == "15"
    assert rule.status == RuleStatus.draft.value
    assert services.rules.list_rule_events(rule.rule_id) == []


def test_editing_an_active_rule_reprices_its_items(services, platform, rule_payload):
    platform.add_item("ITEM_1", "100")
    rule = services.rules.create_rule(rule_payload(), now=NOW)
    services.scheduler.sweep(NOW)

    services.rules.update_rule(rule.rule_id, rule_payload(value="30"), now=NOW)

    state = services.items.get_state("ITEM_1")
    assert state.current_price == Decimal("70.00")
    latest = services.ledger.history("ITEM_1")[0][0]
    assert latest.reason == "rule_updated"
    assert latest.old_price == Decimal("80.00")
    assert rule.status == RuleStatus.active.value


def test_edit_that_cannot_reprice_a_holder_is_not_saved(services, platform, rule_payload):
    platform.add_item("ITEM_1", "50")
    rule = services.rules.create_rule(rule_payload(), now=NOW)
    services.scheduler.sweep(NOW)
    assert services.items.get_state("ITEM_1").current_price == Decimal("40.00")

    with pytest.raises(InvalidFormula):
        services.rules.update_rule(
            rule.rule_id,
            rule_payload(
                kind="formula",
                value="100 / (price - 50)",
                schedule={"start_at": NOW, "end_at": NOW + timedelta(hours=1), "timezone": "UTC"},
            ),
            now=NOW,
        )

    services.uow.db.expire_all()
    stored = services.rules.get_rule(rule.rule_id)
    assert (stored.kind, stored.value, stored.end_at) == ("percentage", "20", None)
    assert services.items.get_state("ITEM_1").current_price == Decimal("40.00")
    assert services.ledger.history("ITEM_1")[1] == 1
    assert [e for e in services.rules.list_rule_events(rule.rule_id) if e.applied_at is None] == []


def test_editing_an_active_rule_can_set_its_end(services, platform, rule_payload):
    platform.add_item("ITEM_1", "100")
    rule = services.rules.create_rule(rule_payload(), now=NOW)
    services.scheduler.sweep(NOW)

    services.rules.update_rule(
        rule.rule_id,
        rule_payload(schedule={"start_at": NOW, "end_at": NOW + timedelta(hours=1), "timezone": "UTC"}),
        now=NOW,
    )
    pending = [e for e in services.rules.list_rule_events(rule.rule_id) if e.applied_at is None]
    assert [(e.kind, e.fire_at) for e in pending] == [("deactivate", NOW + timedelta(hours=1))]

    services.scheduler.sweep(NOW + timedelta(hours=1))
    assert services.items.get_state("ITEM_1").current_price == Decimal("100.00")


def test_active_rule_target_cannot_change(services, platform, rule_payload):
    platform.add_item("ITEM_1", "100")
    rule = services.rules.create_rule(rule_payload(), now=NOW)
    services.scheduler.sweep(NOW)

    with pytest.raises(RuleStateError):
        services.rules.update_rule(
            rule.rule_id, rule_payload(target={"scope": "vendor", "scope_id": "acme"}), now=NOW
        )


def test_unknown_rule(services, rule_payload):
    with pytest.raises(RuleNotFound):
        services.rules.get_rule("RULE_NOPE")
    with pytest.raises(RuleNotFound):
        services.rules.update_rule("RULE_NOPE", rule_payload())
    with pytest.raises(RuleNotFound):
        services.rules.delete_rule("RULE_NOPE")
    with pytest.raises(RuleNotFound):
        services.rules.list_rule_events("RULE_NOPE")


def test_list_rules_filters(services, rule_payload):
    draft = services.rules.create_rule(rule_payload(name="Draft", draft=True), now=NOW)
    scheduled = services.rules.create_rule(rule_payload(name="Scheduled"), now=NOW)
    deleted = services.rules.create_rule(rule_payload(name="Deleted"), now=NOW)
    services.rules.delete_rule(deleted.rule_id, now=NOW)

    assert [r.rule_id for r in services.rules.list_rules(status=RuleStatus.draft)] == [draft.rule_id]
    assert {r.rule_id for r in services.rules.list_rules()} == {draft.rule_id, scheduled.rule_id}
    assert len(services.rules.list_rules(include_deleted=True)) == 3
