from decimal import Decimal

import pytest

from discount_manager.core.config import settings
from discount_manager.core.exceptions import EntryNotFound, ItemNotFound
from discount_manager.enums.discounts import LedgerReason


@pytest.fixture()
def priced_item(services, platform, draft_rule):
    """ITEM_1: 100 -> 80 (rule a) -> 70 (rule b) -> 50 (manual)."""
    platform.add_item("ITEM_1", "100")
    a = draft_rule("percentage", "20")
    b = draft_rule("fixed", "10")
    services.items.apply_rule("ITEM_1", a)
    services.items.apply_rule("ITEM_1", b)
    services.items.manual_override("ITEM_1", Decimal("50"))
    return a, b


def test_restore_puts_back_the_price_before_the_entry(services, priced_item):
    a, b = priced_item
    entries, total = services.ledger.history("ITEM_1")
    assert total == 3
    b_applied = next(e for e in entries if e.cause_rule_id == b.rule_id)

    entry = services.ledger.restore("ITEM_1", b_applied.entry_id)

    assert entry.reason == LedgerReason.restore.value
    assert entry.restored_from_entry_id == b_applied.entry_id
    assert entry.old_price == Decimal("50.00")
    assert entry.new_price == b_applied.old_price == Decimal("80.00")

    state = services.items.get_state("ITEM_1")
    assert state.current_price == Decimal("80.00")
    # restore changes the price only
    assert state.active_rule_ids == [a.rule_id, b.rule_id]

    # history is appended to, never rewritten
    entries, total = services.ledger.history("ITEM_1")
    assert total == 4
    assert entries[0].entry_id == entry.entry_id


def test_restore_to_original(services, priced_item):
    entry = services.ledger.restore_to_original("ITEM_1")

    assert entry.reason == LedgerReason.restore_original.value
    assert entry.new_price == Decimal("100.00")
    state = services.items.get_state("ITEM_1")
    assert state.current_price == state.original_price == Decimal("100.00")
    assert state.active_rule_ids == []


def test_restore_to_original_needs_a_known_item(services):
    with pytest.raises(ItemNotFound):
        services.ledger.restore_to_original("ITEM_MISSING")


def test_restore_rejects_unknown_or_foreign_entries(services, platform, priced_item):
    with pytest.raises(EntryNotFound):
        services.ledger.restore("ITEM_1", "PCH_DOES_NOT_EXIST")

    platform.add_item("ITEM_2", "10")
    foreign = services.items.manual_override("ITEM_2", Decimal("9"))
    with pytest.raises(EntryNotFound):
        services.ledger.restore("ITEM_1", foreign.entry_id)

    assert services.items.get_state("ITEM_1").current_price == Decimal("50.00")


def test_history_is_newest_first_and_paged(services, priced_item):
    page1, total = services.ledger.history("ITEM_1", page=1, page_size=2)
    page2, _ = services.ledger.history("ITEM_1", page=2, page_size=2)

    assert total == 3
    assert [e.new_price for e in page1] == [Decimal("50.00"), Decimal("70.00")]
    assert [e.new_price for e in page2] == [Decimal("80.00")]


def test_history_page_size_is_clamped(services, priced_item, monkeypatch):
    monkeypatch.setattr(settings, "PRICE_HISTORY_MAX_PAGE_SIZE", 1)
    entries, total = services.ledger.history("ITEM_1", page=1, page_size=50)
    assert len(entries) == 1
    assert total == 3


def test_record_change_appends(services):
    entry = services.ledger.record_change(
        "ITEM_9", Decimal("10.00"), Decimal("8.00"), cause_rule_id="RULE_X", reason=LedgerReason.rule_applied
    )
    assert entry.entry_id.startswith("PCH_")
    assert services.ledger.get_entry("ITEM_9", entry.entry_id).new_price == Decimal("8.00")
    assert services.ledger.history("ITEM_9")[1] == 1
