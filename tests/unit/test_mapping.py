"""Unit tests for Up Bank → YNAB transaction mapping"""

from datetime import date, datetime
from decimal import Decimal

import pytest

from up_ynab_sync.domain.import_ids import (
    MAX_IMPORT_ID_LENGTH,
    fragment_from_import_id,
    import_id_for,
    is_sync_import_id,
    source_fragment,
)
from up_ynab_sync.domain.mapping import map_transaction, parse_amount, to_milliunits
from up_ynab_sync.domain.models import ClearedState


def test_import_id_is_deterministic_and_bounded():
    """Same Up id always yields the same key, never longer than YNAB allows"""
    source_id = "8f2d6c1e-4b7a-4f3e-9c2d-1a2b3c4d5e6f"
    assert import_id_for(source_id) == import_id_for(source_id)
    assert import_id_for(source_id) == "UPBANK:8f2d6c1e-4b7a-4f3e-9c2d-1a2b3"
    assert len(import_id_for(source_id)) == MAX_IMPORT_ID_LENGTH


def test_short_ids_are_not_padded():
    assert import_id_for("abc") == "UPBANK:abc"


def test_fragment_round_trips_through_truncated_import_id():
    """Orphan matching compares the truncated forms on both sides"""
    source_id = "8f2d6c1e-4b7a-4f3e-9c2d-1a2b3c4d5e6f"
    assert fragment_from_import_id(import_id_for(source_id)) == source_fragment(source_id)
    assert source_fragment(source_id) == "8f2d6c1e-4b7a-4f3e-9c2d-1a2b3"


def test_is_sync_import_id():
    assert is_sync_import_id("UPBANK:abc")
    assert not is_sync_import_id("YNAB:-12500:2024-03-01:1")
    assert not is_sync_import_id(None)
    assert not is_sync_import_id("")


def test_fragment_rejects_foreign_import_ids():
    with pytest.raises(ValueError):
        fragment_from_import_id("YNAB:-12500:2024-03-01:1")


def test_map_settled_transaction(make_up_transaction):
    """Settled transactions are cleared and dated by settlement"""
    source = make_up_transaction(n=1, value="-12.50", description="Coffee", memo="flat white")

    result = map_transaction(source, "ynab-checking")
    tx = result.transaction

    assert result.warnings == []
    assert tx.account_id == "ynab-checking"
    assert tx.date == date(2024, 3, 1)
    assert tx.amount == -12500
    assert tx.payee_name == "Coffee"
    assert tx.memo == "flat white"
    assert tx.cleared == ClearedState.CLEARED
    assert tx.approved is False
    assert tx.import_id == import_id_for(source.id)


def test_map_held_transaction_uses_created_date(make_up_transaction):
    """Held transactions are uncleared and dated when first seen"""
    source = make_up_transaction(status="HELD")

    tx = map_transaction(source, "ynab-checking").transaction

    assert tx.cleared == ClearedState.UNCLEARED
    assert tx.date == date(2024, 2, 29)


def test_date_is_local_to_up_timestamp_offset(make_up_transaction):
    """First ten chars of the timestamp, not the UTC date"""
    source = make_up_transaction(settled_at="2024-03-01T00:30:00+11:00")
    assert map_transaction(source, "acc").transaction.date == date(2024, 3, 1)


def test_unknown_status_defaults_to_uncleared_with_warning(make_up_transaction):
    source = make_up_transaction(status="PENDING_REVIEW")

    result = map_transaction(source, "acc")

    assert result.transaction.cleared == ClearedState.UNCLEARED
    assert len(result.warnings) == 1
    assert "PENDING_REVIEW" in result.warnings[0].message
    assert result.warnings[0].transaction_id == source.id


def test_malformed_amount_maps_to_zero_with_warning(make_up_transaction):
    source = make_up_transaction(value="twelve dollars")

    result = map_transaction(source, "acc")

    assert result.transaction.amount == 0
    assert len(result.warnings) == 1


def test_missing_description_uses_placeholder(make_up_transaction):
    source = make_up_transaction(description="")
    assert map_transaction(source, "acc").transaction.payee_name == "Unknown"


def test_missing_dates_fall_back_to_today(make_up_transaction):
    source = make_up_transaction(status="HELD")
    source.created_at = None

    tx = map_transaction(source, "acc").transaction

    assert abs((tx.date - datetime.now().date()).days) <= 1


def test_restoration_mapping_omits_import_id(make_up_transaction):
    """Restored entries must not reuse a key held by a soft-deleted entry"""
    source = make_up_transaction()

    tx = map_transaction(source, "acc", restoration=True).transaction

    assert tx.import_id is None
    assert "import_id" not in tx.to_payload()


def test_payload_omits_empty_memo(make_up_transaction):
    payload = map_transaction(make_up_transaction(memo=None), "acc").transaction.to_payload()

    assert "memo" not in payload
    assert payload["date"] == "2024-03-01"
    assert payload["cleared"] == "cleared"
    assert payload["import_id"].startswith("UPBANK:")


@pytest.mark.parametrize(
    "value,expected",
    [
        ("-12.50", -12500),
        ("1056.01", 1056010),
        ("0.00", 0),
        ("0.0005", 1),  # Half rounds away from zero
        ("-0.0005", -1),
    ],
)
def test_to_milliunits(value, expected):
    amount, ok = parse_amount(value)
    assert ok
    assert to_milliunits(amount) == expected


@pytest.mark.parametrize("value", ["abc", "1.2.3", "NaN", "Infinity"])
def test_parse_amount_rejects_garbage(value):
    assert parse_amount(value) == (Decimal(0), False)


@pytest.mark.parametrize("value", ["", None])
def test_parse_amount_treats_absent_as_zero(value):
    assert parse_amount(value) == (Decimal(0), True)
