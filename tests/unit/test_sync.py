"""Unit tests for incremental sync"""

from datetime import date

import pytest

from up_ynab_sync.domain.exceptions import UpstreamFetchError, UpstreamWriteError
from up_ynab_sync.domain.import_ids import import_id_for
from up_ynab_sync.domain.models import ClearedState
from up_ynab_sync.services.sync import IncrementalSyncer

SINCE = date(2024, 2, 1)


@pytest.fixture
def syncer(up_bank, ynab) -> IncrementalSyncer:
    return IncrementalSyncer(up_bank, ynab)


async def test_empty_source_makes_no_write_calls(syncer, ynab, mapping):
    """Zero fetched transactions → all zero counts and no YNAB call at all"""
    result = await syncer.sync(mapping, SINCE)

    assert (result.imported, result.duplicates, result.total) == (0, 0, 0)
    assert ynab.write_calls == 0
    assert ynab.calls["get_transactions_by_account"] == 0


@pytest.mark.parametrize("count", [1, 3, 25])
async def test_second_sync_reports_everything_as_duplicate(syncer, up_bank, ynab, mapping, make_up_transaction, count):
    up_bank.add(*(make_up_transaction(n=i) for i in range(count)))

    first = await syncer.sync(mapping, SINCE)
    second = await syncer.sync(mapping, SINCE)

    assert (first.imported, first.duplicates, first.total) == (count, 0, count)
    assert (second.imported, second.duplicates, second.total) == (0, count, count)
    assert len(ynab.active(mapping.target_account_id)) == count


async def test_created_entries_carry_import_ids(syncer, up_bank, ynab, mapping, make_up_transaction):
    source = make_up_transaction(n=7, status="HELD", value="-4.20")
    up_bank.add(source)

    await syncer.sync(mapping, SINCE)

    [entry] = ynab.active(mapping.target_account_id)
    assert entry.import_id == import_id_for(source.id)
    assert entry.amount == -4200
    assert entry.cleared == ClearedState.UNCLEARED
    assert entry.approved is False


async def test_settlement_converges_cleared_state(syncer, up_bank, ynab, mapping, make_up_transaction):
    """Held then settled: the existing entry becomes cleared, nothing new is created"""
    up_bank.add(make_up_transaction(n=1, status="HELD"))
    await syncer.sync(mapping, SINCE)
    [held] = ynab.active(mapping.target_account_id)
    assert held.cleared == ClearedState.UNCLEARED

    up_bank.add(make_up_transaction(n=1, status="SETTLED"))
    result = await syncer.sync(mapping, SINCE)

    assert result.imported == 0
    assert result.duplicates == 1
    assert result.cleared_updated == 1
    [settled] = ynab.active(mapping.target_account_id)
    assert settled.id == held.id
    assert settled.cleared == ClearedState.CLEARED


async def test_no_update_when_cleared_state_already_matches(syncer, up_bank, ynab, mapping, make_up_transaction):
    up_bank.add(make_up_transaction(n=1))
    await syncer.sync(mapping, SINCE)

    result = await syncer.sync(mapping, SINCE)

    assert result.cleared_updated == 0
    assert ynab.calls["update_transactions"] == 0


async def test_reconciled_entries_are_not_touched(syncer, up_bank, ynab, mapping, make_up_transaction):
    source = make_up_transaction(n=1, status="HELD")
    up_bank.add(source)
    ynab.seed(import_id=import_id_for(source.id), cleared=ClearedState.RECONCILED)

    result = await syncer.sync(mapping, SINCE)

    assert result.duplicates == 1
    assert ynab.calls["update_transactions"] == 0


async def test_cleared_update_failure_does_not_fail_sync(syncer, up_bank, ynab, mapping, make_up_transaction):
    """The fix-up phase is best-effort; the failure is reported, not raised"""
    up_bank.add(make_up_transaction(n=1, status="HELD"))
    await syncer.sync(mapping, SINCE)
    up_bank.add(make_up_transaction(n=1, status="SETTLED"), make_up_transaction(n=2))
    ynab.fail_update = True

    result = await syncer.sync(mapping, SINCE)

    assert (result.imported, result.duplicates, result.total) == (1, 1, 2)
    assert result.cleared_updated == 0
    assert len(result.failures) == 1
    assert result.failures[0].phase == "cleared_update"
    assert not result.failures[0].ok


async def test_fetch_error_propagates(syncer, up_bank, ynab, mapping):
    up_bank.fail_fetch = True

    with pytest.raises(UpstreamFetchError):
        await syncer.sync(mapping, SINCE)
    assert ynab.write_calls == 0


async def test_create_error_propagates(syncer, up_bank, ynab, mapping, make_up_transaction):
    up_bank.add(make_up_transaction(n=1))
    ynab.fail_create_accounts = {mapping.target_account_id}

    with pytest.raises(UpstreamWriteError):
        await syncer.sync(mapping, SINCE)


async def test_mapping_warnings_are_reported(syncer, up_bank, mapping, make_up_transaction):
    up_bank.add(make_up_transaction(n=1, status="FROZEN"))

    result = await syncer.sync(mapping, SINCE)

    assert result.imported == 1
    assert [w.transaction_id for w in result.warnings] == [make_up_transaction(n=1).id]


async def test_only_transactions_since_date_are_synced(syncer, up_bank, ynab, mapping, make_up_transaction):
    up_bank.add(
        make_up_transaction(n=1, created_at="2024-01-10T10:00:00+11:00"),
        make_up_transaction(n=2, created_at="2024-02-10T10:00:00+11:00"),
    )

    result = await syncer.sync(mapping, SINCE)

    assert result.total == 1


async def test_sync_all_totals_every_mapping(syncer, up_bank, ynab, mapping, saver_mapping, make_up_transaction):
    up_bank.add(
        make_up_transaction(n=1),
        make_up_transaction(n=2),
        make_up_transaction(n=3, account_id=saver_mapping.source_account_id, value="100.00"),
    )

    summary = await syncer.sync_all((mapping, saver_mapping), SINCE)

    assert (summary.imported, summary.duplicates, summary.total) == (3, 0, 3)
    assert [(a.source_account_id, a.imported) for a in summary.accounts] == [
        (mapping.source_account_id, 2),
        (saver_mapping.source_account_id, 1),
    ]
    assert len(ynab.active(saver_mapping.target_account_id)) == 1
    assert ynab.active(saver_mapping.target_account_id)[0].amount == 100000
