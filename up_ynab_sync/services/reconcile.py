"""Full reconciliation pass between Up Bank and YNAB"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Set, Tuple

from up_ynab_sync.domain.exceptions import UpstreamError
from up_ynab_sync.domain.import_ids import (
    fragment_from_import_id,
    import_id_for,
    is_sync_import_id,
    source_fragment,
)
from up_ynab_sync.domain.mapping import MILLIUNITS_PER_UNIT, UNKNOWN_PAYEE, map_transaction, parse_amount
from up_ynab_sync.domain.models import (
    AccountMapping,
    ItemOutcome,
    NewTransaction,
    OrphanedTransaction,
    ReconciliationReport,
    RestoredTransaction,
    SourceTransaction,
    SyncResult,
    SyncSummary,
    TargetTransaction,
)
from up_ynab_sync.domain.ports import TargetLedger
from up_ynab_sync.infrastructure.observability.metrics import record_reconciliation
from up_ynab_sync.services.sync import IncrementalSyncer

logger = logging.getLogger(__name__)

ORPHAN_DELETE_PHASE = "orphan_delete"
RESTORE_PHASE = "restore"

# (account_id, date, amount, payee) of a YNAB entry without import_id
Signature = Tuple[str, date, int, str]


@dataclass
class _Restoration:
    source: SourceTransaction
    transaction: NewTransaction  # No import_id

    def report_entry(self) -> RestoredTransaction:
        amount, _ = parse_amount(self.source.amount.value if self.source.amount else None)
        return RestoredTransaction(
            source_id=self.source.id,
            payee=self.transaction.payee_name,
            amount=amount,
            date=self.transaction.date,
        )


def _signature(account_id: str, on: date, amount: int, payee: Optional[str]) -> Signature:
    return (account_id, on, amount, payee or UNKNOWN_PAYEE)


def _created_on_or_after(source: SourceTransaction, since: date) -> bool:
    return source.created_at is None or source.created_at.date() >= since


def _planned_sync(transactions: Sequence[SourceTransaction], held: Set[str]) -> SyncResult:
    """What sync_transactions would report, given the import_ids the account already holds"""
    duplicates = sum(1 for tx in transactions if import_id_for(tx.id) in held)
    return SyncResult(imported=len(transactions) - duplicates, duplicates=duplicates, total=len(transactions))


def _apply_summary(report: ReconciliationReport, summary: SyncSummary) -> None:
    report.imported = summary.imported
    report.duplicates = summary.duplicates
    report.total = summary.total
    report.accounts = summary.accounts


def _orphan(tx: TargetTransaction) -> OrphanedTransaction:
    return OrphanedTransaction(
        target_id=tx.id,
        source_id=fragment_from_import_id(tx.import_id),
        payee=tx.payee_name or UNKNOWN_PAYEE,
        amount=Decimal(tx.amount) / MILLIUNITS_PER_UNIT,
        date=tx.date,
    )


class ReconciliationEngine:
    """
    Repairs drift that incremental sync cannot: YNAB entries whose Up Bank
    transaction disappeared (orphans) and Up Bank transactions whose YNAB
    entry was deleted by hand (restorations).

    Holds no state between passes; every pass recomputes everything from both
    ledgers over the window starting at the earliest YNAB entry.
    """

    def __init__(self, syncer: IncrementalSyncer, target: TargetLedger, fetch_margin_days: int = 7):
        self.syncer = syncer
        self.target = target
        # Up filters on creation date, YNAB dates settled entries by settlement
        self.fetch_margin_days = fetch_margin_days

    async def reconcile(self, mappings: Sequence[AccountMapping], dry_run: bool = False) -> ReconciliationReport:
        """
        Run one pass.

        Flow:
        1. List mapped YNAB accounts: synced entries and the earliest date
        2. List the budget including deleted entries: restorable import_ids
        3. Fetch Up Bank from shortly before the earliest date: live ids and restorations
        4. Synced YNAB entries with no live Up Bank id are orphans
        5. Live: delete orphans, restore, then sync every pairing from the earliest date.
           Dry run: report the same plan, with sync counts estimated from the held import_ids

        Listing failures abort the pass. Individual delete and restore
        failures are recorded in the report and the pass continues.
        """
        mode = "dry run" if dry_run else "live"
        logger.info(f"Starting {mode} reconciliation", extra={"dry_run": dry_run, "accounts": len(mappings)})

        synced, unkeyed, earliest_date = await self._collect_target_state(mappings)
        if earliest_date is None:
            logger.info("No existing transactions found in YNAB")
            report = ReconciliationReport(
                message="No existing transactions found in YNAB, nothing to reconcile",
                dry_run=dry_run,
            )
            record_reconciliation(report)
            return report

        restorable, held = await self._budget_import_ids(mappings)

        source_fragments: Set[str] = set()
        fetched: List[Tuple[AccountMapping, List[SourceTransaction]]] = []
        candidates: List[Tuple[AccountMapping, SourceTransaction]] = []
        for mapping in mappings:
            transactions = await self.syncer.fetch(mapping, earliest_date - timedelta(days=self.fetch_margin_days))
            fetched.append((mapping, transactions))
            for source in transactions:
                source_fragments.add(source_fragment(source.id))
                if import_id_for(source.id) in restorable:
                    candidates.append((mapping, source))

        orphans = [
            _orphan(tx) for tx in synced if fragment_from_import_id(tx.import_id) not in source_fragments
        ]
        restorations = self._plan_restorations(candidates, unkeyed)
        logger.info(
            "Reconciliation plan",
            extra={
                "earliest_date": earliest_date.isoformat(),
                "up_transactions": len(source_fragments),
                "orphaned": len(orphans),
                "restorable_import_ids": len(restorable),
                "restorations": len(restorations),
            },
        )

        report = ReconciliationReport(
            message="Dry run complete - no changes made" if dry_run else "Full reconciliation complete",
            dry_run=dry_run,
            earliest_date=earliest_date,
            orphaned_transactions=orphans,
        )

        in_window = [
            (mapping, [tx for tx in transactions if _created_on_or_after(tx, earliest_date)])
            for mapping, transactions in fetched
        ]

        if dry_run:
            report.restored_transactions = [r.report_entry() for _, r in restorations]
            summary = SyncSummary()
            for mapping, transactions in in_window:
                summary.add(mapping, _planned_sync(transactions, held.get(mapping.target_account_id, set())))
            _apply_summary(report, summary)
            record_reconciliation(report)
            return report

        # Deletion precedes restoration precedes sync
        for outcome in await self._delete_orphans(orphans):
            if outcome.ok:
                report.orphaned_deleted += 1
            else:
                report.failures.append(outcome)

        restored, failures = await self._restore(restorations)
        report.restored_transactions = restored
        report.restored_count = len(restored)
        report.failures.extend(failures)

        summary = SyncSummary()
        for mapping, transactions in in_window:
            result = await self.syncer.sync_transactions(mapping.target_account_id, transactions)
            summary.add(mapping, result)
            report.failures.extend(result.failures)
        _apply_summary(report, summary)

        record_reconciliation(report)
        return report

    async def _collect_target_state(
        self, mappings: Sequence[AccountMapping]
    ) -> Tuple[List[TargetTransaction], Counter, Optional[date]]:
        """
        Synced entries, signatures of entries without import_id, and the
        earliest date of any non-deleted entry across the mapped accounts.
        """
        synced: List[TargetTransaction] = []
        unkeyed: Counter = Counter()
        earliest_date: Optional[date] = None
        for mapping in mappings:
            for tx in await self.target.get_transactions_by_account(mapping.target_account_id):
                if tx.deleted:
                    continue
                if earliest_date is None or tx.date < earliest_date:
                    earliest_date = tx.date
                if is_sync_import_id(tx.import_id):
                    synced.append(tx)
                elif not tx.import_id:
                    unkeyed[_signature(tx.account_id, tx.date, tx.amount, tx.payee_name)] += 1
        return synced, unkeyed, earliest_date

    async def _budget_import_ids(
        self, mappings: Sequence[AccountMapping]
    ) -> Tuple[Set[str], Dict[str, Set[str]]]:
        """
        Restorable import_ids, and every import_id held per mapped account.

        Restorable means deleted in a mapped account and not active anywhere in
        the budget. An import_id active in any account means the entry was
        re-created or moved, so it must not be restored.

        Held ids include deleted entries: YNAB still reports a create with such
        an id as a duplicate.
        """
        mapped_accounts = {m.target_account_id for m in mappings}
        deleted: Set[str] = set()
        active: Set[str] = set()
        held: Dict[str, Set[str]] = {}
        for tx in await self.target.list_all_transactions_including_deleted():
            if not is_sync_import_id(tx.import_id):
                continue
            if tx.account_id in mapped_accounts:
                held.setdefault(tx.account_id, set()).add(tx.import_id)
            if not tx.deleted:
                active.add(tx.import_id)
            elif tx.account_id in mapped_accounts:
                deleted.add(tx.import_id)
        logger.info(
            "Synced YNAB import_ids",
            extra={"deleted": len(deleted), "active": len(active)},
        )
        return deleted - active, held

    def _plan_restorations(
        self,
        candidates: List[Tuple[AccountMapping, SourceTransaction]],
        unkeyed: Counter,
    ) -> List[Tuple[str, _Restoration]]:
        """
        Map restoration candidates, skipping those already restored.

        A restored entry carries no import_id, so it is recognised by an
        identical (account, date, amount, payee) entry without one. Each such
        entry accounts for one candidate only.
        """
        remaining = Counter(unkeyed)
        planned: List[Tuple[str, _Restoration]] = []
        for mapping, source in candidates:
            transaction = map_transaction(source, mapping.target_account_id, restoration=True).transaction
            signature = _signature(transaction.account_id, transaction.date, transaction.amount, transaction.payee_name)
            if remaining[signature] > 0:
                remaining[signature] -= 1
                logger.info(
                    "Skipping restoration, matching entry without import_id exists",
                    extra={"transaction_id": source.id, "ynab_account_id": mapping.target_account_id},
                )
                continue
            planned.append((mapping.target_account_id, _Restoration(source=source, transaction=transaction)))
        return planned

    async def _delete_orphans(self, orphans: List[OrphanedTransaction]) -> List[ItemOutcome]:
        """Delete one at a time; a failure does not stop the rest"""
        outcomes: List[ItemOutcome] = []
        for orphan in orphans:
            try:
                logger.info(
                    f"Deleting orphaned transaction: {orphan.payee} ({orphan.amount}) on {orphan.date}",
                    extra={"ynab_transaction_id": orphan.target_id},
                )
                await self.target.delete_transaction(orphan.target_id)
                outcomes.append(ItemOutcome.success(ORPHAN_DELETE_PHASE, orphan.target_id))
            except UpstreamError as e:
                logger.warning(
                    f"Failed to delete orphan {orphan.target_id}: {e}",
                    extra={"ynab_transaction_id": orphan.target_id},
                )
                outcomes.append(ItemOutcome.failure(ORPHAN_DELETE_PHASE, orphan.target_id, str(e)))
        return outcomes

    async def _restore(
        self, restorations: List[Tuple[str, _Restoration]]
    ) -> Tuple[List[RestoredTransaction], List[ItemOutcome]]:
        """Batch create per YNAB account, without import_id"""
        by_account: Dict[str, List[_Restoration]] = {}
        for account_id, restoration in restorations:
            by_account.setdefault(account_id, []).append(restoration)

        restored: List[RestoredTransaction] = []
        failures: List[ItemOutcome] = []
        for account_id, batch in by_account.items():
            try:
                await self.target.create_transactions([r.transaction for r in batch])
            except UpstreamError as e:
                logger.warning(
                    f"Failed to restore transactions for account {account_id}: {e}",
                    extra={"ynab_account_id": account_id, "count": len(batch)},
                )
                failures.extend(ItemOutcome.failure(RESTORE_PHASE, r.source.id, str(e)) for r in batch)
                continue
            restored.extend(r.report_entry() for r in batch)
            logger.info(
                f"Restored {len(batch)} transactions for account {account_id}",
                extra={"ynab_account_id": account_id},
            )
        return restored, failures
