"""Incremental Up Bank → YNAB sync for account pairings"""

import logging
from datetime import date
from typing import Dict, List, Sequence

from up_ynab_sync.domain.exceptions import UpstreamError
from up_ynab_sync.domain.mapping import map_transaction
from up_ynab_sync.domain.models import (
    AccountMapping,
    ClearedState,
    ClearedUpdate,
    ItemOutcome,
    MappingWarning,
    NewTransaction,
    SourceTransaction,
    SyncResult,
    SyncSummary,
)
from up_ynab_sync.domain.ports import SourceLedger, TargetLedger
from up_ynab_sync.infrastructure.observability.metrics import record_sync

logger = logging.getLogger(__name__)

CLEARED_UPDATE_PHASE = "cleared_update"


class IncrementalSyncer:
    """Creates YNAB entries for Up Bank transactions and keeps their cleared status current"""

    def __init__(self, source: SourceLedger, target: TargetLedger):
        self.source = source
        self.target = target

    async def fetch(self, mapping: AccountMapping, since: date) -> List[SourceTransaction]:
        """All Up Bank transactions of the mapped account since a date"""
        transactions = await self.source.list_transactions_since(mapping.source_account_id, since)
        logger.info(
            "Fetched Up Bank transactions",
            extra={"up_account_id": mapping.source_account_id, "since": since.isoformat(), "count": len(transactions)},
        )
        return transactions

    async def sync(self, mapping: AccountMapping, since: date) -> SyncResult:
        """
        Fetch, map and submit one account pairing.

        Raises:
            UpstreamFetchError: If Up Bank cannot be read
            UpstreamWriteError: If YNAB rejects the batch create
        """
        transactions = await self.fetch(mapping, since)
        return await self.sync_transactions(mapping.target_account_id, transactions)

    async def sync_all(self, mappings: Sequence[AccountMapping], since: date) -> SyncSummary:
        """Sync every pairing in turn; the first failure aborts the run"""
        summary = SyncSummary()
        for mapping in mappings:
            result = await self.sync(mapping, since)
            summary.add(mapping, result)
        return summary

    async def sync_transactions(
        self, target_account_id: str, transactions: Sequence[SourceTransaction]
    ) -> SyncResult:
        """
        Submit already fetched Up Bank transactions to one YNAB account.

        Flow:
        1. Map every transaction (idempotency key included)
        2. Batch create; YNAB skips and reports existing import_ids
        3. Correct the cleared status of those duplicates (best-effort)
        """
        mapped: List[NewTransaction] = []
        warnings: List[MappingWarning] = []
        for source in transactions:
            mapping_result = map_transaction(source, target_account_id)
            mapped.append(mapping_result.transaction)
            warnings.extend(mapping_result.warnings)

        if not mapped:
            return SyncResult(warnings=warnings)

        logger.info(
            "Sending transactions to YNAB",
            extra={"ynab_account_id": target_account_id, "count": len(mapped)},
        )
        created = await self.target.create_transactions(mapped)

        duplicate_ids = set(created.duplicate_import_ids)
        result = SyncResult(
            imported=len(mapped) - len(created.duplicate_import_ids),
            duplicates=len(created.duplicate_import_ids),
            total=len(mapped),
            warnings=warnings,
        )

        if duplicate_ids:
            desired = {tx.import_id: tx.cleared for tx in mapped if tx.import_id in duplicate_ids}
            try:
                result.cleared_updated = await self._reconcile_cleared(target_account_id, desired)
            except UpstreamError as e:
                # Created and duplicate entries are still valid, only the status fix-up is lost
                logger.warning(
                    f"Error updating cleared status of duplicates: {e}",
                    extra={"ynab_account_id": target_account_id, "duplicates": len(duplicate_ids)},
                )
                result.failures.append(ItemOutcome.failure(CLEARED_UPDATE_PHASE, target_account_id, str(e)))

        logger.info(
            "YNAB batch create complete",
            extra={
                "ynab_account_id": target_account_id,
                "imported": result.imported,
                "duplicates": result.duplicates,
                "cleared_updated": result.cleared_updated,
            },
        )
        record_sync(result)
        return result

    async def _reconcile_cleared(self, target_account_id: str, desired: Dict[str, ClearedState]) -> int:
        """
        Bring the cleared status of existing YNAB entries in line with Up Bank.

        Entries already reconciled in YNAB are left alone: reconciled implies
        cleared, and a settled Up transaction never goes back to held.

        Returns the number of updated entries.
        """
        existing = await self.target.get_transactions_by_account(target_account_id)
        updates = [
            ClearedUpdate(id=tx.id, cleared=desired[tx.import_id])
            for tx in existing
            if tx.import_id in desired
            and tx.cleared != ClearedState.RECONCILED
            and tx.cleared != desired[tx.import_id]
        ]
        if not updates:
            logger.info("Duplicate transactions already have the correct cleared status")
            return 0
        return await self.target.update_transactions(updates)
