"""Up Bank webhook event handling"""

import hashlib
import hmac
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

from up_ynab_sync.domain.exceptions import ConfigurationError
from up_ynab_sync.domain.import_ids import import_id_for
from up_ynab_sync.domain.models import AccountMapping, DeletionResult, SyncSummary
from up_ynab_sync.domain.ports import SourceLedger, TargetLedger
from up_ynab_sync.infrastructure.observability.logging import log_sync_outcome
from up_ynab_sync.services.sync import IncrementalSyncer

logger = logging.getLogger(__name__)

TRANSACTION_CREATED = "TRANSACTION_CREATED"
TRANSACTION_SETTLED = "TRANSACTION_SETTLED"
TRANSACTION_DELETED = "TRANSACTION_DELETED"


def verify_signature(body: bytes, signature: str, secret: str) -> bool:
    """Up signs the raw request body with HMAC-SHA256, hex encoded"""
    computed = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    # Header values arrive latin-1 decoded and may hold non-ASCII characters
    return hmac.compare_digest(computed.encode("ascii"), signature.encode("utf-8", "surrogateescape"))


@dataclass
class WebhookEvent:
    event_type: str
    transaction_id: Optional[str]

    @classmethod
    def parse(cls, payload: Dict[str, Any]) -> "WebhookEvent":
        """
        Extract the event type and referenced transaction from an Up webhook body.

        Raises:
            ConfigurationError: If the body is not an Up webhook event
        """
        try:
            data = payload["data"]
            event_type = data["attributes"]["eventType"]
            transaction = (data.get("relationships") or {}).get("transaction")
            transaction_id = transaction["data"]["id"] if transaction else None
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Malformed webhook event: missing {e}") from e
        return cls(event_type=event_type, transaction_id=transaction_id)


@dataclass
class EventOutcome:
    """What happened to one webhook event"""

    message: str
    event_type: str
    imported: int = 0
    duplicate: bool = False
    deleted: bool = False
    not_found: bool = False
    skipped: bool = False


class WebhookEventProcessor:
    """Applies single-transaction Up Bank events to YNAB"""

    def __init__(self, source: SourceLedger, target: TargetLedger, syncer: IncrementalSyncer):
        self.source = source
        self.target = target
        self.syncer = syncer

    async def handle(self, event: WebhookEvent, mappings: Sequence[AccountMapping]) -> EventOutcome:
        logger.info("Webhook event received", extra={"event_type": event.event_type, "transaction_id": event.transaction_id})

        if event.event_type in (TRANSACTION_CREATED, TRANSACTION_SETTLED):
            return await self._sync_one(event, mappings)
        if event.event_type == TRANSACTION_DELETED:
            result = await self.delete_by_source_id(self._require_transaction_id(event), mappings)
            return EventOutcome(
                message="Transaction deleted" if result.deleted else "Transaction not found in YNAB",
                event_type=event.event_type,
                deleted=result.deleted,
                not_found=result.not_found,
            )
        # PING and anything Up adds later
        return EventOutcome(message="Event received", event_type=event.event_type)

    def _require_transaction_id(self, event: WebhookEvent) -> str:
        if not event.transaction_id:
            raise ConfigurationError(f"{event.event_type} event without a transaction")
        return event.transaction_id

    async def _sync_one(self, event: WebhookEvent, mappings: Sequence[AccountMapping]) -> EventOutcome:
        start_time = time.time()
        transaction = await self.source.get_transaction(self._require_transaction_id(event))
        mapping = next((m for m in mappings if m.source_account_id == transaction.account_id), None)
        if mapping is None:
            logger.warning(
                f"Skipping transaction from unmapped account: {transaction.account_id}",
                extra={"transaction_id": transaction.id},
            )
            return EventOutcome(message="Account not mapped, skipped", event_type=event.event_type, skipped=True)

        result = await self.syncer.sync_transactions(mapping.target_account_id, [transaction])
        summary = SyncSummary()
        summary.add(mapping, result)
        log_sync_outcome("webhook", summary, (time.time() - start_time) * 1000)
        return EventOutcome(
            message="Transaction processed",
            event_type=event.event_type,
            imported=result.imported,
            duplicate=result.duplicates > 0,
        )

    async def delete_by_source_id(self, source_id: str, mappings: Sequence[AccountMapping]) -> DeletionResult:
        """
        Delete the YNAB mirror of an Up Bank transaction, searching every mapped account.

        Raises:
            UpstreamFetchError: If a mapped account cannot be listed
            UpstreamWriteError: If YNAB rejects the delete
        """
        import_id = import_id_for(source_id)
        for mapping in mappings:
            existing = await self.target.get_transactions_by_account(mapping.target_account_id)
            match = next((tx for tx in existing if tx.import_id == import_id), None)
            if match is not None:
                await self.target.delete_transaction(match.id)
                logger.info(
                    f"Deleted YNAB transaction {match.id}",
                    extra={"import_id": import_id, "ynab_account_id": mapping.target_account_id},
                )
                return DeletionResult(deleted=True, not_found=False, target_id=match.id)

        logger.info(f"Transaction with import_id {import_id} not found in YNAB")
        return DeletionResult(deleted=False, not_found=True)
