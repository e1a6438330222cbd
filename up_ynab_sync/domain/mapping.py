"""Up Bank → YNAB transaction mapping"""

import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import List, Tuple

from up_ynab_sync.domain.import_ids import import_id_for
from up_ynab_sync.domain.models import (
    ClearedState,
    MappingResult,
    MappingWarning,
    NewTransaction,
    SourceStatus,
    SourceTransaction,
)

logger = logging.getLogger(__name__)

MILLIUNITS_PER_UNIT = 1000
UNKNOWN_PAYEE = "Unknown"

_CLEARED_BY_STATUS = {
    SourceStatus.HELD.value: ClearedState.UNCLEARED,
    SourceStatus.SETTLED.value: ClearedState.CLEARED,
}


def parse_amount(value: str | None) -> Tuple[Decimal, bool]:
    """
    Parse an Up Bank decimal amount string.

    Returns (amount, ok). A missing value is 0; malformed and non-finite
    strings give (0, False).
    """
    try:
        amount = Decimal(value or "0")
    except (InvalidOperation, TypeError, ValueError):
        return Decimal(0), False
    if not amount.is_finite():
        return Decimal(0), False
    return amount, True


def to_milliunits(amount: Decimal) -> int:
    return int((amount * MILLIUNITS_PER_UNIT).to_integral_value(rounding=ROUND_HALF_UP))


def transaction_date(source: SourceTransaction) -> date:
    """Settlement date when settled, otherwise the date first seen"""
    moment: datetime = source.settled_at or source.created_at or datetime.now(timezone.utc)
    # Local date in the offset Up reported, i.e. the first 10 chars of the timestamp
    return moment.date()


def cleared_state_for(status: str) -> ClearedState:
    """Unknown statuses fall back to uncleared"""
    return _CLEARED_BY_STATUS.get(status, ClearedState.UNCLEARED)


def map_transaction(
    source: SourceTransaction,
    target_account_id: str,
    *,
    restoration: bool = False,
) -> MappingResult:
    """
    Map one Up Bank transaction to a YNAB create payload.

    Never raises. Problems with the source data are returned as warnings and
    the fail-safe default is used instead.

    Args:
        source: Transaction fetched from Up Bank
        target_account_id: YNAB account receiving the entry
        restoration: Omit the import_id. YNAB rejects an import_id still held
            by a soft-deleted entry, so re-created entries go in without one.
    """
    warnings: List[MappingWarning] = []

    raw_amount = source.amount.value if source.amount else None
    amount, amount_ok = parse_amount(raw_amount)
    if not amount_ok:
        warnings.append(MappingWarning(source.id, f"Unparseable amount {raw_amount!r}, using 0"))

    if source.status not in _CLEARED_BY_STATUS:
        warnings.append(
            MappingWarning(source.id, f"Unexpected Up Bank status {source.status!r}, mapping to uncleared")
        )

    for warning in warnings:
        logger.warning(warning.message, extra={"transaction_id": warning.transaction_id})

    transaction = NewTransaction(
        account_id=target_account_id,
        date=transaction_date(source),
        amount=to_milliunits(amount),
        payee_name=source.description or UNKNOWN_PAYEE,
        memo=source.memo or None,
        cleared=cleared_state_for(source.status),
        approved=False,
        import_id=None if restoration else import_id_for(source.id),
    )
    return MappingResult(transaction=transaction, warnings=warnings)
