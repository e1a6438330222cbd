"""YNAB import_id derivation for Up Bank transactions.

The prefix and length limit are a wire contract with every YNAB entry this
service (or an earlier version of it) has already created. Changing either
breaks duplicate suppression against existing history.

Up transaction ids are UUIDs (36 chars), so after the 7 char prefix only the
first 29 chars survive truncation. Two ids sharing those 29 chars collide;
that is accepted.
"""

from typing import Optional

IMPORT_ID_PREFIX = "UPBANK:"
MAX_IMPORT_ID_LENGTH = 36
FRAGMENT_LENGTH = MAX_IMPORT_ID_LENGTH - len(IMPORT_ID_PREFIX)


def import_id_for(source_id: str) -> str:
    """Idempotency key for an Up Bank transaction id"""
    return f"{IMPORT_ID_PREFIX}{source_id}"[:MAX_IMPORT_ID_LENGTH]


def source_fragment(source_id: str) -> str:
    """Part of a source id that survives inside its import_id"""
    return source_id[:FRAGMENT_LENGTH]


def is_sync_import_id(import_id: Optional[str]) -> bool:
    return bool(import_id) and import_id.startswith(IMPORT_ID_PREFIX)


def fragment_from_import_id(import_id: str) -> str:
    """Inverse of import_id_for, up to truncation"""
    if not import_id.startswith(IMPORT_ID_PREFIX):
        raise ValueError(f"import_id {import_id!r} was not created by this service")
    return import_id[len(IMPORT_ID_PREFIX):]
