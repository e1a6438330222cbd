"""Ledger access contracts used by the sync services"""

from datetime import date
from typing import List, Protocol

from up_ynab_sync.domain.models import (
    ClearedUpdate,
    CreateResult,
    NewTransaction,
    SourceTransaction,
    TargetTransaction,
)


class SourceLedger(Protocol):
    """Read access to Up Bank transactions"""

    async def list_transactions_since(self, account_id: str, since: date) -> List[SourceTransaction]:
        """Every transaction since `since`, all pages accumulated, no ordering guarantee"""
        ...

    async def get_transaction(self, transaction_id: str) -> SourceTransaction:
        ...


class TargetLedger(Protocol):
    """Read/write access to the transactions of one YNAB budget"""

    async def get_transactions_by_account(self, account_id: str) -> List[TargetTransaction]:
        """Non-deleted transactions of one account"""
        ...

    async def list_all_transactions_including_deleted(self) -> List[TargetTransaction]:
        """Full budget history, soft-deleted entries included"""
        ...

    async def create_transactions(self, transactions: List[NewTransaction]) -> CreateResult:
        ...

    async def update_transactions(self, updates: List[ClearedUpdate]) -> int:
        ...

    async def delete_transaction(self, transaction_id: str) -> None:
        """Soft delete; deleting an already deleted entry is not an error"""
        ...
