"""Pytest fixtures for testing"""

import itertools
from collections import Counter
from dataclasses import replace
from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Set

import pytest
from fastapi.testclient import TestClient

from up_ynab_sync.api.dependencies import get_up_client, get_ynab_client
from up_ynab_sync.api.main import create_app
from up_ynab_sync.config import settings
from up_ynab_sync.domain.exceptions import UpstreamFetchError, UpstreamWriteError
from up_ynab_sync.domain.models import (
    AccountMapping,
    Budget,
    ClearedState,
    ClearedUpdate,
    CreateResult,
    Money,
    NewTransaction,
    SourceAccount,
    SourceTransaction,
    TargetAccount,
    TargetTransaction,
    WebhookRegistration,
)

UP_ACCOUNT = "up-spending"
YNAB_ACCOUNT = "ynab-checking"
UP_SAVER = "up-saver"
YNAB_SAVINGS = "ynab-savings"


def up_id(n: int) -> str:
    """36 char UUID-shaped Up Bank id, longer than the import_id budget allows"""
    return f"{n:08x}-aaaa-4bbb-8ccc-{n:012x}"


class FakeUpBank:
    """In-memory Up Bank with call counting"""

    def __init__(self):
        self.transactions: Dict[str, SourceTransaction] = {}
        self.calls: Counter = Counter()
        self.fail_fetch = False

    def add(self, *transactions: SourceTransaction) -> None:
        for tx in transactions:
            self.transactions[tx.id] = tx

    def remove(self, transaction_id: str) -> None:
        del self.transactions[transaction_id]

    async def list_transactions_since(self, account_id: str, since: date) -> List[SourceTransaction]:
        self.calls["list_transactions_since"] += 1
        if self.fail_fetch:
            raise UpstreamFetchError("Up Bank API error: 500", service="up", status_code=500)
        return [
            tx
            for tx in self.transactions.values()
            if tx.account_id == account_id and tx.created_at.date() >= since
        ]

    async def get_transaction(self, transaction_id: str) -> SourceTransaction:
        self.calls["get_transaction"] += 1
        if transaction_id not in self.transactions:
            raise UpstreamFetchError("Up Bank API error: 404", service="up", status_code=404)
        return self.transactions[transaction_id]

    async def list_accounts(self) -> List[SourceAccount]:
        self.calls["list_accounts"] += 1
        return [SourceAccount(id=UP_ACCOUNT, name="Spending", type="TRANSACTIONAL", balance="120.00")]

    async def register_webhook(self, url: str, description: str) -> WebhookRegistration:
        self.calls["register_webhook"] += 1
        return WebhookRegistration(webhook_id="webhook-1", url=url, secret_key="shh")


class FakeYnab:
    """
    In-memory YNAB budget.

    Like the real API, a create whose import_id is already held by any entry
    (soft-deleted ones included) is skipped and reported as a duplicate.
    """

    WRITE_OPERATIONS = ("create_transactions", "update_transactions", "delete_transaction")

    def __init__(self):
        self.transactions: List[TargetTransaction] = []
        self.calls: Counter = Counter()
        self.fail_list = False
        self.fail_update = False
        self.fail_create_accounts: Set[str] = set()
        self.fail_unkeyed_creates = False
        self.fail_delete_ids: Set[str] = set()
        self._ids = itertools.count(1)
        self.budget_id = "budget-1"

    @property
    def write_calls(self) -> int:
        return sum(self.calls[op] for op in self.WRITE_OPERATIONS)

    def seed(
        self,
        account_id: str = YNAB_ACCOUNT,
        on: date = date(2024, 3, 1),
        amount: int = -12500,
        payee_name: str = "Coffee",
        cleared: ClearedState = ClearedState.CLEARED,
        import_id: Optional[str] = None,
        deleted: bool = False,
    ) -> TargetTransaction:
        tx = TargetTransaction(
            id=f"ynab-{next(self._ids)}",
            account_id=account_id,
            date=on,
            amount=amount,
            payee_name=payee_name,
            memo=None,
            cleared=cleared,
            approved=False,
            import_id=import_id,
            deleted=deleted,
        )
        self.transactions.append(tx)
        return tx

    def active(self, account_id: Optional[str] = None) -> List[TargetTransaction]:
        return [
            tx for tx in self.transactions
            if not tx.deleted and (account_id is None or tx.account_id == account_id)
        ]

    def by_id(self, transaction_id: str) -> TargetTransaction:
        return next(tx for tx in self.transactions if tx.id == transaction_id)

    async def get_transactions_by_account(self, account_id: str) -> List[TargetTransaction]:
        self.calls["get_transactions_by_account"] += 1
        if self.fail_list:
            raise UpstreamFetchError("YNAB API error: 503", service="ynab", status_code=503)
        return [replace(tx) for tx in self.active(account_id)]

    async def list_all_transactions_including_deleted(self) -> List[TargetTransaction]:
        self.calls["list_all_transactions_including_deleted"] += 1
        if self.fail_list:
            raise UpstreamFetchError("YNAB API error: 503", service="ynab", status_code=503)
        return [replace(tx) for tx in self.transactions]

    async def create_transactions(self, transactions: List[NewTransaction]) -> CreateResult:
        self.calls["create_transactions"] += 1
        if self.fail_create_accounts & {tx.account_id for tx in transactions}:
            raise UpstreamWriteError("YNAB API error: 400", service="ynab", status_code=400)
        if self.fail_unkeyed_creates and any(tx.import_id is None for tx in transactions):
            raise UpstreamWriteError("YNAB API error: 422", service="ynab", status_code=422)

        taken = {tx.import_id for tx in self.transactions if tx.import_id}
        duplicates: List[str] = []
        created: List[str] = []
        for new in transactions:
            if new.import_id and new.import_id in taken:
                duplicates.append(new.import_id)
                continue
            tx = self.seed(
                account_id=new.account_id,
                on=new.date,
                amount=new.amount,
                payee_name=new.payee_name,
                cleared=new.cleared,
                import_id=new.import_id,
            )
            tx.memo = new.memo
            created.append(tx.id)
            if new.import_id:
                taken.add(new.import_id)
        return CreateResult(created_count=len(created), duplicate_import_ids=duplicates, transaction_ids=created)

    async def update_transactions(self, updates: List[ClearedUpdate]) -> int:
        self.calls["update_transactions"] += 1
        if self.fail_update:
            raise UpstreamWriteError("YNAB API error: 500", service="ynab", status_code=500)
        for update in updates:
            self.by_id(update.id).cleared = update.cleared
        return len(updates)

    async def delete_transaction(self, transaction_id: str) -> None:
        self.calls["delete_transaction"] += 1
        if transaction_id in self.fail_delete_ids:
            raise UpstreamWriteError("YNAB API error: 500", service="ynab", status_code=500)
        self.by_id(transaction_id).deleted = True

    async def list_budgets(self) -> List[Budget]:
        return [Budget(id=self.budget_id, name="Household")]

    async def list_accounts(self) -> List[TargetAccount]:
        return [TargetAccount(id=YNAB_ACCOUNT, name="Checking", type="checking", on_budget=True, closed=False)]


@pytest.fixture
def up_bank() -> FakeUpBank:
    return FakeUpBank()


@pytest.fixture
def ynab() -> FakeYnab:
    return FakeYnab()


@pytest.fixture
def mapping() -> AccountMapping:
    return AccountMapping(source_account_id=UP_ACCOUNT, target_account_id=YNAB_ACCOUNT)


@pytest.fixture
def saver_mapping() -> AccountMapping:
    return AccountMapping(source_account_id=UP_SAVER, target_account_id=YNAB_SAVINGS)


@pytest.fixture
def make_up_transaction() -> Callable[..., SourceTransaction]:
    """Factory for Up Bank transactions; settled ones settle a day after creation"""

    def factory(
        n: int = 1,
        status: str = "SETTLED",
        value: str = "-12.50",
        description: str = "Coffee",
        memo: Optional[str] = None,
        account_id: str = UP_ACCOUNT,
        created_at: str = "2024-02-29T09:15:00+11:00",
        settled_at: Optional[str] = "2024-03-01T02:00:00+11:00",
    ) -> SourceTransaction:
        return SourceTransaction(
            id=up_id(n),
            status=status,
            amount=Money(value=value, value_in_base_units=0, currency_code="AUD"),
            description=description,
            memo=memo,
            created_at=datetime.fromisoformat(created_at),
            settled_at=datetime.fromisoformat(settled_at) if status == "SETTLED" and settled_at else None,
            account_id=account_id,
        )

    return factory


@pytest.fixture
def api_settings(monkeypatch):
    """Operator API key and a single account pairing"""
    monkeypatch.setattr(settings, "api_key", "test-api-key")
    monkeypatch.setattr(settings, "up_webhook_secret", "")
    monkeypatch.setattr(settings, "account_mapping", {UP_ACCOUNT: YNAB_ACCOUNT})
    return settings


@pytest.fixture
def client(api_settings, up_bank: FakeUpBank, ynab: FakeYnab) -> TestClient:
    """Create FastAPI test client backed by the in-memory ledgers"""
    app = create_app()
    app.dependency_overrides[get_up_client] = lambda: up_bank
    app.dependency_overrides[get_ynab_client] = lambda: ynab
    return TestClient(app, raise_server_exceptions=False)


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    return {"Authorization": "Bearer test-api-key"}
