"""Domain models - pure Python dataclasses representing ledger entities and run outcomes"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class SourceStatus(str, Enum):
    """Up Bank transaction processing status"""

    HELD = "HELD"
    SETTLED = "SETTLED"


class ClearedState(str, Enum):
    """YNAB cleared status"""

    UNCLEARED = "uncleared"
    CLEARED = "cleared"
    RECONCILED = "reconciled"


@dataclass(frozen=True)
class AccountMapping:
    """Pairing of an Up Bank account with the YNAB account mirroring it"""

    source_account_id: str
    target_account_id: str


@dataclass
class Money:
    """Up Bank money object"""

    value: str  # Decimal string, e.g. "-10.56"
    value_in_base_units: int
    currency_code: str


@dataclass
class SourceTransaction:
    """Transaction as recorded by Up Bank"""

    id: str
    status: str  # Raw status; see SourceStatus for the recognised values
    amount: Money
    description: str
    memo: Optional[str]
    created_at: Optional[datetime]
    settled_at: Optional[datetime]
    account_id: str


@dataclass
class TargetTransaction:
    """Transaction as stored in YNAB"""

    id: str
    account_id: str
    date: date
    amount: int  # Milliunits, expenses negative
    payee_name: Optional[str]
    memo: Optional[str]
    cleared: ClearedState
    approved: bool
    import_id: Optional[str]
    deleted: bool = False


@dataclass
class NewTransaction:
    """Create payload for a YNAB transaction"""

    account_id: str
    date: date
    amount: int
    payee_name: str
    cleared: ClearedState
    memo: Optional[str] = None
    approved: bool = False
    import_id: Optional[str] = None

    def to_payload(self) -> dict:
        """YNAB wire format; optional fields are omitted rather than sent as null"""
        payload = {
            "account_id": self.account_id,
            "date": self.date.isoformat(),
            "amount": self.amount,
            "payee_name": self.payee_name,
            "cleared": self.cleared.value,
            "approved": self.approved,
        }
        if self.memo:
            payload["memo"] = self.memo
        if self.import_id is not None:
            payload["import_id"] = self.import_id
        return payload


@dataclass
class ClearedUpdate:
    """Partial update setting the cleared status of an existing YNAB transaction"""

    id: str
    cleared: ClearedState


@dataclass
class CreateResult:
    """Outcome of a batched YNAB create"""

    created_count: int
    duplicate_import_ids: List[str]
    transaction_ids: List[str] = field(default_factory=list)


@dataclass
class MappingWarning:
    """Non-fatal problem found while mapping a source transaction"""

    transaction_id: str
    message: str


@dataclass
class MappingResult:
    transaction: NewTransaction
    warnings: List[MappingWarning] = field(default_factory=list)


@dataclass
class ItemOutcome:
    """Result of one item in a best-effort phase"""

    phase: str  # cleared_update | orphan_delete | restore
    item_id: str
    ok: bool
    error: Optional[str] = None

    @classmethod
    def success(cls, phase: str, item_id: str) -> "ItemOutcome":
        return cls(phase=phase, item_id=item_id, ok=True)

    @classmethod
    def failure(cls, phase: str, item_id: str, error: str) -> "ItemOutcome":
        return cls(phase=phase, item_id=item_id, ok=False, error=error)


@dataclass
class SyncResult:
    """Outcome of syncing one account pairing"""

    imported: int = 0
    duplicates: int = 0
    total: int = 0
    cleared_updated: int = 0
    warnings: List[MappingWarning] = field(default_factory=list)
    failures: List[ItemOutcome] = field(default_factory=list)


@dataclass
class AccountSyncResult:
    source_account_id: str
    target_account_id: str
    imported: int
    duplicates: int
    total: int


@dataclass
class SyncSummary:
    """Totals across every account pairing of a sync run"""

    imported: int = 0
    duplicates: int = 0
    total: int = 0
    accounts: List[AccountSyncResult] = field(default_factory=list)

    def add(self, mapping: AccountMapping, result: SyncResult) -> None:
        self.imported += result.imported
        self.duplicates += result.duplicates
        self.total += result.total
        self.accounts.append(
            AccountSyncResult(
                source_account_id=mapping.source_account_id,
                target_account_id=mapping.target_account_id,
                imported=result.imported,
                duplicates=result.duplicates,
                total=result.total,
            )
        )


@dataclass
class OrphanedTransaction:
    """YNAB entry whose Up Bank transaction no longer exists"""

    target_id: str
    source_id: str  # Key fragment recovered from the import id, may be truncated
    payee: str
    amount: Decimal  # Currency units
    date: date


@dataclass
class RestoredTransaction:
    """Up Bank transaction re-created in YNAB after its entry was deleted there"""

    source_id: str
    payee: str
    amount: Decimal
    date: date


@dataclass
class ReconciliationReport:
    message: str
    dry_run: bool
    earliest_date: Optional[date] = None
    imported: int = 0
    duplicates: int = 0
    total: int = 0
    orphaned_deleted: int = 0
    orphaned_transactions: List[OrphanedTransaction] = field(default_factory=list)
    restored_count: int = 0
    restored_transactions: List[RestoredTransaction] = field(default_factory=list)
    accounts: List[AccountSyncResult] = field(default_factory=list)
    failures: List[ItemOutcome] = field(default_factory=list)


@dataclass
class DeletionResult:
    """Outcome of removing the YNAB mirror of a deleted Up Bank transaction"""

    deleted: bool
    not_found: bool
    target_id: Optional[str] = None


@dataclass
class SourceAccount:
    id: str
    name: str
    type: str
    balance: str


@dataclass
class TargetAccount:
    id: str
    name: str
    type: str
    on_budget: bool
    closed: bool


@dataclass
class Budget:
    id: str
    name: str


@dataclass
class WebhookRegistration:
    webhook_id: str
    url: str
    secret_key: str
