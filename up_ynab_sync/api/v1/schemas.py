"""Pydantic schemas for API request/response validation"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class SyncRequest(BaseModel):
    """Request body for POST /v1/sync"""

    start_date: str = Field(..., description="First day to sync, YYYY-MM-DD")


class AccountResultSchema(BaseModel):
    """Sync outcome of one account pairing"""

    model_config = ConfigDict(from_attributes=True)

    source_account_id: str
    target_account_id: str
    imported: int
    duplicates: int
    total: int


class SyncResponse(BaseModel):
    """Response for POST /v1/sync"""

    model_config = ConfigDict(from_attributes=True)

    imported: int
    duplicates: int
    total: int
    accounts: List[AccountResultSchema]


class ReconcileRequest(BaseModel):
    """Request body for POST /v1/reconcile"""

    dry_run: bool = Field(False, description="Classify only, make no changes")


class OrphanedTransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    target_id: str
    source_id: str
    payee: str
    amount: Decimal
    date: date


class RestoredTransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    source_id: str
    payee: str
    amount: Decimal
    date: date


class ItemFailureSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    phase: str
    item_id: str
    error: Optional[str] = None


class ReconcileResponse(BaseModel):
    """Response for POST /v1/reconcile"""

    model_config = ConfigDict(from_attributes=True)

    message: str
    dry_run: bool
    earliest_date: Optional[date] = None
    imported: int
    duplicates: int
    total: int
    orphaned_deleted: int
    orphaned_transactions: List[OrphanedTransactionSchema]
    restored_count: int
    restored_transactions: List[RestoredTransactionSchema]
    accounts: List[AccountResultSchema]
    failures: List[ItemFailureSchema]


class WebhookResponse(BaseModel):
    """Response for POST /v1/webhook"""

    model_config = ConfigDict(from_attributes=True)

    message: str
    event_type: str
    imported: int = 0
    duplicate: bool = False
    deleted: bool = False
    not_found: bool = False
    skipped: bool = False


class WebhookRegistrationResponse(BaseModel):
    """Response for POST /v1/webhook/register"""

    webhook_id: str
    webhook_url: str
    secret_key: str
    message: str


class UpAccountSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    balance: str


class UpAccountsResponse(BaseModel):
    """Response for GET /v1/up/accounts"""

    accounts: List[UpAccountSchema]


class BudgetSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str


class YnabAccountSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: str
    on_budget: bool
    closed: bool


class YnabInfoResponse(BaseModel):
    """Response for GET /v1/ynab/info"""

    budgets: List[BudgetSchema]
    configured_budget_id: str
    accounts: List[YnabAccountSchema]
