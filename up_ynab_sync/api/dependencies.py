"""Dependency injection for FastAPI endpoints"""

from typing import Tuple

from fastapi import Depends, Header, HTTPException, Request

from up_ynab_sync.config import settings
from up_ynab_sync.domain.exceptions import ConfigurationError
from up_ynab_sync.domain.models import AccountMapping
from up_ynab_sync.infrastructure.clients.up_bank import UpBankClient
from up_ynab_sync.infrastructure.clients.ynab import YnabClient
from up_ynab_sync.services.events import WebhookEventProcessor
from up_ynab_sync.services.reconcile import ReconciliationEngine
from up_ynab_sync.services.sync import IncrementalSyncer


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def require_api_key(authorization: str | None = Header(None)) -> None:
    """Bearer API key check for operator endpoints"""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Missing Authorization header")
    if not settings.api_key or authorization[len("Bearer "):] != settings.api_key:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_account_mappings() -> Tuple[AccountMapping, ...]:
    """Account pairings for this request, read fresh from configuration"""
    try:
        return settings.account_mappings()
    except ConfigurationError as e:
        raise HTTPException(status_code=500, detail=str(e))


def get_up_client() -> UpBankClient:
    """Provide Up Bank API client instance"""
    return UpBankClient()


def get_ynab_client() -> YnabClient:
    """Provide YNAB API client instance"""
    return YnabClient()


def get_syncer(
    up_client: UpBankClient = Depends(get_up_client),
    ynab_client: YnabClient = Depends(get_ynab_client),
) -> IncrementalSyncer:
    return IncrementalSyncer(up_client, ynab_client)


def get_reconciler(
    syncer: IncrementalSyncer = Depends(get_syncer),
    ynab_client: YnabClient = Depends(get_ynab_client),
) -> ReconciliationEngine:
    return ReconciliationEngine(syncer, ynab_client, fetch_margin_days=settings.reconcile_fetch_margin_days)


def get_event_processor(
    up_client: UpBankClient = Depends(get_up_client),
    ynab_client: YnabClient = Depends(get_ynab_client),
    syncer: IncrementalSyncer = Depends(get_syncer),
) -> WebhookEventProcessor:
    return WebhookEventProcessor(up_client, ynab_client, syncer)
