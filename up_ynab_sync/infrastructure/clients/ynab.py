"""YNAB API HTTP client for the transactions of one budget"""

import httpx
from datetime import date
from typing import Any, Dict, List, Optional, Type

from up_ynab_sync.config import settings
from up_ynab_sync.domain.exceptions import UpstreamError, UpstreamFetchError, UpstreamWriteError
from up_ynab_sync.domain.models import (
    Budget,
    ClearedState,
    ClearedUpdate,
    CreateResult,
    NewTransaction,
    TargetAccount,
    TargetTransaction,
)
from up_ynab_sync.infrastructure.observability.metrics import upstream_failures_counter, upstream_latency_histogram

SERVICE = "ynab"


def parse_transaction(raw: Dict[str, Any]) -> TargetTransaction:
    """Build a TargetTransaction from a YNAB TransactionDetail"""
    return TargetTransaction(
        id=raw["id"],
        account_id=raw["account_id"],
        date=date.fromisoformat(raw["date"]),
        amount=int(raw["amount"]),
        payee_name=raw.get("payee_name"),
        memo=raw.get("memo"),
        cleared=ClearedState(raw.get("cleared") or ClearedState.UNCLEARED.value),
        approved=bool(raw.get("approved")),
        import_id=raw.get("import_id"),
        deleted=bool(raw.get("deleted")),
    )


class YnabClient:
    """Client for the YNAB API (target ledger), scoped to a single budget"""

    def __init__(
        self,
        access_token: str | None = None,
        budget_id: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
    ):
        self.access_token = access_token or settings.ynab_access_token
        self.budget_id = budget_id or settings.ynab_budget_id
        self.base_url = (base_url or settings.ynab_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds

    @property
    def budget_url(self) -> str:
        return f"{self.base_url}/budgets/{self.budget_id}"

    async def _request(
        self,
        method: str,
        url: str,
        operation: str,
        error_cls: Type[UpstreamError],
        json: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send one request.

        Raises:
            error_cls: On timeout, transport failure or HTTP error
        """
        async with httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.access_token}"},
        ) as client:
            try:
                with upstream_latency_histogram.labels(service=SERVICE).time():
                    response = await client.request(method, url, json=json, params=params)
                    response.raise_for_status()
                return response
            except httpx.TimeoutException as e:
                upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
                raise error_cls(f"YNAB API timeout after {self.timeout}s", service=SERVICE) from e
            except httpx.HTTPStatusError as e:
                upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
                raise error_cls(
                    f"YNAB API error: {e.response.status_code} {_error_detail(e.response)}",
                    service=SERVICE,
                    status_code=e.response.status_code,
                ) from e
            except httpx.RequestError as e:
                upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
                raise error_cls(f"YNAB API unreachable: {e}", service=SERVICE) from e

    async def _data(self, method: str, url: str, operation: str, error_cls: Type[UpstreamError], **kwargs) -> Dict[str, Any]:
        response = await self._request(method, url, operation, error_cls, **kwargs)
        try:
            return response.json()["data"]
        except (KeyError, ValueError, TypeError) as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise error_cls(f"Invalid response from YNAB: {e}", service=SERVICE) from e

    def _parse_transactions(self, data: Dict[str, Any], operation: str) -> List[TargetTransaction]:
        try:
            return [parse_transaction(raw) for raw in data["transactions"]]
        except (KeyError, ValueError, TypeError) as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(f"Invalid transaction data from YNAB: {e}", service=SERVICE) from e

    async def get_transactions_by_account(self, account_id: str) -> List[TargetTransaction]:
        """
        List the non-deleted transactions of one account.

        Raises:
            UpstreamFetchError: On any API failure
        """
        operation = "get_transactions_by_account"
        data = await self._data(
            "GET", f"{self.budget_url}/accounts/{account_id}/transactions", operation, UpstreamFetchError
        )
        return [tx for tx in self._parse_transactions(data, operation) if not tx.deleted]

    async def list_all_transactions_including_deleted(self) -> List[TargetTransaction]:
        """
        Full budget history as a delta from server knowledge 0.

        YNAB only reports soft-deleted entries in delta responses, so this is
        the one listing that includes them.
        """
        operation = "list_all_transactions"
        data = await self._data(
            "GET",
            f"{self.budget_url}/transactions",
            operation,
            UpstreamFetchError,
            params={"last_knowledge_of_server": 0},
        )
        return self._parse_transactions(data, operation)

    async def create_transactions(self, transactions: List[NewTransaction]) -> CreateResult:
        """
        Batch create. Entries whose import_id already exists are skipped by YNAB
        and reported back as duplicates.

        Raises:
            UpstreamWriteError: If YNAB rejects the batch
        """
        data = await self._data(
            "POST",
            f"{self.budget_url}/transactions",
            "create_transactions",
            UpstreamWriteError,
            json={"transactions": [tx.to_payload() for tx in transactions]},
        )
        transaction_ids = data.get("transaction_ids") or []
        return CreateResult(
            created_count=len(transaction_ids),
            duplicate_import_ids=data.get("duplicate_import_ids") or [],
            transaction_ids=transaction_ids,
        )

    async def update_transactions(self, updates: List[ClearedUpdate]) -> int:
        """Batch update of cleared status; returns the number of updated entries"""
        data = await self._data(
            "PATCH",
            f"{self.budget_url}/transactions",
            "update_transactions",
            UpstreamWriteError,
            json={"transactions": [{"id": u.id, "cleared": u.cleared.value} for u in updates]},
        )
        return len(data.get("transactions") or data.get("transaction_ids") or [])

    async def delete_transaction(self, transaction_id: str) -> None:
        """Soft delete one transaction. A 404 means it is already gone."""
        try:
            await self._request(
                "DELETE", f"{self.budget_url}/transactions/{transaction_id}", "delete_transaction", UpstreamWriteError
            )
        except UpstreamWriteError as e:
            if e.status_code != 404:
                raise

    async def list_budgets(self) -> List[Budget]:
        operation = "list_budgets"
        data = await self._data("GET", f"{self.base_url}/budgets", operation, UpstreamFetchError)
        try:
            return [Budget(id=b["id"], name=b["name"]) for b in data.get("budgets", [])]
        except (KeyError, TypeError, AttributeError) as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(f"Invalid budget data from YNAB: {e}", service=SERVICE) from e

    async def list_accounts(self) -> List[TargetAccount]:
        operation = "list_accounts"
        data = await self._data("GET", f"{self.budget_url}/accounts", operation, UpstreamFetchError)
        try:
            return [
                TargetAccount(
                    id=a["id"],
                    name=a["name"],
                    type=a["type"],
                    on_budget=a["on_budget"],
                    closed=a["closed"],
                )
                for a in data.get("accounts", [])
                if not a.get("deleted")
            ]
        except (KeyError, TypeError, AttributeError) as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(f"Invalid account data from YNAB: {e}", service=SERVICE) from e


def _error_detail(response: httpx.Response) -> str:
    """YNAB error bodies look like {"error": {"id", "name", "detail"}}"""
    try:
        return response.json()["error"]["detail"]
    except (KeyError, ValueError, TypeError):
        return response.text
