"""Up Bank API HTTP client for reading accounts and transactions"""

import httpx
from datetime import date, datetime
from typing import Any, AsyncIterator, Dict, List, Optional

from up_ynab_sync.config import settings
from up_ynab_sync.domain.exceptions import UpstreamFetchError, UpstreamWriteError
from up_ynab_sync.domain.models import Money, SourceAccount, SourceTransaction, WebhookRegistration
from up_ynab_sync.infrastructure.observability.metrics import upstream_failures_counter, upstream_latency_histogram

SERVICE = "up"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def parse_transaction(resource: Dict[str, Any]) -> SourceTransaction:
    """Build a SourceTransaction from an Up Bank transaction resource"""
    attributes = resource["attributes"]
    amount = attributes["amount"]
    return SourceTransaction(
        id=resource["id"],
        status=attributes.get("status") or "",
        amount=Money(
            value=amount.get("value", "0"),
            value_in_base_units=amount.get("valueInBaseUnits", 0),
            currency_code=amount.get("currencyCode", ""),
        ),
        description=attributes.get("description") or "",
        memo=attributes.get("message") or None,
        created_at=_parse_timestamp(attributes.get("createdAt")),
        settled_at=_parse_timestamp(attributes.get("settledAt")),
        account_id=resource["relationships"]["account"]["data"]["id"],
    )


class TransactionPages:
    """
    Lazy view over a paginated Up Bank transaction listing.

    Every `async for` starts again from the first page and follows
    `links.next` until Up stops returning one. Nothing is fetched until
    iteration begins.
    """

    def __init__(self, client: "UpBankClient", url: str, params: Dict[str, Any]):
        self._client = client
        self._url = url
        self._params = params

    def __aiter__(self) -> AsyncIterator[SourceTransaction]:
        return self._client._iter_resources(self._url, self._params, parse_transaction, "list_transactions")

    async def collect(self) -> List[SourceTransaction]:
        return [transaction async for transaction in self]


class UpBankClient:
    """Client for the Up Bank API (source ledger)"""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        timezone_offset: str | None = None,
        page_size: int | None = None,
    ):
        self.api_key = api_key or settings.up_api_key
        self.base_url = (base_url or settings.up_api_base).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self.timezone_offset = timezone_offset or settings.up_timezone_offset
        self.page_size = page_size or settings.up_page_size

    def _http(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.timeout,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def _get_json(
        self,
        client: httpx.AsyncClient,
        url: str,
        params: Optional[Dict[str, Any]],
        operation: str,
    ) -> Dict[str, Any]:
        """
        GET one page and decode it.

        Raises:
            UpstreamFetchError: On timeout, transport failure, HTTP error or non-JSON body
        """
        try:
            with upstream_latency_histogram.labels(service=SERVICE).time():
                response = await client.get(url, params=params)
                response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(f"Up Bank API timeout after {self.timeout}s", service=SERVICE) from e
        except httpx.HTTPStatusError as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(
                f"Up Bank API error: {e.response.status_code}",
                service=SERVICE,
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(f"Up Bank API unreachable: {e}", service=SERVICE) from e
        except ValueError as e:
            upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
            raise UpstreamFetchError(f"Invalid JSON from Up Bank: {e}", service=SERVICE) from e

    async def _iter_resources(self, url: str, params: Dict[str, Any], parse, operation: str):
        """Yield parsed resources page by page until links.next is null"""
        async with self._http() as client:
            next_url: Optional[str] = url
            next_params: Optional[Dict[str, Any]] = params
            while next_url:
                page = await self._get_json(client, next_url, next_params, operation)
                try:
                    resources = page["data"]
                    next_url = (page.get("links") or {}).get("next")
                    parsed = [parse(resource) for resource in resources]
                except (KeyError, ValueError, TypeError, AttributeError) as e:
                    upstream_failures_counter.labels(service=SERVICE, operation=operation).inc()
                    raise UpstreamFetchError(f"Invalid data from Up Bank: {e}", service=SERVICE) from e
                # The next link already carries the filter and page size
                next_params = None
                for item in parsed:
                    yield item

    def since_filter(self, since: date) -> str:
        """RFC-3339 lower bound at local midnight"""
        return f"{since.isoformat()}T00:00:00{self.timezone_offset}"

    def transactions_since(self, account_id: str, since: date) -> TransactionPages:
        return TransactionPages(
            self,
            f"{self.base_url}/accounts/{account_id}/transactions",
            {"filter[since]": self.since_filter(since), "page[size]": self.page_size},
        )

    async def list_transactions_since(self, account_id: str, since: date) -> List[SourceTransaction]:
        """
        Fetch every transaction for an account since a date.

        All pages are accumulated before returning. No page-count limit.

        Raises:
            UpstreamFetchError: If any page fails; partial results are discarded
        """
        return await self.transactions_since(account_id, since).collect()

    async def get_transaction(self, transaction_id: str) -> SourceTransaction:
        """Fetch a single transaction, e.g. the one referenced by a webhook event"""
        async with self._http() as client:
            payload = await self._get_json(
                client, f"{self.base_url}/transactions/{transaction_id}", None, "get_transaction"
            )
        try:
            return parse_transaction(payload["data"])
        except (KeyError, ValueError, TypeError, AttributeError) as e:
            upstream_failures_counter.labels(service=SERVICE, operation="get_transaction").inc()
            raise UpstreamFetchError(f"Invalid transaction response from Up Bank: {e}", service=SERVICE) from e

    async def list_accounts(self) -> List[SourceAccount]:
        def parse(resource: Dict[str, Any]) -> SourceAccount:
            attributes = resource["attributes"]
            return SourceAccount(
                id=resource["id"],
                name=attributes["displayName"],
                type=attributes["accountType"],
                balance=attributes["balance"]["value"],
            )

        return [
            account
            async for account in self._iter_resources(
                f"{self.base_url}/accounts", {"page[size]": self.page_size}, parse, "list_accounts"
            )
        ]

    async def register_webhook(self, url: str, description: str) -> WebhookRegistration:
        """
        Register a webhook delivering transaction events to `url`.

        Up returns the signing secret only in this response.

        Raises:
            UpstreamWriteError: If Up rejects the registration
        """
        body = {"data": {"attributes": {"url": url, "description": description}}}
        async with self._http() as client:
            try:
                with upstream_latency_histogram.labels(service=SERVICE).time():
                    response = await client.post(f"{self.base_url}/webhooks", json=body)
                    response.raise_for_status()
                data = response.json()["data"]
                return WebhookRegistration(
                    webhook_id=data["id"],
                    url=url,
                    secret_key=data["attributes"]["secretKey"],
                )
            except httpx.HTTPStatusError as e:
                upstream_failures_counter.labels(service=SERVICE, operation="register_webhook").inc()
                raise UpstreamWriteError(
                    f"Up Bank API error: {e.response.status_code} {e.response.text}",
                    service=SERVICE,
                    status_code=e.response.status_code,
                ) from e
            except httpx.RequestError as e:
                upstream_failures_counter.labels(service=SERVICE, operation="register_webhook").inc()
                raise UpstreamWriteError(f"Up Bank API unreachable: {e}", service=SERVICE) from e
            except (KeyError, ValueError, TypeError) as e:
                upstream_failures_counter.labels(service=SERVICE, operation="register_webhook").inc()
                raise UpstreamWriteError(f"Invalid webhook response from Up Bank: {e}", service=SERVICE) from e
