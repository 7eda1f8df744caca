"""Generic REST provider connector.

The provider exposes three list endpoints, all JSON:

* ``GET /accounts`` and ``GET /transactions``: page-numbered, ascending by
  ``createdAt``, filtered by ``createdAtFrom`` (inclusive). Each returns a
  JSON array of at most ``pageSize`` items.
* ``GET /balances``: token paginated, returning
  ``{"data": [...], "next": "<token or empty>"}``.

Amounts are decimal strings in major units; the precision comes from the
``/N`` suffix of the item's asset code.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import requests

from ..amounts import decode
from ..assets import asset_precision, filter_valid_assets
from ..config import GenericConfig
from ..errors import (
    InvalidAssetError,
    MalformedRecordError,
    TransientProviderError,
    provider_error_from_status,
)
from ..models import (
    AccountRecord,
    BalanceRecord,
    PaymentRecord,
    PaymentStatus,
    PaymentType,
)
from ..strategies import (
    TokenCursorStrategy,
    TokenPage,
    WatermarkPage,
    WatermarkPageStrategy,
)
from ..webhooks import WebhookTranslator
from .registry import Connector

logger = logging.getLogger(__name__)


class GenericClient:
    """Thin ``requests`` wrapper that maps failures to provider errors.

    Args:
        base_url: Provider API root, e.g. ``https://api.example.com/v1``
        api_key: Bearer token sent with every request
        timeout: Per-request timeout in seconds
        session: Optional session (used by tests)
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        if api_key:
            self.session.headers["Authorization"] = f"Bearer {api_key}"
        self.session.headers["Accept"] = "application/json"

    def get(self, path: str, params: dict[str, Any]) -> Any:
        """GET ``path`` and return the decoded JSON body.

        Raises:
            TransientProviderError: On timeouts, connection errors, 429 and 5xx
            PermanentProviderError: On other 4xx responses
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise TransientProviderError(f"GET {path} failed: {e}") from e
        except requests.exceptions.HTTPError as e:
            status = e.response.status_code if e.response is not None else 500
            raise provider_error_from_status(
                status, f"GET {path} returned {status}"
            ) from e

        try:
            return response.json()
        except ValueError as e:
            raise TransientProviderError(f"GET {path} returned invalid JSON") from e


def _created_from(value: datetime) -> str:
    return value.isoformat().replace("+00:00", "Z")


def _item_asset(field: str) -> Callable[[Any], str]:
    def key(item: Any) -> str:
        value = item.get(field) if isinstance(item, dict) else None
        return value if isinstance(value, str) else ""

    return key


class GenericListSource:
    """Watermark page source over a page-numbered list endpoint.

    Args:
        client: Provider HTTP client
        path: List endpoint, e.g. ``/transactions``
        asset_field: Item key holding an asset code; items with an invalid
            code are dropped before mapping
    """

    def __init__(self, client: GenericClient, path: str, asset_field: str | None = None):
        self.client = client
        self.path = path
        self.asset_field = asset_field

    def list_page(
        self,
        page: int,
        page_size: int,
        created_from: datetime,
        entity_id: str | None = None,
    ) -> WatermarkPage:
        params: dict[str, Any] = {
            "page": page,
            "pageSize": page_size,
            "sort": "createdAt:asc",
            "createdAtFrom": _created_from(created_from),
        }
        if entity_id is not None:
            params["accountId"] = entity_id

        items = self.client.get(self.path, params)
        if not isinstance(items, list):
            raise TransientProviderError(f"GET {self.path} did not return a list")
        # No total count in the response: a full page means there may be more
        has_more = len(items) == page_size
        if self.asset_field is not None:
            items = list(filter_valid_assets(items, key=_item_asset(self.asset_field)))
        return WatermarkPage(items=items, has_more=has_more)


class GenericBalancesSource:
    """Token page source over the balances endpoint."""

    def __init__(self, client: GenericClient, path: str = "/balances"):
        self.client = client
        self.path = path

    def list_page(
        self, token: str, page_size: int, entity_id: str | None = None
    ) -> TokenPage:
        params: dict[str, Any] = {"pageSize": page_size}
        if token:
            params["cursor"] = token
        if entity_id is not None:
            params["accountId"] = entity_id

        body = self.client.get(self.path, params)
        if not isinstance(body, dict):
            raise TransientProviderError(f"GET {self.path} did not return an object")
        items = filter_valid_assets(body.get("data") or [], key=_item_asset("currency"))
        return TokenPage(items=list(items), next_token=body.get("next") or "")


def _require_object(item: Any) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise MalformedRecordError("Provider item is not an object", context=item)
    return item


def _amount(item: dict[str, Any], asset: str) -> int:
    try:
        precision = asset_precision(asset)
    except ValueError as e:
        raise InvalidAssetError(str(e), context=asset) from e
    amount = item.get("amount")
    if not isinstance(amount, str):
        raise MalformedRecordError(
            f"Amount of {item.get('id')} must be a decimal string", context=item
        )
    return decode(amount, precision or 0)


def _enum_value(enum_cls: Any, value: Any, default: Any) -> Any:
    try:
        return enum_cls(str(value).upper())
    except ValueError:
        return default


def account_to_record(item: Any) -> AccountRecord:
    """Map a provider account to an account record."""
    item = _require_object(item)
    return AccountRecord(
        reference=item.get("id", ""),
        created_at=item.get("createdAt"),
        name=item.get("accountName"),
        default_asset=item.get("defaultAsset"),
        metadata=item.get("metadata") or {},
        raw=item,
    )


def payment_to_record(item: Any) -> PaymentRecord:
    """Map a provider transaction to a payment record."""
    item = _require_object(item)
    asset = item.get("currency", "")
    return PaymentRecord(
        reference=item.get("id", ""),
        created_at=item.get("createdAt"),
        amount=_amount(item, asset),
        asset=asset,
        type=_enum_value(PaymentType, item.get("type"), PaymentType.OTHER),
        status=_enum_value(PaymentStatus, item.get("status"), PaymentStatus.OTHER),
        parent_reference=item.get("relatedTransactionID"),
        source_account_reference=item.get("sourceAccountID"),
        destination_account_reference=item.get("destinationAccountID"),
        metadata=item.get("metadata") or {},
        raw=item,
    )


def balance_to_record(item: Any) -> BalanceRecord:
    """Map a provider balance to a balance record keyed by account and asset."""
    item = _require_object(item)
    asset = item.get("currency", "")
    account = item.get("accountID", "")
    return BalanceRecord(
        reference=f"{account}:{asset}",
        created_at=item.get("at") or item.get("createdAt"),
        account_reference=account,
        asset=asset,
        amount=_amount(item, asset),
        raw=item,
    )


def generic_webhook_translator() -> WebhookTranslator:
    """Route account-scoped provider events to the matching stream."""
    return WebhookTranslator(
        entity_field="accountId",
        routes={
            "account.updated": "accounts",
            "transaction.created": "payments",
            "transaction.updated": "payments",
            "balance.updated": "balances",
        },
    )


def build_generic_connector(
    config: GenericConfig, session: requests.Session | None = None
) -> Connector:
    """Assemble the generic REST connector.

    Args:
        config: Provider base URL, API key and timeout
        session: Optional ``requests`` session (used by tests)

    Returns:
        Connector: ``accounts``, ``payments`` and ``balances`` streams
    """
    if not config.base_url:
        raise ValueError("Generic provider base URL missing: set PAYBRIDGE_GENERIC__BASE_URL")

    client = GenericClient(config.base_url, config.api_key, config.timeout, session)
    return Connector(
        name="generic",
        streams={
            "accounts": WatermarkPageStrategy(
                GenericListSource(client, "/accounts"), account_to_record
            ),
            "payments": WatermarkPageStrategy(
                GenericListSource(client, "/transactions", asset_field="currency"),
                payment_to_record,
            ),
            "balances": TokenCursorStrategy(
                GenericBalancesSource(client), balance_to_record
            ),
        },
        webhook_translator=generic_webhook_translator(),
    )
