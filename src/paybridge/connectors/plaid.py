"""Plaid connector: transactions via the ``/transactions/sync`` endpoint.

Each Plaid item has its own access token. Scheduled syncs use the configured
item; webhook-triggered fetches use the ``item_id`` carried by the webhook.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any

from plaid.api import plaid_api
from plaid.api_client import ApiClient
from plaid.configuration import Configuration
from plaid.exceptions import ApiException
from plaid.model.transactions_sync_request import TransactionsSyncRequest

from ..config import PlaidConfig
from ..errors import (
    PermanentProviderError,
    ProviderError,
    TransientProviderError,
    provider_error_from_status,
)
from ..strategies import DiffSyncStrategy, SyncPage
from ..webhooks import WebhookTranslator
from .plaid_schemas import PlaidEnvironment, TransactionsSyncSchema, transaction_to_record
from .registry import Connector

logger = logging.getLogger(__name__)

# Plaid rejects larger counts on /transactions/sync
MAX_SYNC_COUNT = 500

# Error codes Plaid returns while an item is still being prepared
RETRYABLE_ERROR_CODES = frozenset({"PRODUCT_NOT_READY", "ITEM_LOCKED"})


def create_plaid_client(config: PlaidConfig) -> Any:
    """Build a Plaid API client for the configured environment."""
    configuration = Configuration(
        host=PlaidEnvironment(config.environment).host,
        api_key={
            "clientId": config.client_id,
            "secret": config.secret,
        },
    )
    api_client = ApiClient(configuration)
    # Type as Any to avoid pyright partial-unknowns from the SDK stubs
    client: Any = plaid_api.PlaidApi(api_client)
    return client


def translate_api_exception(exc: ApiException) -> ProviderError:
    """Map a Plaid SDK exception to a provider error."""
    error_code = None
    message = str(exc)
    body = getattr(exc, "body", None)
    if isinstance(body, (str, bytes)) and body:
        try:
            details = json.loads(body)
        except json.JSONDecodeError:
            details = {}
        if isinstance(details, dict):
            error_code = details.get("error_code")
            message = details.get("error_message") or message

    status = getattr(exc, "status", None)
    text = f"Plaid API error {status} {error_code or ''}: {message}".strip()
    if error_code in RETRYABLE_ERROR_CODES:
        return TransientProviderError(text, status_code=status)
    if isinstance(status, int):
        return provider_error_from_status(status, text)
    return TransientProviderError(text)


class PlaidTransactionsSource:
    """Diff sync page source backed by the Plaid SDK.

    Args:
        client: ``plaid_api.PlaidApi`` instance
        access_tokens: Plaid item ID to access token
        item_id: Item used when a fetch is not scoped by a webhook
    """

    def __init__(
        self,
        client: Any,
        access_tokens: Mapping[str, str],
        item_id: str | None = None,
    ):
        self.client = client
        self.access_tokens = dict(access_tokens)
        self.item_id = item_id

    def _access_token(self, entity_id: str | None) -> str:
        item_id = entity_id or self.item_id
        if item_id is None:
            if len(self.access_tokens) != 1:
                raise PermanentProviderError(
                    f"{len(self.access_tokens)} Plaid items configured; "
                    "set PAYBRIDGE_PLAID__ITEM_ID to pick one"
                )
            item_id = next(iter(self.access_tokens))

        token = self.access_tokens.get(item_id)
        if token is None:
            raise PermanentProviderError(f"No access token for Plaid item {item_id}")
        return token

    def sync(
        self, cursor: str, page_size: int, entity_id: str | None = None
    ) -> SyncPage:
        """Call ``/transactions/sync`` once from ``cursor``.

        Raises:
            ProviderError: If the Plaid API call fails
        """
        kwargs: dict[str, Any] = {
            "access_token": self._access_token(entity_id),
            "count": min(page_size, MAX_SYNC_COUNT),
        }
        if cursor:
            kwargs["cursor"] = cursor
        request = TransactionsSyncRequest(**kwargs)

        try:
            response: Any = self.client.transactions_sync(request)
        except ApiException as e:
            raise translate_api_exception(e) from e

        payload = response.to_dict() if hasattr(response, "to_dict") else response
        page = TransactionsSyncSchema.model_validate(payload)
        logger.debug(
            f"Plaid sync from cursor {cursor!r}: next cursor {page.next_cursor!r}"
        )
        return SyncPage(
            added=page.added,
            modified=page.modified,
            removed=[r.transaction_id for r in page.removed],
            next_cursor=page.next_cursor,
            has_more=page.has_more,
        )


def plaid_webhook_translator() -> WebhookTranslator:
    """Route Plaid ``SYNC_UPDATES_AVAILABLE`` webhooks to the transactions stream."""
    return WebhookTranslator(
        entity_field="item_id",
        routes={"TRANSACTIONS:SYNC_UPDATES_AVAILABLE": "transactions"},
        event_fields=("webhook_type", "webhook_code"),
    )


def build_plaid_connector(config: PlaidConfig, client: Any | None = None) -> Connector:
    """Assemble the Plaid connector.

    Args:
        config: Plaid credentials and item access tokens
        client: Optional pre-built Plaid client (used by tests)

    Returns:
        Connector: The ``transactions`` stream plus its webhook translator
    """
    if client is None:
        if not config.client_id or not config.secret:
            raise ValueError(
                "Plaid credentials missing: set PAYBRIDGE_PLAID__CLIENT_ID and "
                "PAYBRIDGE_PLAID__SECRET (or PLAID_CLIENT_ID / PLAID_SECRET)"
            )
        client = create_plaid_client(config)
        logger.info(f"Initialized Plaid client for {config.environment} environment")

    source = PlaidTransactionsSource(client, config.access_tokens, config.item_id)
    return Connector(
        name="plaid",
        streams={"transactions": DiffSyncStrategy(source, transaction_to_record)},
        webhook_translator=plaid_webhook_translator(),
    )
