"""Shared pytest fixtures and fakes for paybridge tests.

The fake page sources emulate provider list endpoints in memory so the
strategies can be exercised without network access.
"""

import os
from collections.abc import Generator
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from paybridge.amounts import decode
from paybridge.config import clear_settings_cache, set_current_profile
from paybridge.errors import ProviderError
from paybridge.models import PaymentRecord
from paybridge.storage import SyncStore
from paybridge.strategies import SyncPage, TokenPage, WatermarkPage

T0 = datetime(2024, 1, 1, tzinfo=UTC)


def ts(seconds: int) -> datetime:
    """Timestamp ``seconds`` after T0."""
    return T0 + timedelta(seconds=seconds)


def payment_item(
    ref: str, created_at: datetime, amount: str = "10.00", currency: str = "USD/2"
) -> dict[str, Any]:
    """Provider payload for one payment."""
    return {"id": ref, "createdAt": created_at, "amount": amount, "currency": currency}


def payment_mapper(item: dict[str, Any]) -> PaymentRecord:
    """Map a fake provider payload using the amount codec."""
    return PaymentRecord(
        reference=item["id"],
        created_at=item["createdAt"],
        amount=decode(item["amount"], 2),
        asset=item["currency"],
    )


class FakeWatermarkSource:
    """Page-numbered list endpoint sorted by creation, filtered inclusively."""

    def __init__(self, items: list[dict[str, Any]]):
        self.items = items
        self.calls: list[dict[str, Any]] = []
        self.fail_on_page: int | None = None
        self.error: ProviderError | None = None

    def list_page(
        self,
        page: int,
        page_size: int,
        created_from: datetime,
        entity_id: str | None = None,
    ) -> WatermarkPage:
        self.calls.append(
            {"page": page, "created_from": created_from, "entity_id": entity_id}
        )
        if self.error is not None and page == self.fail_on_page:
            raise self.error

        filtered = sorted(
            (i for i in self.items if i["createdAt"] >= created_from),
            key=lambda i: i["createdAt"],
        )
        start = (page - 1) * page_size
        chunk = filtered[start : start + page_size]
        return WatermarkPage(items=chunk, has_more=start + page_size < len(filtered))


class FakeTokenSource:
    """Token-paginated endpoint; tokens are stringified offsets."""

    def __init__(self, items: list[dict[str, Any]], provider_page_size: int | None = None):
        self.items = items
        self.provider_page_size = provider_page_size
        self.calls: list[dict[str, Any]] = []

    def list_page(
        self, token: str, page_size: int, entity_id: str | None = None
    ) -> TokenPage:
        self.calls.append({"token": token, "page_size": page_size, "entity_id": entity_id})
        size = self.provider_page_size or page_size
        start = int(token) if token else 0
        end = start + size
        next_token = str(end) if end < len(self.items) else ""
        return TokenPage(items=self.items[start:end], next_token=next_token)


class FakeSyncSource:
    """Diff sync endpoint returning scripted pages keyed by cursor."""

    def __init__(self, pages: dict[str, SyncPage]):
        self.pages = pages
        self.calls: list[dict[str, Any]] = []

    def sync(self, cursor: str, page_size: int, entity_id: str | None = None) -> SyncPage:
        self.calls.append({"cursor": cursor, "page_size": page_size, "entity_id": entity_id})
        return self.pages[cursor]


@pytest.fixture(autouse=True)
def clean_profile_state(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Generator[None, None, None]:
    """Isolate every test: fresh working directory, environment and settings cache."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.upper().startswith(("PAYBRIDGE_", "PLAID_")):
            monkeypatch.delenv(key, raising=False)

    clear_settings_cache()
    set_current_profile("test")

    yield

    clear_settings_cache()
    set_current_profile("default")


@pytest.fixture
def store(tmp_path: Path) -> SyncStore:
    """SyncStore backed by a temporary DuckDB file."""
    return SyncStore(tmp_path / "db" / "paybridge.duckdb")
