"""Tests for the sync engine."""

# ruff: noqa: S101

import json
import threading
from pathlib import Path

import pytest
from conftest import (
    FakeSyncSource,
    FakeWatermarkSource,
    payment_item,
    payment_mapper,
    ts,
)
from pytest_mock import MockerFixture

from paybridge.connectors import Connector
from paybridge.engine import SyncEngine
from paybridge.errors import (
    StreamBusyError,
    TransientProviderError,
    UnknownConnectorError,
    UnknownStreamError,
    WebhookTranslationError,
)
from paybridge.models import FetchRequest, FetchResult
from paybridge.state import SyncState, WatermarkState
from paybridge.storage import RawBatchWriter, SyncStore
from paybridge.strategies import DiffSyncStrategy, FetchStrategy, SyncPage, WatermarkPageStrategy
from paybridge.webhooks import WebhookTranslator


@pytest.fixture
def source() -> FakeWatermarkSource:
    return FakeWatermarkSource([payment_item(f"T{i}", ts(i)) for i in range(25)])


@pytest.fixture
def engine(store: SyncStore, source: FakeWatermarkSource) -> SyncEngine:
    connector = Connector(
        name="fake",
        streams={"payments": WatermarkPageStrategy(source, payment_mapper)},
        webhook_translator=WebhookTranslator(
            entity_field="accountId", routes={"transaction.created": "payments"}
        ),
    )
    return SyncEngine(connectors={"fake": connector}, store=store, page_size=10)


class TestFetchNextBatch:
    """Single-batch fetch and checkpointing."""

    @pytest.mark.unit
    def test_persists_state_and_records(self, engine: SyncEngine, store: SyncStore) -> None:
        result = engine.fetch_next_batch("fake", "payments")

        assert len(result.records) == 10
        assert store.load_state("fake", "payments") == result.new_state
        assert store.count_records("fake", "payment") == 10

    @pytest.mark.unit
    def test_resumes_from_persisted_state(self, engine: SyncEngine, source: FakeWatermarkSource) -> None:
        engine.fetch_next_batch("fake", "payments")
        engine.fetch_next_batch("fake", "payments")

        assert source.calls[-1]["created_from"] == ts(9)

    @pytest.mark.unit
    def test_provider_error_leaves_state_unchanged(
        self, engine: SyncEngine, store: SyncStore, source: FakeWatermarkSource
    ) -> None:
        engine.fetch_next_batch("fake", "payments")
        before = store.load_state("fake", "payments")
        source.fail_on_page = 1
        source.error = TransientProviderError("503")

        with pytest.raises(TransientProviderError):
            engine.fetch_next_batch("fake", "payments")

        assert store.load_state("fake", "payments") == before

    @pytest.mark.unit
    def test_unconsumed_batch_is_not_checkpointed(
        self, engine: SyncEngine, store: SyncStore, mocker: MockerFixture
    ) -> None:
        mocker.patch.object(store, "upsert_records", side_effect=RuntimeError("disk full"))

        with pytest.raises(RuntimeError):
            engine.fetch_next_batch("fake", "payments")

        assert store.load_state("fake", "payments") is None

    @pytest.mark.unit
    def test_unknown_connector_and_stream(self, engine: SyncEngine) -> None:
        with pytest.raises(UnknownConnectorError):
            engine.fetch_next_batch("nope", "payments")
        with pytest.raises(UnknownStreamError):
            engine.fetch_next_batch("fake", "nope")

    @pytest.mark.unit
    def test_raw_batches_are_written(self, store: SyncStore, source: FakeWatermarkSource, tmp_path: Path) -> None:
        connector = Connector(
            name="fake", streams={"payments": WatermarkPageStrategy(source, payment_mapper)}
        )
        engine = SyncEngine(
            connectors={"fake": connector},
            store=store,
            page_size=10,
            raw_writer=RawBatchWriter(tmp_path / "raw"),
        )

        engine.fetch_next_batch("fake", "payments")

        assert len(list((tmp_path / "raw" / "fake" / "payments").glob("*.parquet"))) == 1


class TestSyncStream:
    """Multi-batch runs."""

    @pytest.mark.unit
    def test_runs_until_caught_up(self, engine: SyncEngine, store: SyncStore) -> None:
        summary = engine.sync_stream("fake", "payments")

        assert summary.has_more is False
        assert summary.batches == 3
        assert store.count_records("fake", "payment") == 25
        state = WatermarkState.from_bytes(store.load_state("fake", "payments"))
        assert state.last_watermark == ts(24)

    @pytest.mark.unit
    def test_max_batches(self, engine: SyncEngine) -> None:
        summary = engine.sync_stream("fake", "payments", max_batches=1)

        assert summary.batches == 1
        assert summary.records == 10
        assert summary.has_more is True

    @pytest.mark.unit
    def test_reset_stream_resyncs_from_scratch(
        self, engine: SyncEngine, source: FakeWatermarkSource
    ) -> None:
        engine.sync_stream("fake", "payments")

        assert engine.reset_stream("fake", "payments") is True
        engine.fetch_next_batch("fake", "payments")

        assert source.calls[-1]["page"] == 1
        assert source.calls[-1]["created_from"] == WatermarkState().last_watermark

    @pytest.mark.unit
    def test_sync_connector_runs_every_stream(self, engine: SyncEngine) -> None:
        summaries = engine.sync_connector("fake")
        assert [s.stream for s in summaries] == ["payments"]


class TestDeletions:
    """Diff sync removals reach the store."""

    @pytest.mark.unit
    def test_removed_references_are_deleted(self, store: SyncStore) -> None:
        source = FakeSyncSource(
            {
                "": SyncPage(
                    added=[payment_item("t1", ts(1)), payment_item("t2", ts(2))],
                    next_cursor="c1",
                ),
                "c1": SyncPage(removed=["t1"], next_cursor="c2"),
            }
        )
        connector = Connector(
            name="plaid", streams={"transactions": DiffSyncStrategy(source, payment_mapper)}
        )
        engine = SyncEngine(connectors={"plaid": connector}, store=store)

        engine.fetch_next_batch("plaid", "transactions")
        summary = engine.sync_stream("plaid", "transactions")

        assert summary.deleted == 1
        assert store.references("plaid", "payment") == ["t2"]
        assert SyncState.from_bytes(store.load_state("plaid", "transactions")).last_cursor == "c2"


class TestHandleWebhook:
    """Webhook-triggered fetches."""

    @pytest.mark.unit
    def test_triggered_fetch_does_not_touch_state(
        self, engine: SyncEngine, store: SyncStore, source: FakeWatermarkSource
    ) -> None:
        engine.fetch_next_batch("fake", "payments")
        before = store.load_state("fake", "payments")
        body = json.dumps({"type": "transaction.created", "accountId": "acc-7"}).encode()

        outcome = engine.handle_webhook("fake", body)

        assert outcome.stream == "payments"
        assert outcome.entity_id == "acc-7"
        assert outcome.records == 10
        assert source.calls[-1]["entity_id"] == "acc-7"
        # The triggered fetch starts from an empty state
        assert source.calls[-1]["page"] == 1
        assert store.load_state("fake", "payments") == before

    @pytest.mark.unit
    def test_ignorable_event(self, engine: SyncEngine, source: FakeWatermarkSource) -> None:
        outcome = engine.handle_webhook("fake", b'{"type": "ping"}')

        assert outcome.ignored is True
        assert source.calls == []

    @pytest.mark.unit
    def test_connector_without_webhooks(self, store: SyncStore, source: FakeWatermarkSource) -> None:
        connector = Connector(
            name="fake", streams={"payments": WatermarkPageStrategy(source, payment_mapper)}
        )
        engine = SyncEngine(connectors={"fake": connector}, store=store)

        with pytest.raises(WebhookTranslationError):
            engine.handle_webhook("fake", b"{}")


class _BlockingStrategy(FetchStrategy):
    """Strategy that blocks until released, to hold the stream lock."""

    def __init__(self) -> None:
        super().__init__(payment_mapper)
        self.entered = threading.Event()
        self.release = threading.Event()

    def fetch_next_batch(self, request: FetchRequest) -> FetchResult:
        self.entered.set()
        self.release.wait(timeout=5)
        return FetchResult(records=[], new_state=b"{}", has_more=False)


class TestConcurrency:
    """At most one fetch per stream."""

    @pytest.mark.unit
    def test_concurrent_fetch_is_rejected(self, store: SyncStore) -> None:
        strategy = _BlockingStrategy()
        engine = SyncEngine(
            connectors={"fake": Connector(name="fake", streams={"slow": strategy})},
            store=store,
        )
        worker = threading.Thread(target=engine.fetch_next_batch, args=("fake", "slow"))
        worker.start()
        try:
            assert strategy.entered.wait(timeout=5)
            with pytest.raises(StreamBusyError):
                engine.fetch_next_batch("fake", "slow")
        finally:
            strategy.release.set()
            worker.join(timeout=5)

        # Lock is released once the first fetch completes
        engine.fetch_next_batch("fake", "slow")
