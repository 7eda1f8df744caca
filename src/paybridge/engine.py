"""Sync orchestration: locking, state persistence and batch consumption.

The engine is the only component that persists cursor state. A new state is
saved only after its batch has been consumed (records upserted, deletions
applied, raw batch written), so a crash between fetch and save replays the
batch instead of skipping it.
"""

import logging
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field

from .config import PayBridgeSettings
from .connectors import Connector, ConnectorFactory, create_connector
from .errors import StreamBusyError, UnknownConnectorError, WebhookTranslationError
from .models import FetchRequest, FetchResult
from .storage import RawBatchWriter, SyncStore
from .strategies import FetchStrategy

logger = logging.getLogger(__name__)


@dataclass
class SyncSummary:
    """Outcome of a multi-batch sync run for one stream."""

    connector: str
    stream: str
    batches: int = 0
    records: int = 0
    deleted: int = 0
    has_more: bool = False

    def __str__(self) -> str:
        suffix = " (more data pending)" if self.has_more else ""
        return (
            f"{self.connector}/{self.stream}: {self.records} records, "
            f"{self.deleted} deleted in {self.batches} batch(es){suffix}"
        )


@dataclass
class WebhookOutcome:
    """What a webhook delivery resulted in."""

    stream: str | None = None
    entity_id: str | None = None
    records: int = 0
    deleted: int = 0
    ignored: bool = False


@dataclass
class SyncEngine:
    """Drive connector streams and persist their progress.

    Args:
        connectors: Instantiated connectors keyed by name
        store: Cursor state and record storage
        page_size: Default page size for fetch calls
        raw_writer: Optional Parquet writer for consumed batches
    """

    connectors: Mapping[str, Connector]
    store: SyncStore
    page_size: int = 100
    raw_writer: RawBatchWriter | None = None
    _locks: dict[tuple[str, str], threading.Lock] = field(
        default_factory=dict, init=False, repr=False
    )
    _locks_guard: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def connector(self, name: str) -> Connector:
        """Return a connector by name.

        Raises:
            UnknownConnectorError: If the connector is not configured
        """
        try:
            return self.connectors[name]
        except KeyError:
            raise UnknownConnectorError(f"Connector {name!r} is not configured") from None

    def _lock(self, connector: str, stream: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault((connector, stream), threading.Lock())

    @contextmanager
    def _exclusive(self, connector: str, stream: str) -> Iterator[FetchStrategy]:
        strategy = self.connector(connector).stream(stream)
        lock = self._lock(connector, stream)
        if not lock.acquire(blocking=False):
            raise StreamBusyError(f"A fetch for {connector}/{stream} is already running")
        try:
            yield strategy
        finally:
            lock.release()

    def _consume(self, connector: str, stream: str, result: FetchResult) -> None:
        self.store.upsert_records(connector, result.records)
        if result.to_delete:
            self.store.delete_records(connector, result.to_delete)
        if self.raw_writer is not None:
            self.raw_writer.write(connector, stream, result.records)

    def fetch_next_batch(
        self, connector: str, stream: str, page_size: int | None = None
    ) -> FetchResult:
        """Fetch, consume and checkpoint one batch of a stream.

        Raises:
            StreamBusyError: If another fetch for the stream is running
            ProviderError: If the provider call failed; state is unchanged
            StateDecodeError: If the persisted state is unreadable
        """
        with self._exclusive(connector, stream) as strategy:
            request = FetchRequest(
                previous_state=self.store.load_state(connector, stream),
                page_size=page_size or self.page_size,
            )
            result = strategy.fetch_next_batch(request)
            self._consume(connector, stream, result)
            self.store.save_state(connector, stream, result.new_state)

        logger.info(
            f"Fetched {len(result.records)} records from {connector}/{stream}"
            f"{f', {len(result.to_delete)} deleted' if result.to_delete else ''}"
            f" (has_more={result.has_more})"
        )
        return result

    def sync_stream(
        self,
        connector: str,
        stream: str,
        max_batches: int | None = None,
        page_size: int | None = None,
    ) -> SyncSummary:
        """Fetch batches until the stream is caught up or ``max_batches`` is hit."""
        summary = SyncSummary(connector=connector, stream=stream)
        logger.info(f"Starting sync of {connector}/{stream}")

        while True:
            result = self.fetch_next_batch(connector, stream, page_size)
            summary.batches += 1
            summary.records += len(result.records)
            summary.deleted += len(result.to_delete)
            summary.has_more = result.has_more

            if not result.has_more:
                break
            if max_batches is not None and summary.batches >= max_batches:
                logger.info(f"Stopping {connector}/{stream} after {max_batches} batch(es)")
                break

        logger.info(f"Finished sync: {summary}")
        return summary

    def sync_connector(
        self, connector: str, max_batches: int | None = None
    ) -> list[SyncSummary]:
        """Sync every stream of a connector in name order."""
        streams = sorted(self.connector(connector).streams)
        return [self.sync_stream(connector, s, max_batches) for s in streams]

    def reset_stream(self, connector: str, stream: str) -> bool:
        """Drop a stream's state so the next fetch resynchronizes from scratch.

        Returns:
            bool: True if a state existed
        """
        self.connector(connector).stream(stream)
        existed = self.store.reset_state(connector, stream)
        logger.info(f"Reset state for {connector}/{stream}")
        return existed

    def handle_webhook(self, connector: str, body: bytes) -> WebhookOutcome:
        """Translate a webhook and run the single fetch it triggers.

        The triggered fetch starts from an empty state and never touches the
        stream's persisted state.

        Raises:
            WebhookTranslationError: If the connector has no webhook support
                or the body cannot be translated
        """
        translator = self.connector(connector).webhook_translator
        if translator is None:
            raise WebhookTranslationError(f"Connector {connector!r} does not accept webhooks")

        routed = translator.route(body)
        if routed is None:
            return WebhookOutcome(ignored=True)

        stream, trigger = routed
        request = FetchRequest(
            previous_state=None,
            page_size=self.page_size,
            trigger_payload=trigger.to_payload(),
        )
        with self._exclusive(connector, stream) as strategy:
            result = strategy.fetch_next_batch(request)
            self._consume(connector, stream, result)

        logger.info(
            f"Webhook fetch for {trigger.target_entity_id} on {connector}/{stream}: "
            f"{len(result.records)} records"
        )
        return WebhookOutcome(
            stream=stream,
            entity_id=trigger.target_entity_id,
            records=len(result.records),
            deleted=len(result.to_delete),
        )


def create_engine(
    settings: PayBridgeSettings,
    connector_names: list[str],
    registry: Mapping[str, ConnectorFactory] | None = None,
) -> SyncEngine:
    """Build an engine for the named connectors from application settings.

    Args:
        settings: Application settings (storage paths, sync defaults, credentials)
        connector_names: Connectors to instantiate
        registry: Connector factories; defaults to the bundled connectors

    Raises:
        UnknownConnectorError: If a name has no registered factory
    """
    connectors = {
        name: create_connector(name, settings, registry) for name in connector_names
    }
    raw_writer = (
        RawBatchWriter(settings.sync.raw_data_path)
        if settings.sync.save_raw_data
        else None
    )
    return SyncEngine(
        connectors=connectors,
        store=SyncStore(settings.database.path),
        page_size=settings.sync.page_size,
        raw_writer=raw_writer,
    )
