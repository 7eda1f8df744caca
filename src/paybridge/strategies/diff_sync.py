"""Added/modified/removed pagination driven by a provider sync cursor."""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models import FetchRequest, FetchResult
from ..state import SyncState
from .base import FetchStrategy, RecordMapper, StrategyKind

logger = logging.getLogger(__name__)


@dataclass
class SyncPage:
    """One response from a diff sync endpoint."""

    added: list[Any] = field(default_factory=list)
    modified: list[Any] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    next_cursor: str = ""
    has_more: bool = False


class SyncPageSource(Protocol):
    """Provider sync endpoint returning diffs since a cursor."""

    def sync(
        self, cursor: str, page_size: int, entity_id: str | None = None
    ) -> SyncPage: ...


class DiffSyncStrategy(FetchStrategy):
    """One provider sync call per fetch; the cursor is authoritative."""

    kind = StrategyKind.DIFF_SYNC

    def __init__(self, source: SyncPageSource, mapper: RecordMapper):
        super().__init__(mapper)
        self.source = source

    def fetch_next_batch(self, request: FetchRequest) -> FetchResult:
        state = SyncState.from_bytes(request.previous_state)
        entity_id = self.entity_id(request)

        page = self.source.sync(state.last_cursor, request.page_size, entity_id)
        records = self.map_items([*page.added, *page.modified])
        logger.debug(
            f"Sync page: {len(page.added)} added, {len(page.modified)} modified, "
            f"{len(page.removed)} removed"
        )

        return FetchResult(
            records=records,
            new_state=SyncState(last_cursor=page.next_cursor).to_bytes(),
            has_more=page.has_more,
            to_delete=list(page.removed),
        )
