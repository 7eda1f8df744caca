"""Numeric-page pagination combined with a creation-time watermark.

Providers behind this strategy list items in ascending creation order and
accept an inclusive ``created_from`` filter, with page numbers relative to
the filtered result set. Their timestamps have finite resolution, so several
records can share the watermark instant:

* Items strictly before the watermark are dropped; items exactly at it are
  kept. A tied record may be delivered twice, which consumers absorb by
  upserting on ``reference``. Dropping ties instead would lose genuinely new
  records sharing the boundary timestamp.
* When a call advances the watermark, the next call starts again at page 1
  of the set filtered by the new watermark.
* When a call makes no temporal progress (the whole batch sits on the
  watermark instant) and the provider has more pages, the pointer moves past
  the page just consumed, so a same-timestamp cluster longer than a page
  cannot loop forever. If the last page was only partially filled, the
  pointer stays on it: new items will land on that page.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from ..models import FetchRequest, FetchResult, Record
from ..state import WatermarkState
from .base import FetchStrategy, RecordMapper, StrategyKind

logger = logging.getLogger(__name__)


@dataclass
class WatermarkPage:
    """One page from a page-numbered list endpoint."""

    items: list[Any] = field(default_factory=list)
    has_more: bool = False


class WatermarkPageSource(Protocol):
    """Provider list endpoint paginated by page number, sorted by creation."""

    def list_page(
        self,
        page: int,
        page_size: int,
        created_from: datetime,
        entity_id: str | None = None,
    ) -> WatermarkPage: ...


class WatermarkPageStrategy(FetchStrategy):
    """Tie-tolerant page + watermark pagination."""

    kind = StrategyKind.WATERMARK

    def __init__(self, source: WatermarkPageSource, mapper: RecordMapper):
        super().__init__(mapper)
        self.source = source

    def fetch_next_batch(self, request: FetchRequest) -> FetchResult:
        state = WatermarkState.from_bytes(request.previous_state)
        entity_id = self.entity_id(request)
        watermark = state.last_watermark

        page = state.last_page
        batch: list[Record] = []
        while True:
            result = self.source.list_page(
                page, request.page_size, watermark, entity_id
            )
            for record in self.map_items(result.items):
                if record.created_at < watermark:
                    continue
                batch.append(record)

            logger.debug(
                f"Page {page}: {len(result.items)} items, batch now {len(batch)}"
            )
            if not result.has_more or len(batch) >= request.page_size:
                break
            page += 1

        has_more = result.has_more
        new_watermark = batch[-1].created_at if batch else watermark

        if new_watermark > watermark:
            next_page = 1
        elif batch and has_more:
            next_page = page + 1
        else:
            next_page = page

        new_state = WatermarkState(last_page=next_page, last_watermark=new_watermark)
        return FetchResult(
            records=batch,
            new_state=new_state.to_bytes(),
            has_more=has_more,
        )
