"""Common plumbing for the fetch strategies."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from enum import Enum
from typing import Any, ClassVar

from pydantic import ValidationError

from ..errors import MalformedRecordError
from ..models import FetchRequest, FetchResult, Record
from ..webhooks import FetchTrigger

logger = logging.getLogger(__name__)

# Maps one provider item to a record. Returning None drops the item on purpose
# (e.g. the debit leg of an internal transfer); raising MalformedRecordError
# skips it with a warning.
RecordMapper = Callable[[Any], Record | None]


class StrategyKind(Enum):
    """Pagination style a connector stream is driven by."""

    TOKEN = "token"
    WATERMARK = "watermark"
    DIFF_SYNC = "diff_sync"


class FetchStrategy(ABC):
    """Stateless ``fetch_next_batch`` implementation for one stream.

    Strategies hold no state between calls: everything needed to resume is in
    ``FetchRequest.previous_state``.
    """

    kind: ClassVar[StrategyKind]

    def __init__(self, mapper: RecordMapper):
        self.mapper = mapper

    @abstractmethod
    def fetch_next_batch(self, request: FetchRequest) -> FetchResult:
        """Fetch the next batch of records after ``request.previous_state``."""

    @staticmethod
    def entity_id(request: FetchRequest) -> str | None:
        """Entity a webhook-triggered request is scoped to, if any."""
        if request.trigger_payload is None:
            return None
        return FetchTrigger.from_payload(request.trigger_payload).target_entity_id

    def map_items(self, items: Iterable[Any]) -> list[Record]:
        """Map provider items, skipping the ones that cannot be mapped."""
        records: list[Record] = []
        for item in items:
            try:
                record = self.mapper(item)
            except MalformedRecordError as e:
                logger.warning(f"Skipping malformed record: {e} (context: {e.context!r})")
                continue
            except ValidationError as e:
                logger.warning(
                    f"Skipping invalid record: {e.error_count()} validation "
                    f"error(s) for payload {item!r:.500}"
                )
                continue
            if record is not None:
                records.append(record)
        return records
