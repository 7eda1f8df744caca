"""Forward-only opaque-token pagination."""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models import FetchRequest, FetchResult, Record
from ..state import TokenState
from .base import FetchStrategy, RecordMapper, StrategyKind

logger = logging.getLogger(__name__)


@dataclass
class TokenPage:
    """One page from a token-paginated list endpoint."""

    items: list[Any] = field(default_factory=list)
    next_token: str = ""


class TokenPageSource(Protocol):
    """Provider list endpoint paginated by an opaque token."""

    def list_page(
        self, token: str, page_size: int, entity_id: str | None = None
    ) -> TokenPage: ...


class TokenCursorStrategy(FetchStrategy):
    """Walk a token-paginated endpoint until ``page_size`` records or the end.

    The provider has no date filter, so once the token runs out the next call
    starts again from the top. Consumers upsert records by reference.
    """

    kind = StrategyKind.TOKEN

    def __init__(self, source: TokenPageSource, mapper: RecordMapper):
        super().__init__(mapper)
        self.source = source

    def fetch_next_batch(self, request: FetchRequest) -> FetchResult:
        state = TokenState.from_bytes(request.previous_state)
        entity_id = self.entity_id(request)

        token = state.next_token
        records: list[Record] = []
        while True:
            page = self.source.list_page(token, request.page_size, entity_id)
            records.extend(self.map_items(page.items))
            token = page.next_token
            logger.debug(
                f"Token page: {len(page.items)} items, next token {token!r}"
            )
            if not token or len(records) >= request.page_size:
                break

        return FetchResult(
            records=records,
            new_state=TokenState(next_token=token).to_bytes(),
            has_more=token != "",
        )
