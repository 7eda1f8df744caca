"""Cursor state codec.

Each strategy persists its resume point as a small JSON object handed back to
the caller as opaque bytes. Unknown keys are ignored so a state written by a
newer release still decodes; a payload that is not a JSON object of the
expected shape raises :class:`~paybridge.errors.StateDecodeError` and is never
silently reset, since that would trigger an accidental full resync.
"""

from datetime import UTC, datetime
from typing import Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import StateDecodeError

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class CursorState(BaseModel):
    """Base class for the per-stream resume state."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    def to_bytes(self) -> bytes:
        """Serialize the state with its wire field names."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, payload: bytes | None) -> Self:
        """Decode a previously returned state, or start fresh on None.

        Raises:
            StateDecodeError: If the payload is not a valid state
        """
        if payload is None:
            return cls()
        try:
            return cls.model_validate_json(payload)
        except ValidationError as e:
            raise StateDecodeError(
                f"Cannot decode {cls.__name__} from {payload[:200]!r}: {e}"
            ) from e


class TokenState(CursorState):
    """Forward-only provider token; empty means start from the top."""

    next_token: str = Field(default="", alias="nextToken")


class WatermarkState(CursorState):
    """Page pointer plus the creation time of the last delivered record."""

    last_page: int = Field(default=1, ge=1, alias="lastPage")
    last_watermark: datetime = Field(default=EPOCH, alias="lastCreationDate")

    @field_validator("last_watermark")
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """States written without an offset are UTC."""
        if v.tzinfo is None:
            return v.replace(tzinfo=UTC)
        return v


class SyncState(CursorState):
    """Provider-issued diff sync cursor; empty means initial sync."""

    last_cursor: str = Field(default="", alias="lastCursor")
