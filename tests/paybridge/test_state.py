"""Tests for the cursor state codec."""

# ruff: noqa: S101

import json
from datetime import UTC, datetime

import pytest

from paybridge.errors import StateDecodeError
from paybridge.state import EPOCH, SyncState, TokenState, WatermarkState


class TestWireFormat:
    """Persisted JSON layout of each state shape."""

    @pytest.mark.unit
    def test_token_state_layout(self) -> None:
        assert json.loads(TokenState(next_token="abc").to_bytes()) == {"nextToken": "abc"}

    @pytest.mark.unit
    def test_watermark_state_layout(self) -> None:
        state = WatermarkState(
            last_page=3, last_watermark=datetime(2024, 5, 1, 12, 30, tzinfo=UTC)
        )
        payload = json.loads(state.to_bytes())
        assert payload["lastPage"] == 3
        assert payload["lastCreationDate"].startswith("2024-05-01T12:30:00")

    @pytest.mark.unit
    def test_sync_state_layout(self) -> None:
        assert json.loads(SyncState(last_cursor="c").to_bytes()) == {"lastCursor": "c"}


class TestDecoding:
    """Decoding previously returned states."""

    @pytest.mark.unit
    def test_none_is_fresh_state(self) -> None:
        assert TokenState.from_bytes(None).next_token == ""
        assert SyncState.from_bytes(None).last_cursor == ""
        fresh = WatermarkState.from_bytes(None)
        assert fresh.last_page == 1
        assert fresh.last_watermark == EPOCH

    @pytest.mark.unit
    def test_round_trip(self) -> None:
        state = WatermarkState(last_page=2, last_watermark=datetime(2024, 1, 1, tzinfo=UTC))
        assert WatermarkState.from_bytes(state.to_bytes()) == state

    @pytest.mark.unit
    def test_empty_object_uses_defaults(self) -> None:
        assert WatermarkState.from_bytes(b"{}") == WatermarkState()

    @pytest.mark.unit
    def test_naive_watermark_is_utc(self) -> None:
        state = WatermarkState.from_bytes(
            b'{"lastPage": 1, "lastCreationDate": "2024-01-01T00:00:00"}'
        )
        assert state.last_watermark == datetime(2024, 1, 1, tzinfo=UTC)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "payload",
        [b"", b"garbage", b"[]", b'{"lastPage": "x"}', b'{"lastCreationDate": "yesterday"}'],
    )
    def test_invalid_payload_raises(self, payload: bytes) -> None:
        with pytest.raises(StateDecodeError):
            WatermarkState.from_bytes(payload)

    @pytest.mark.unit
    def test_states_are_immutable(self) -> None:
        state = TokenState(next_token="a")
        with pytest.raises(Exception):  # noqa: B017
            state.next_token = "b"  # type: ignore[misc]
