"""Webhook-to-fetch handoff.

A webhook never mutates sync state. It is translated into a
:class:`FetchTrigger` naming the upstream entity that changed; the trigger is
serialized into the ``trigger_payload`` of exactly one fetch call, which the
strategy decodes to scope its provider requests.

Signature verification happens before the body reaches this module.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, Self

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import WebhookTranslationError

logger = logging.getLogger(__name__)


class FetchTrigger(BaseModel):
    """Which upstream entity to fetch, plus the verbatim webhook body."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    target_entity_id: str = Field(..., min_length=1, alias="targetEntityId")
    payload: str = Field(default="", description="Raw webhook body")

    def to_payload(self) -> bytes:
        """Serialize for ``FetchRequest.trigger_payload``."""
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_payload(cls, payload: bytes) -> Self:
        """Decode a trigger payload produced by :meth:`to_payload`.

        Raises:
            WebhookTranslationError: If the payload is not a trigger
        """
        try:
            return cls.model_validate_json(payload)
        except ValidationError as e:
            raise WebhookTranslationError(f"Invalid trigger payload: {e}") from e

    def body(self) -> dict[str, Any]:
        """Decode the original webhook body."""
        decoded = json.loads(self.payload) if self.payload else {}
        return decoded if isinstance(decoded, dict) else {}


class WebhookTranslator:
    """Translate provider webhook bodies into fetch triggers.

    Args:
        entity_field: Body key holding the id of the entity that changed
        routes: Event name to stream name; events not listed are ignored
        event_fields: Body keys joined with ":" to form the event name
    """

    def __init__(
        self,
        entity_field: str,
        routes: Mapping[str, str],
        event_fields: tuple[str, ...] = ("type",),
    ):
        self.entity_field = entity_field
        self.routes = dict(routes)
        self.event_fields = event_fields

    def _decode(self, raw_body: bytes) -> tuple[str, dict[str, Any]]:
        try:
            text = raw_body.decode("utf-8")
            body = json.loads(text)
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise WebhookTranslationError(f"Webhook body is not UTF-8 JSON: {e}") from e
        if not isinstance(body, dict):
            raise WebhookTranslationError("Webhook body must be a JSON object")
        return text, body

    def event_name(self, body: Mapping[str, Any]) -> str:
        """Build the event name used to look up a route."""
        return ":".join(str(body.get(field, "")) for field in self.event_fields)

    def route(self, raw_body: bytes) -> tuple[str, FetchTrigger] | None:
        """Return the stream to fetch and its trigger, or None to ignore.

        Raises:
            WebhookTranslationError: On malformed bodies or a missing entity id
        """
        text, body = self._decode(raw_body)
        event = self.event_name(body)

        stream = self.routes.get(event)
        if stream is None:
            logger.info(f"Ignoring webhook event {event!r}: no data to fetch")
            return None

        entity_id = body.get(self.entity_field)
        if not isinstance(entity_id, str) or not entity_id:
            raise WebhookTranslationError(
                f"Webhook event {event!r} is missing {self.entity_field!r}"
            )

        trigger = FetchTrigger(target_entity_id=entity_id, payload=text)
        logger.debug(f"Webhook {event!r} triggers {stream} fetch for {entity_id}")
        return stream, trigger

    def translate(self, raw_body: bytes) -> FetchTrigger | None:
        """Translate a webhook body into a fetch trigger (None if ignorable)."""
        routed = self.route(raw_body)
        return routed[1] if routed else None
