"""Connector container and the name-to-factory registry.

The registry is an explicit mapping built at startup and passed to the sync
engine; there is no module-level mutable registration.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field

from ..config import PayBridgeSettings
from ..errors import UnknownConnectorError, UnknownStreamError
from ..strategies import FetchStrategy
from ..webhooks import WebhookTranslator

logger = logging.getLogger(__name__)


@dataclass
class Connector:
    """A provider integration: named streams, each bound to one strategy."""

    name: str
    streams: dict[str, FetchStrategy] = field(default_factory=dict)
    webhook_translator: WebhookTranslator | None = None

    def stream(self, name: str) -> FetchStrategy:
        """Return the strategy behind a stream.

        Raises:
            UnknownStreamError: If the connector has no such stream
        """
        try:
            return self.streams[name]
        except KeyError:
            raise UnknownStreamError(
                f"Connector {self.name!r} has no stream {name!r} "
                f"(available: {', '.join(sorted(self.streams))})"
            ) from None


ConnectorFactory = Callable[[PayBridgeSettings], Connector]


def _plaid(settings: PayBridgeSettings) -> Connector:
    from .plaid import build_plaid_connector

    return build_plaid_connector(settings.plaid)


def _generic(settings: PayBridgeSettings) -> Connector:
    from .generic import build_generic_connector

    return build_generic_connector(settings.generic)


def default_registry() -> dict[str, ConnectorFactory]:
    """Factories for the bundled connectors, keyed by connector name."""
    return {
        "generic": _generic,
        "plaid": _plaid,
    }


def create_connector(
    name: str,
    settings: PayBridgeSettings,
    registry: Mapping[str, ConnectorFactory] | None = None,
) -> Connector:
    """Instantiate a connector by name.

    Raises:
        UnknownConnectorError: If no factory is registered under ``name``
    """
    registry = default_registry() if registry is None else registry
    factory = registry.get(name)
    if factory is None:
        raise UnknownConnectorError(
            f"Unknown connector {name!r} (available: {', '.join(sorted(registry))})"
        )
    logger.debug(f"Creating connector {name}")
    return factory(settings)
