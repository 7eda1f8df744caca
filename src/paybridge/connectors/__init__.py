"""Provider connectors and the connector registry."""

from .registry import Connector, ConnectorFactory, create_connector, default_registry

__all__ = ["Connector", "ConnectorFactory", "create_connector", "default_registry"]
