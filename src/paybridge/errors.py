"""Error taxonomy shared by strategies, connectors and the sync engine.

Provider errors abort a whole fetch call; malformed records are skipped by
the strategies and never escape a fetch.
"""

from typing import Any


class PayBridgeError(Exception):
    """Base class for all PayBridge errors."""


class ProviderError(PayBridgeError):
    """A provider list/sync call failed.

    Attributes:
        transient: True if retrying the same call later may succeed
        status_code: HTTP status returned by the provider, if any
    """

    def __init__(
        self,
        message: str,
        *,
        transient: bool,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.transient = transient
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Timeout, connection failure, 5xx or rate limit. Retry with the same state."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message, transient=True, status_code=status_code)


class PermanentProviderError(ProviderError):
    """Client-side rejection (4xx other than 429). Not retried automatically."""

    def __init__(self, message: str, *, status_code: int | None = None):
        super().__init__(message, transient=False, status_code=status_code)


def provider_error_from_status(status_code: int, message: str) -> ProviderError:
    """Build the right provider error for an HTTP status code.

    Args:
        status_code: HTTP status returned by the provider
        message: Human readable description of the failure

    Returns:
        ProviderError: Transient for 429 and 5xx, permanent otherwise
    """
    if status_code == 429 or status_code >= 500:
        return TransientProviderError(message, status_code=status_code)
    return PermanentProviderError(message, status_code=status_code)


class StateDecodeError(PayBridgeError):
    """Previous cursor state bytes could not be decoded."""


class MalformedRecordError(PayBridgeError):
    """A single provider item could not be mapped to a record.

    Attributes:
        context: The asset code or raw payload that caused the failure
    """

    def __init__(self, message: str, context: Any = None):
        super().__init__(message)
        self.context = context


class MalformedAmountError(MalformedRecordError):
    """Amount string is not a decimal number."""


class InvalidAssetError(MalformedRecordError):
    """Asset code does not match the asset grammar."""


class UnsupportedCurrencyError(MalformedRecordError):
    """Currency has no known minor-unit precision."""


class WebhookTranslationError(PayBridgeError):
    """Webhook body or trigger payload could not be decoded."""


class UnknownConnectorError(PayBridgeError):
    """No connector registered under the requested name."""


class UnknownStreamError(PayBridgeError):
    """Connector does not expose the requested stream."""


class StreamBusyError(PayBridgeError):
    """Another fetch is already running for the same connector stream."""
