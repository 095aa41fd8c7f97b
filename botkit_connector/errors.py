"""
Connector Error Types.

Every failure surfaced to the harness derives from ConnectorError.
Nothing here retries; callers decide whether to rerun the lifecycle.
"""

from __future__ import annotations

from typing import Optional


class ConnectorError(Exception):
    """Base class for all connector failures."""


class ConfigurationError(ConnectorError):
    """A required option is missing or invalid."""


class LifecycleError(ConnectorError):
    """An operation was called in a lifecycle state that does not allow it."""


class ChannelConnectionError(ConnectorError, ConnectionError):
    """The WebSocket channel could not be opened within the connect timeout."""


class ChannelNotConnectedError(ConnectorError):
    """A send was attempted on a channel that is not open."""


class MalformedPayloadError(ConnectorError):
    """
    An inbound frame could not be decoded.

    Signals a protocol mismatch with the bot runtime. Kept distinct from a
    missing reply so the two never look alike in logs.
    """

    def __init__(self, message: str, raw: Optional[str] = None):
        self.raw = raw
        super().__init__(message)


class RemoteError(ConnectorError):
    """
    The webhook endpoint answered with an error status.

    Attributes:
        status: HTTP status code (>= 400)
        message: reason phrase or error text from the response
    """

    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"got error response: {status}/{message}")


class TransportError(ConnectorError):
    """Network-level failure (connect, DNS, timeout) on a webhook call."""
