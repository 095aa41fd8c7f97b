"""
Botkit Connector.
Bridges a chat test harness to a Botkit bot runtime over WebSocket or webhook.
"""

from .config import BotkitConfig, Capabilities, config_from_caps, load_config
from .connector import BotkitConnector, LifecycleState
from .contract import BotMessage, Button, ChannelState, Media, UserMessage
from .errors import (
    ChannelConnectionError,
    ChannelNotConnectedError,
    ConfigurationError,
    ConnectorError,
    LifecycleError,
    MalformedPayloadError,
    RemoteError,
    TransportError,
)

__version__ = "0.1.0"

__all__ = [
    "BotkitConfig",
    "BotkitConnector",
    "BotMessage",
    "Button",
    "Capabilities",
    "ChannelConnectionError",
    "ChannelNotConnectedError",
    "ChannelState",
    "ConfigurationError",
    "ConnectorError",
    "LifecycleError",
    "LifecycleState",
    "MalformedPayloadError",
    "Media",
    "RemoteError",
    "TransportError",
    "UserMessage",
    "config_from_caps",
    "load_config",
]
