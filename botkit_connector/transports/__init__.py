"""Transport channels for the Botkit connector."""

import logging
from typing import Optional

from ..config import BotkitConfig
from .base import TransportChannel
from .webhook import WebhookChannel
from .websocket import WebSocketChannel


def create_channel(
    config: BotkitConfig, logger: Optional[logging.Logger] = None
) -> TransportChannel:
    if config.use_websocket:
        return WebSocketChannel(config, logger)
    return WebhookChannel(config, logger)


__all__ = ["TransportChannel", "WebSocketChannel", "WebhookChannel", "create_channel"]
