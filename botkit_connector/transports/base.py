"""
Transport Channel.
One abstract channel, two variants (WebSocket, webhook), picked once per connector.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from ..config import BotkitConfig
from ..contract import ChannelState


class TransportChannel(ABC):
    """
    Moves wire payloads between the connector and the Botkit runtime.

    Push-style channels (pushes_inbound=True) put decoded frames, or the
    MalformedPayloadError for a frame that failed to decode, on `inbound`,
    followed by a None sentinel once the channel stops reading.
    """

    name = ""
    pushes_inbound = False
    tags_message_type = True  # emit type="message" on outbound payloads

    def __init__(self, config: BotkitConfig, logger: Optional[logging.Logger] = None):
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.state = ChannelState.UNOPENED
        self.inbound: "asyncio.Queue[Any]" = asyncio.Queue()

    @property
    def is_open(self) -> bool:
        return self.state == ChannelState.OPEN

    @abstractmethod
    async def open(self):
        """Bring the channel to OPEN. Raises ChannelConnectionError on failure."""
        raise NotImplementedError

    @abstractmethod
    async def send(self, payload: Dict[str, Any]) -> Optional[Any]:
        """Send one payload. Returns the decoded reply body for request/response channels."""
        raise NotImplementedError

    @abstractmethod
    async def close(self):
        """Close and release everything. Safe to call when never opened, and more than once."""
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}(url={self.config.server_url!r}, state={self.state.value})"
