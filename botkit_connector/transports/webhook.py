"""
Webhook Channel.
One POST per message to the Botkit receive endpoint; the reply comes back in the response body.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..config import BotkitConfig
from ..contract import ChannelState
from ..errors import RemoteError, TransportError
from .base import TransportChannel

USER_AGENT = "Botkit-Connector/0.1.0"


class WebhookChannel(TransportChannel):
    name = "webhook"
    tags_message_type = False

    def __init__(self, config: BotkitConfig, logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        self.session: Optional[aiohttp.ClientSession] = None

    @property
    def receive_url(self) -> str:
        return f"{self.config.require_server_url()}{self.config.receive_path}"

    async def open(self):
        # Connectionless; nothing to dial until the first send.
        self.state = ChannelState.OPEN

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None:
            self.session = aiohttp.ClientSession(headers={"User-Agent": USER_AGENT})
        return self.session

    async def send(self, payload: Dict[str, Any]) -> Optional[Any]:
        url = self.receive_url
        session = self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.config.request_timeout_sec)
        self.logger.debug(f"POST {url} body={json.dumps(payload, ensure_ascii=False)}")

        try:
            async with session.post(url, json=payload, timeout=timeout) as resp:
                if resp.status >= 400:
                    reason = resp.reason or ""
                    self.logger.debug(f"got error response: {resp.status}/{reason}")
                    raise RemoteError(resp.status, reason)
                body = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            raise TransportError(f"rest request failed: {type(e).__name__}: {e}") from e

        return self._decode_body(body)

    def _decode_body(self, raw: bytes) -> Optional[Any]:
        if not raw or not raw.strip():
            self.logger.debug("Webhook response has no body")
            return None
        try:
            text = raw.decode("utf-8")
            data = json.loads(text)
        except ValueError:
            # UnicodeDecodeError is a ValueError too
            self.logger.warning(f"Ignoring non-JSON webhook response body ({len(raw)} bytes)")
            return None
        self.logger.debug(f"got response body: {text}")
        return data

    async def close(self):
        if self.session is not None:
            await self.session.close()
            self.session = None
        self.state = ChannelState.CLOSED
