"""
WebSocket Channel.
Long-lived full-duplex connection to a Botkit websocket endpoint (aiohttp client).
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from ..config import BotkitConfig
from ..contract import ChannelState
from ..errors import (
    ChannelConnectionError,
    ChannelNotConnectedError,
    MalformedPayloadError,
    TransportError,
)
from ..translator import decode_frame, encode_frame, is_message
from .base import TransportChannel


class WebSocketChannel(TransportChannel):
    name = "websocket"
    pushes_inbound = True

    def __init__(self, config: BotkitConfig, logger: Optional[logging.Logger] = None):
        super().__init__(config, logger)
        self.session: Optional[aiohttp.ClientSession] = None
        self.ws: Optional[aiohttp.ClientWebSocketResponse] = None
        self._reader_task: Optional[asyncio.Task] = None
        self._close_task: Optional[asyncio.Task] = None

    async def open(self):
        if self.state == ChannelState.OPEN:
            return
        if self.state in (ChannelState.CLOSING, ChannelState.CLOSED):
            raise ChannelConnectionError("websocket channel already closed")

        # Leftovers from an earlier failed or timed-out attempt.
        await self._release_session()

        url = self.config.require_server_url()
        self.state = ChannelState.OPENING
        self.session = aiohttp.ClientSession()
        try:
            self.ws = await self.session.ws_connect(url)
        except (aiohttp.ClientError, OSError, ValueError) as e:
            self.state = ChannelState.FAILED
            self.logger.warning(f"websocket connection failed: {url}: {e}")
            raise ChannelConnectionError(f"websocket connection failed: {url}: {e}") from e

        self.state = ChannelState.OPEN
        self.logger.info(f"Websocket connected to {url}")
        self._reader_task = asyncio.create_task(self._read_loop(self.ws))

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse):
        try:
            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    await self._on_frame(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self.logger.warning(f"Websocket error: {ws.exception()}")
                    break
        finally:
            if self.state == ChannelState.OPEN:
                # Closed by the remote side, not by close().
                self.state = ChannelState.FAILED
                self.logger.warning(
                    f"Websocket closed by remote (code={ws.close_code})"
                )
            await self.inbound.put(None)

    async def _on_frame(self, raw: Any):
        try:
            payload = decode_frame(raw)
        except MalformedPayloadError as e:
            self.logger.error(f"Malformed websocket frame (protocol mismatch?): {e}")
            await self.inbound.put(e)
            return

        if not is_message(payload):
            self.logger.debug(f"Ignoring websocket frame of type {payload.get('type')!r}")
            return
        await self.inbound.put(payload)

    async def send(self, payload: Dict[str, Any]) -> None:
        if not self.is_open or self.ws is None or self.ws.closed:
            raise ChannelNotConnectedError(
                f"websocket not connected: {self.config.server_url} (state={self.state.value})"
            )
        try:
            await self.ws.send_str(encode_frame(payload))
        except (aiohttp.ClientError, OSError) as e:
            raise TransportError(f"websocket send failed: {type(e).__name__}: {e}") from e

    async def close(self):
        if self.state in (ChannelState.UNOPENED, ChannelState.CLOSED):
            self.state = ChannelState.CLOSED
            return
        # One-shot: concurrent callers wait on the same close.
        if self._close_task is None:
            self._close_task = asyncio.create_task(self._close())
        await self._close_task

    async def _close(self):
        self.state = ChannelState.CLOSING
        if self.ws is not None and not self.ws.closed:
            # Returns once the close handshake is acknowledged.
            await self.ws.close()
        if self._reader_task is not None:
            await self._reader_task
            self._reader_task = None
        await self._release_session()
        self.ws = None
        self.state = ChannelState.CLOSED
        self.logger.debug("Websocket stopped")

    async def _release_session(self):
        if self.session is not None:
            await self.session.close()
            self.session = None
