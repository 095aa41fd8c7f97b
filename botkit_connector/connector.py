"""
Botkit Connector.

Lifecycle state machine bridging a test harness to a Botkit runtime:

    validate -> start -> user_says* -> stop -> (start ...) -> clean

The transport (WebSocket or webhook) is picked once at construction. Bot
replies are translated to BotMessage and handed to the harness sink.

Channel lifetime policy: stop() only ends the session identity; the channel
stays open until clean().
"""

import asyncio
import enum
import inspect
import logging
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from .config import BotkitConfig, config_from_caps
from .contract import BotMessage, ChannelState, UserMessage
from .errors import ChannelConnectionError, LifecycleError, MalformedPayloadError
from .structured_logging import emit_structured_log
from .translator import from_wire, to_wire
from .transports import TransportChannel, create_channel

MessageSink = Callable[[BotMessage], Union[None, Awaitable[None]]]
ErrorSink = Callable[[Exception], Union[None, Awaitable[None]]]


class LifecycleState(str, enum.Enum):
    CREATED = "created"
    VALIDATED = "validated"
    STARTED = "started"
    STOPPED = "stopped"
    CLEANED = "cleaned"

    @classmethod
    def valid_transitions(cls) -> Dict["LifecycleState", List["LifecycleState"]]:
        return {
            cls.CREATED: [cls.VALIDATED, cls.CLEANED],
            cls.VALIDATED: [cls.STARTED, cls.CLEANED],
            cls.STARTED: [cls.STOPPED, cls.CLEANED],
            cls.STOPPED: [cls.STARTED, cls.CLEANED],
            cls.CLEANED: [],  # terminal
        }


async def _call(callback: Callable[..., Any], *args):
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class BotkitConnector:
    def __init__(
        self,
        config: BotkitConfig,
        sink: MessageSink,
        *,
        error_sink: Optional[ErrorSink] = None,
        logger: Optional[logging.Logger] = None,
        channel: Optional[TransportChannel] = None,
    ):
        self.config = config
        self.sink = sink
        self.error_sink = error_sink
        self.logger = logger or logging.getLogger(__name__)
        self.channel = channel or create_channel(config, self.logger)
        self.state = LifecycleState.CREATED
        self.user_id: Optional[str] = None
        self._dispatch_task: Optional[asyncio.Task] = None
        self._fatal_error: Optional[MalformedPayloadError] = None

    @classmethod
    def from_caps(cls, caps: Mapping[str, Any], sink: MessageSink, **kwargs):
        return cls(config_from_caps(caps), sink, **kwargs)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.clean()

    # --- Lifecycle ---

    def _transition(self, target: LifecycleState):
        allowed = LifecycleState.valid_transitions()[self.state]
        if target not in allowed:
            raise LifecycleError(
                f"Invalid transition: {self.state.value} -> {target.value}"
            )
        emit_structured_log(
            self.logger,
            level=logging.INFO,
            event="botkit.lifecycle",
            fields={
                "from": self.state.value,
                "to": target.value,
                "transport": self.channel.name,
            },
        )
        self.state = target

    async def validate(self):
        self.logger.debug("Validate called")
        if self.state == LifecycleState.VALIDATED:
            return
        if self.state != LifecycleState.CREATED:
            raise LifecycleError(f"validate() not allowed in state {self.state.value}")

        self.config.require_server_url()

        timeout = self.config.connect_timeout_sec
        try:
            await asyncio.wait_for(self.channel.open(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise ChannelConnectionError(
                f"{self.channel.name} connection failed: not open after {timeout}s "
                f"(state={self.channel.state.value})"
            ) from e

        if self.channel.pushes_inbound and self._dispatch_task is None:
            self._dispatch_task = asyncio.create_task(self._dispatch_inbound())
        self._transition(LifecycleState.VALIDATED)

    async def start(self):
        self.logger.debug("Start called")
        if self.state == LifecycleState.STARTED:
            return
        self._transition(LifecycleState.STARTED)
        self.user_id = self.config.user_id or str(uuid.uuid4())

    async def user_says(self, message: Union[UserMessage, str]):
        if isinstance(message, str):
            message = UserMessage(text=message)
        self.logger.debug(f"UserSays called {message!r}")

        if self.state != LifecycleState.STARTED:
            raise LifecycleError(f"user_says() not allowed in state {self.state.value}")
        if self._fatal_error is not None:
            raise self._fatal_error

        payload = to_wire(
            message,
            self.user_id,
            self.channel.name,
            tag_type=self.channel.tags_message_type,
        )

        emit_structured_log(
            self.logger,
            level=logging.DEBUG,
            event="botkit.send",
            fields={"transport": self.channel.name, "text_len": len(message.text or "")},
        )
        reply = await self.channel.send(payload)
        if reply is None:
            return

        # Request/response reply: delivered before user_says returns.
        replies = reply if isinstance(reply, list) else [reply]
        for item in replies:
            if isinstance(item, dict) and item:
                await self._deliver(item)

    async def stop(self):
        self.logger.debug("Stop called")
        if self.state != LifecycleState.STARTED:
            return
        self._transition(LifecycleState.STOPPED)
        self.user_id = None

    async def clean(self):
        self.logger.debug("Clean called")
        if self.state == LifecycleState.CLEANED:
            return
        self.user_id = None
        await self.channel.close()
        if self._dispatch_task is not None:
            await self._dispatch_task
            self._dispatch_task = None
        self._transition(LifecycleState.CLEANED)

    # --- Inbound ---

    async def _dispatch_inbound(self):
        while True:
            item = await self.channel.inbound.get()
            if item is None:
                break
            if isinstance(item, MalformedPayloadError):
                await self._report_fatal(item)
                continue
            try:
                await self._deliver(item)
            except MalformedPayloadError as e:
                await self._report_fatal(e)
            except Exception:
                self.logger.exception("Message sink failed")

    async def _deliver(self, payload: Dict[str, Any]):
        bot_msg = from_wire(payload)
        emit_structured_log(
            self.logger,
            level=logging.DEBUG,
            event="botkit.receive",
            fields={
                "transport": self.channel.name,
                "buttons": len(bot_msg.buttons or []),
                "media": len(bot_msg.media or []),
            },
        )
        await _call(self.sink, bot_msg)

    async def _report_fatal(self, error: MalformedPayloadError):
        self.logger.error(f"Fatal inbound error on {self.channel.name}: {error}")
        if self._fatal_error is None:
            self._fatal_error = error
        if self.error_sink is not None:
            try:
                await _call(self.error_sink, error)
            except Exception:
                self.logger.exception("Error sink failed")

    @property
    def channel_state(self) -> ChannelState:
        return self.channel.state
