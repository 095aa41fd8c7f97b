"""
Connector lifecycle state machine tests (in-memory channel).
"""

import asyncio
import os
import sys
import unittest
import uuid
from unittest.mock import AsyncMock, MagicMock

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from botkit_connector.config import BotkitConfig
from botkit_connector.connector import BotkitConnector, LifecycleState
from botkit_connector.contract import BotMessage, ChannelState, UserMessage
from botkit_connector.errors import (
    ChannelConnectionError,
    ConfigurationError,
    LifecycleError,
    MalformedPayloadError,
)
from botkit_connector.transports import (
    TransportChannel,
    WebhookChannel,
    WebSocketChannel,
    create_channel,
)


class FakeChannel(TransportChannel):
    name = "fake"
    pushes_inbound = True

    def __init__(self, config, open_delay: float = 0.0, reply=None):
        super().__init__(config)
        self.open_delay = open_delay
        self.reply = reply
        self.open_calls = 0
        self.close_calls = 0
        self.sent = []

    async def open(self):
        self.open_calls += 1
        self.state = ChannelState.OPENING
        if self.open_delay:
            await asyncio.sleep(self.open_delay)
        self.state = ChannelState.OPEN

    async def send(self, payload):
        self.sent.append(payload)
        return self.reply

    async def close(self):
        self.close_calls += 1
        if self.state == ChannelState.OPEN:
            await self.inbound.put(None)
        self.state = ChannelState.CLOSED


def _config(**kwargs):
    kwargs.setdefault("server_url", "ws://bot.local:3000")
    return BotkitConfig(**kwargs)


class TestConnectorLifecycle(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.received = []
        self.channel = FakeChannel(_config())
        self.connector = BotkitConnector(
            _config(), self.received.append, channel=self.channel
        )

    async def asyncTearDown(self):
        await self.connector.clean()

    async def _wait_for(self, predicate, timeout=1.0):
        async def poll():
            while not predicate():
                await asyncio.sleep(0.01)

        await asyncio.wait_for(poll(), timeout)

    async def test_missing_server_url_fails_before_network(self):
        channel = FakeChannel(_config(server_url=None))
        connector = BotkitConnector(BotkitConfig(), MagicMock(), channel=channel)
        with self.assertRaises(ConfigurationError):
            await connector.validate()
        self.assertEqual(channel.open_calls, 0)
        self.assertEqual(connector.state, LifecycleState.CREATED)

    async def test_open_timeout_raises_connection_error(self):
        channel = FakeChannel(_config(), open_delay=10)
        connector = BotkitConnector(
            _config(connect_timeout_sec=0.05), MagicMock(), channel=channel
        )
        with self.assertRaises(ChannelConnectionError) as cm:
            await connector.validate()
        self.assertIsInstance(cm.exception, ConnectionError)
        self.assertEqual(channel.state, ChannelState.OPENING)
        # clean() still reclaims the half-open channel
        await connector.clean()
        self.assertEqual(channel.state, ChannelState.CLOSED)
        self.assertEqual(connector.state, LifecycleState.CLEANED)

    async def test_happy_path(self):
        await self.connector.validate()
        self.assertEqual(self.connector.state, LifecycleState.VALIDATED)
        self.assertEqual(self.connector.channel_state, ChannelState.OPEN)
        self.assertIsNone(self.connector.user_id)

        await self.connector.start()
        self.assertTrue(self.connector.user_id)
        uuid.UUID(self.connector.user_id)

        await self.connector.user_says(UserMessage(text="hi"))
        self.assertEqual(
            self.channel.sent,
            [
                {
                    "type": "message",
                    "text": "hi",
                    "user": self.connector.user_id,
                    "channel": "fake",
                }
            ],
        )

    async def test_validate_twice_opens_once(self):
        await self.connector.validate()
        await self.connector.validate()
        self.assertEqual(self.channel.open_calls, 1)

    async def test_plain_text_is_accepted(self):
        await self.connector.validate()
        await self.connector.start()
        await self.connector.user_says("hello")
        self.assertEqual(self.channel.sent[0]["text"], "hello")

    async def test_fixed_user_id(self):
        connector = BotkitConnector(
            _config(user_id="tester"), MagicMock(), channel=FakeChannel(_config())
        )
        await connector.validate()
        await connector.start()
        self.assertEqual(connector.user_id, "tester")
        await connector.clean()

    async def test_start_does_not_reopen_or_regenerate(self):
        await self.connector.validate()
        await self.connector.start()
        first = self.connector.user_id
        await self.connector.start()
        self.assertEqual(self.connector.user_id, first)
        self.assertEqual(self.channel.open_calls, 1)

    async def test_start_before_validate(self):
        with self.assertRaises(LifecycleError):
            await self.connector.start()

    async def test_user_says_before_start(self):
        await self.connector.validate()
        with self.assertRaises(LifecycleError):
            await self.connector.user_says("hi")
        self.assertEqual(self.channel.sent, [])

    async def test_stop_clears_identity_and_keeps_channel(self):
        await self.connector.validate()
        await self.connector.start()
        await self.connector.stop()
        self.assertIsNone(self.connector.user_id)
        self.assertEqual(self.connector.state, LifecycleState.STOPPED)
        self.assertEqual(self.channel.close_calls, 0)
        self.assertEqual(self.channel.state, ChannelState.OPEN)

        with self.assertRaises(LifecycleError):
            await self.connector.user_says("hi")

    async def test_restart_after_stop(self):
        await self.connector.validate()
        await self.connector.start()
        await self.connector.stop()
        await self.connector.start()
        self.assertTrue(self.connector.user_id)
        await self.connector.user_says("again")
        self.assertEqual(len(self.channel.sent), 1)

    async def test_no_restart_after_clean(self):
        await self.connector.validate()
        await self.connector.start()
        await self.connector.stop()
        await self.connector.clean()
        with self.assertRaises(LifecycleError):
            await self.connector.start()
        with self.assertRaises(LifecycleError):
            await self.connector.validate()

    async def test_stop_without_session_is_noop(self):
        await self.connector.stop()
        self.assertEqual(self.connector.state, LifecycleState.CREATED)

    async def test_clean_is_idempotent(self):
        await self.connector.validate()
        await self.connector.clean()
        await self.connector.clean()
        self.assertEqual(self.channel.close_calls, 1)
        self.assertEqual(self.connector.state, LifecycleState.CLEANED)
        self.assertIsNone(self.connector.user_id)

    async def test_context_manager_cleans(self):
        channel = FakeChannel(_config())
        async with BotkitConnector(_config(), MagicMock(), channel=channel) as c:
            await c.validate()
            await c.start()
        self.assertEqual(channel.state, ChannelState.CLOSED)
        self.assertEqual(c.state, LifecycleState.CLEANED)


class TestConnectorInbound(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.sink = AsyncMock()
        self.error_sink = MagicMock()
        self.channel = FakeChannel(_config())
        self.connector = BotkitConnector(
            _config(), self.sink, error_sink=self.error_sink, channel=self.channel
        )
        await self.connector.validate()
        await self.connector.start()

    async def asyncTearDown(self):
        await self.connector.clean()

    async def _drain(self):
        while not self.channel.inbound.empty():
            await asyncio.sleep(0.01)
        await asyncio.sleep(0.01)

    async def test_pushed_payload_reaches_sink(self):
        await self.channel.inbound.put({"type": "message", "text": "hello"})
        await self._drain()
        self.sink.assert_awaited_once()
        msg = self.sink.await_args[0][0]
        self.assertIsInstance(msg, BotMessage)
        self.assertEqual(msg.text, "hello")
        self.assertEqual(msg.source_data, {"type": "message", "text": "hello"})

    async def test_sync_sink_supported(self):
        received = []
        channel = FakeChannel(_config())
        connector = BotkitConnector(_config(), received.append, channel=channel)
        await connector.validate()
        await channel.inbound.put({"type": "message", "text": "a"})
        await channel.inbound.put({"type": "message", "text": "b"})
        await connector.clean()
        self.assertEqual([m.text for m in received], ["a", "b"])

    async def test_malformed_frame_is_fatal(self):
        error = MalformedPayloadError("bad frame", raw="{")
        await self.channel.inbound.put(error)
        await self._drain()
        self.error_sink.assert_called_once_with(error)
        self.sink.assert_not_awaited()

        with self.assertRaises(MalformedPayloadError):
            await self.connector.user_says("hi")
        self.assertEqual(self.channel.sent, [])

    async def test_malformed_fields_are_fatal(self):
        with self.assertLogs("botkit_connector.connector", level="ERROR"):
            await self.channel.inbound.put({"type": "message", "files": "nope"})
            await self._drain()
        self.error_sink.assert_called_once()
        self.assertIsInstance(self.error_sink.call_args[0][0], MalformedPayloadError)

    async def test_sink_failure_does_not_stop_dispatch(self):
        self.sink.side_effect = [RuntimeError("boom"), None]
        with self.assertLogs("botkit_connector.connector", level="ERROR") as cm:
            await self.channel.inbound.put({"type": "message", "text": "1"})
            await self.channel.inbound.put({"type": "message", "text": "2"})
            await self._drain()
        self.assertTrue(any("Message sink failed" in line for line in cm.output))
        self.assertEqual(self.sink.await_count, 2)

    async def test_injected_logger_is_used(self):
        custom = MagicMock()
        connector = BotkitConnector(
            _config(), MagicMock(), logger=custom, channel=FakeChannel(_config())
        )
        await connector.validate()
        custom.debug.assert_any_call("Validate called")
        await connector.clean()


class TestReplyDelivery(unittest.IsolatedAsyncioTestCase):
    async def test_reply_delivered_before_return(self):
        received = []
        channel = FakeChannel(_config(), reply={"text": "ok"})
        channel.pushes_inbound = False
        connector = BotkitConnector(_config(), received.append, channel=channel)
        await connector.validate()
        await connector.start()
        await connector.user_says("hi")
        self.assertEqual(len(received), 1)
        self.assertEqual(received[0].text, "ok")
        self.assertEqual(received[0].source_data, {"text": "ok"})
        await connector.clean()

    async def test_reply_sink_failure_propagates(self):
        sink = MagicMock(side_effect=RuntimeError("harness broke"))
        channel = FakeChannel(_config(), reply={"text": "ok"})
        channel.pushes_inbound = False
        connector = BotkitConnector(_config(), sink, channel=channel)
        await connector.validate()
        await connector.start()
        with self.assertRaises(RuntimeError):
            await connector.user_says("hi")
        sink.assert_called_once()
        await connector.clean()

    async def test_list_reply_delivered_in_order(self):
        received = []
        channel = FakeChannel(_config(), reply=[{"text": "1"}, {}, {"text": "2"}])
        channel.pushes_inbound = False
        connector = BotkitConnector(_config(), received.append, channel=channel)
        await connector.validate()
        await connector.start()
        await connector.user_says("hi")
        self.assertEqual([m.text for m in received], ["1", "2"])
        await connector.clean()


class TestChannelSelection(unittest.TestCase):
    def test_websocket_selected(self):
        self.assertIsInstance(
            create_channel(_config(use_websocket=True)), WebSocketChannel
        )

    def test_webhook_selected(self):
        self.assertIsInstance(create_channel(_config()), WebhookChannel)

    def test_from_caps(self):
        connector = BotkitConnector.from_caps(
            {"BOTKIT_SERVER_URL": "ws://bot.local", "BOTKIT_WEBSOCKET": True},
            MagicMock(),
        )
        self.assertIsInstance(connector.channel, WebSocketChannel)
        self.assertEqual(connector.state, LifecycleState.CREATED)


if __name__ == "__main__":
    unittest.main()
