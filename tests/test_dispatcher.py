"""
Dispatcher Tests
================

End-to-end loop behaviour with an in-memory sink.
"""

import asyncio
import time

from message_shipper.dispatch import Dispatcher
from message_shipper.handlers import build_default_registry
from message_shipper.imaging import PixelNormalizer
from message_shipper.models import schemas
from message_shipper.sink import ConnectionSupervisor
from message_shipper.stream import MessageBuffer


TEXT_TOPIC = "robot/node/log/make87_messages-text-PlainText/out"
YUV422_TOPIC = "robot/node/cam/make87_messages-image-uncompressed-ImageYUV422/front"


def _text(body: str) -> bytes:
    return schemas.PlainText(body=body).SerializeToString()


def _run(handler, sink, sink_address, payloads, make_bus_message, check_interval=60.0):
    async def scenario():
        buffer = MessageBuffer(maxsize=len(payloads) + 1)
        supervisor = ConnectionSupervisor(sink, sink_address, check_interval=check_interval)
        dispatcher = Dispatcher(buffer, handler, supervisor, poll_timeout=0.05)
        for payload in payloads:
            await buffer.put(make_bus_message(payload))
        buffer.close()
        await asyncio.wait_for(dispatcher.run(), timeout=5.0)
        await supervisor.settle()
        return dispatcher, supervisor

    return asyncio.run(scenario())


def _handler(topic):
    return build_default_registry(PixelNormalizer()).resolve(topic)


class TestDispatchLoop:

    def test_forwards_in_order(self, fake_sink, sink_address, make_bus_message):
        """Verify messages reach the sink in arrival order."""
        dispatcher, _ = _run(
            _handler(TEXT_TOPIC), fake_sink, sink_address,
            [_text("one"), _text("two"), _text("three")], make_bus_message,
        )

        assert [artifact.text for _, artifact in fake_sink.forwarded] == ["one", "two", "three"]
        assert dispatcher.metrics.messages_forwarded == 3
        assert not dispatcher.running

    def test_bad_message_does_not_stop_loop(self, fake_sink, sink_address, make_bus_message):
        """Verify an undecodable payload is counted and skipped."""
        dispatcher, _ = _run(
            _handler(TEXT_TOPIC), fake_sink, sink_address,
            [_text("before"), b"\x0a\x05ab", _text("after")], make_bus_message,
        )

        assert [artifact.text for _, artifact in fake_sink.forwarded] == ["before", "after"]
        assert dispatcher.metrics.decode_errors == 1
        assert dispatcher.metrics.messages_received == 3

    def test_unsupported_format_is_skipped(self, fake_sink, sink_address, make_bus_message, make_raw_payload):
        """Verify unsupported pixel formats are counted as failures."""
        payload = make_raw_payload("ImageYUV422", 4, 4, bytes([128]) * 32)
        dispatcher, _ = _run(
            _handler(YUV422_TOPIC), fake_sink, sink_address,
            [payload, payload], make_bus_message,
        )

        assert fake_sink.forwarded == []
        assert dispatcher.metrics.unsupported_formats == 2
        assert dispatcher.metrics.failures == 2

    def test_forward_errors_are_counted(self, rejecting_sink, sink_address, make_bus_message):
        """Verify sink rejections are counted without stopping the loop."""
        dispatcher, _ = _run(
            _handler(TEXT_TOPIC), rejecting_sink, sink_address,
            [_text("a"), _text("b")], make_bus_message,
        )
        assert dispatcher.metrics.forward_errors == 2

    def test_reconnect_mid_stream(self, sink_factory, sink_address, make_bus_message):
        """Verify a dead sink is replaced once and no message is lost or reordered."""
        fresh = sink_factory()
        stale = sink_factory(healthy=False, replacement=fresh)

        _, supervisor = _run(
            _handler(TEXT_TOPIC), stale, sink_address,
            [_text("a"), _text("b")], make_bus_message, check_interval=0.0,
        )

        delivered = stale.forwarded + fresh.forwarded
        assert [artifact.text for _, artifact in delivered] == ["a", "b"]
        assert len(stale.reconnects) == 1
        assert fresh.reconnects == []
        assert supervisor.sink is fresh
        assert stale.closed

    def test_reconnect_does_not_block_consumption(self, sink_factory, sink_address, make_bus_message):
        """Verify a queued message is forwarded while a slow reconnect is still running."""
        stale = sink_factory(healthy=False, reconnect_delay=1.5)

        async def scenario():
            buffer = MessageBuffer(maxsize=4)
            supervisor = ConnectionSupervisor(stale, sink_address, check_interval=60.0)
            dispatcher = Dispatcher(buffer, _handler(TEXT_TOPIC), supervisor, poll_timeout=0.05)
            await buffer.put(make_bus_message(_text("queued")))

            started = time.monotonic()
            run = asyncio.create_task(dispatcher.run())
            while not stale.forwarded and time.monotonic() - started < 1.0:
                await asyncio.sleep(0.01)
            elapsed = time.monotonic() - started
            reconnecting = supervisor.reconnecting

            buffer.close()
            await asyncio.wait_for(run, timeout=5.0)
            await supervisor.settle()
            return elapsed, reconnecting, supervisor

        elapsed, reconnecting, supervisor = asyncio.run(scenario())

        assert [artifact.text for _, artifact in stale.forwarded] == ["queued"]
        assert elapsed < 0.5
        assert reconnecting
        assert supervisor.sink is not stale

    def test_metrics_dict(self, fake_sink, sink_address, make_bus_message):
        """Verify dispatch metrics export as a dict."""
        dispatcher, _ = _run(
            _handler(TEXT_TOPIC), fake_sink, sink_address, [_text("x")], make_bus_message,
        )
        metrics = dispatcher.metrics.to_dict()
        assert metrics["messages_forwarded"] == 1
        assert metrics["bytes_received"] == len(_text("x"))
        assert metrics["failures"] == 0
        assert metrics["last_message_at"] > 0
