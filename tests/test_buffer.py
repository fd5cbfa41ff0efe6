"""
Message Buffer Tests
====================

Backpressure policies, timeouts and close semantics.
"""

import asyncio
import threading
from types import SimpleNamespace

import pytest

from message_shipper.stream import BackpressurePolicy, ChannelClosed, MessageBuffer
from message_shipper.stream.subscriber import ZenohSubscriber


class TestDropOldest:

    def test_overflow_drops_oldest(self, make_bus_message):
        """Verify a full drop_oldest buffer evicts the oldest message."""
        async def scenario():
            buffer = MessageBuffer(maxsize=2, policy=BackpressurePolicy.DROP_OLDEST)
            first, second, third = (make_bus_message(bytes([i])) for i in range(3))

            assert await buffer.put(first) is True
            assert await buffer.put(second) is True
            assert await buffer.put(third) is False

            return buffer, [await buffer.get(timeout=0.1), await buffer.get(timeout=0.1)]

        buffer, received = asyncio.run(scenario())
        assert [m.payload for m in received] == [b"\x01", b"\x02"]
        assert buffer.dropped_count == 1
        assert buffer.total_put == 3

    def test_threadsafe_put(self, make_bus_message):
        """Verify messages put from a foreign thread arrive."""
        async def scenario():
            buffer = MessageBuffer(maxsize=4)
            buffer.bind_loop(asyncio.get_running_loop())
            thread = threading.Thread(
                target=buffer.put_threadsafe, args=(make_bus_message(b"x"),)
            )
            thread.start()
            thread.join()
            return await buffer.get(timeout=1.0)

        message = asyncio.run(scenario())
        assert message.payload == b"x"

    def test_threadsafe_put_requires_loop(self, make_bus_message):
        """Verify a thread-safe put without a bound loop fails."""
        buffer = MessageBuffer()
        with pytest.raises(RuntimeError):
            buffer.put_threadsafe(make_bus_message(b"x"))


class TestBlock:

    def test_full_buffer_blocks_producer(self, make_bus_message):
        """Verify a full block buffer holds the producer back."""
        async def scenario():
            buffer = MessageBuffer(maxsize=1, policy=BackpressurePolicy.BLOCK)
            await buffer.put(make_bus_message(b"a"))
            with pytest.raises(asyncio.TimeoutError):
                await asyncio.wait_for(buffer.put(make_bus_message(b"b")), timeout=0.05)
            return buffer

        buffer = asyncio.run(scenario())
        assert buffer.dropped_count == 0
        assert buffer.size == 1

    def test_blocked_producer_resumes(self, make_bus_message):
        """Verify a blocked producer resumes once space frees up."""
        async def scenario():
            buffer = MessageBuffer(maxsize=1, policy=BackpressurePolicy.BLOCK)
            await buffer.put(make_bus_message(b"a"))
            producer = asyncio.create_task(buffer.put(make_bus_message(b"b")))
            await asyncio.sleep(0)
            first = await buffer.get(timeout=0.1)
            await producer
            second = await buffer.get(timeout=0.1)
            return first, second

        first, second = asyncio.run(scenario())
        assert (first.payload, second.payload) == (b"a", b"b")


class TestGetAndClose:

    def test_timeout_returns_none(self):
        """Verify get() returns None on timeout."""
        async def scenario():
            return await MessageBuffer().get(timeout=0.01)

        assert asyncio.run(scenario()) is None

    def test_close_drains_then_raises(self, make_bus_message):
        """Verify queued messages drain before ChannelClosed."""
        async def scenario():
            buffer = MessageBuffer(maxsize=3)
            await buffer.put(make_bus_message(b"a"))
            buffer.close()
            assert await buffer.put(make_bus_message(b"late")) is False

            message = await buffer.get(timeout=0.1)
            with pytest.raises(ChannelClosed):
                await buffer.get(timeout=0.1)
            return message

        assert asyncio.run(scenario()).payload == b"a"

    def test_close_wakes_waiting_consumer(self):
        """Verify close() wakes a consumer waiting on get()."""
        async def scenario():
            buffer = MessageBuffer()
            consumer = asyncio.create_task(buffer.get())
            await asyncio.sleep(0)
            buffer.close()
            with pytest.raises(ChannelClosed):
                await consumer

        asyncio.run(scenario())

    def test_metrics(self):
        """Verify buffer metrics report size and policy."""
        buffer = MessageBuffer(maxsize=7, policy=BackpressurePolicy.BLOCK)
        assert buffer.metrics() == {
            "size": 0,
            "maxsize": 7,
            "policy": "block",
            "dropped_count": 0,
            "total_put": 0,
        }

    def test_invalid_maxsize(self):
        """Verify a non-positive maxsize is refused."""
        with pytest.raises(ValueError):
            MessageBuffer(maxsize=0)


class TestSubscriberCallback:

    def test_sample_reaches_buffer(self):
        """Verify a bus sample lands in the buffer as a BusMessage."""
        async def scenario():
            buffer = MessageBuffer()
            buffer.bind_loop(asyncio.get_running_loop())
            subscriber = ZenohSubscriber("a/b/c/text-PlainText/**", buffer)
            sample = SimpleNamespace(
                key_expr="a/b/c/text-PlainText/x",
                payload=SimpleNamespace(to_bytes=lambda: b"payload"),
            )
            subscriber._on_sample(sample)
            return subscriber, await buffer.get(timeout=1.0)

        subscriber, message = asyncio.run(scenario())
        assert subscriber.samples_received == 1
        assert message.topic == "a/b/c/text-PlainText/x"
        assert message.payload == b"payload"

    def test_close_without_start_closes_buffer(self):
        """Verify closing an unstarted subscriber still closes the buffer."""
        buffer = MessageBuffer()
        subscriber = ZenohSubscriber("a/b/c/text-PlainText/**", buffer)
        subscriber.close()
        assert buffer.closed
        assert not subscriber.running
