"""
Stream Module
=============

Bus ingestion and message buffering.

This module provides the ingestion layer:
    - BusMessage: Typed sample (topic + payload)
    - MessageBuffer: Async bounded queue with a backpressure policy
    - ZenohSubscriber: Zenoh subscription feeding the buffer
      (message_shipper.stream.subscriber)

Example:
    from message_shipper.stream import BackpressurePolicy, MessageBuffer
    from message_shipper.stream.subscriber import ZenohSubscriber

    buffer = MessageBuffer(maxsize=50, policy=BackpressurePolicy.DROP_OLDEST)
    subscriber = ZenohSubscriber("a/b/c/make87_messages-text-PlainText/**", buffer)
    subscriber.start(asyncio.get_running_loop())

    while True:
        message = await buffer.get()
        process(message)
"""

from message_shipper.stream.message import BusMessage
from message_shipper.stream.buffer import BackpressurePolicy, ChannelClosed, MessageBuffer


__all__ = [
    "BusMessage",
    "BackpressurePolicy",
    "ChannelClosed",
    "MessageBuffer",
]
