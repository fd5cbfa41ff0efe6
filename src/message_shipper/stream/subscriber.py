"""
Bus Subscriber
==============

Zenoh subscription feeding a MessageBuffer.

Zenoh invokes the sample callback on its own thread; every sample is
wrapped in a BusMessage and handed to the buffer through its thread-safe
entry point. The buffer's backpressure policy decides what happens when
the dispatch loop falls behind.

Design Rules:
    - Does NOT decode payloads
    - One subscriber per configured key expression
    - Closing the subscriber closes the buffer, which ends the dispatch loop
"""

import asyncio
import json
import logging
import time
from typing import List, Optional

import zenoh

from message_shipper.stream.buffer import MessageBuffer
from message_shipper.stream.message import BusMessage


logger = logging.getLogger(__name__)


def build_zenoh_config(mode: str, connect_endpoints: List[str]) -> "zenoh.Config":
    """Build a Zenoh session config from mode and router endpoints."""
    config = zenoh.Config()
    config.insert_json5("mode", json.dumps(mode))
    if connect_endpoints:
        config.insert_json5("connect/endpoints", json.dumps(connect_endpoints))
    return config


class ZenohSubscriber:
    """
    Subscribes to one key expression and pushes samples into a buffer.

    Attributes:
        topic: Key expression to subscribe to
        buffer: MessageBuffer receiving the samples
        samples_received: Number of samples seen by the callback

    Example:
        subscriber = ZenohSubscriber(topic, buffer, mode="client",
                                     connect_endpoints=["tcp/router:7447"])
        subscriber.start(asyncio.get_running_loop())
        ...
        subscriber.close()
    """

    def __init__(
        self,
        topic: str,
        buffer: MessageBuffer,
        mode: str = "peer",
        connect_endpoints: Optional[List[str]] = None,
    ) -> None:
        self.topic = topic
        self.buffer = buffer
        self.mode = mode
        self.connect_endpoints = list(connect_endpoints or [])
        self.samples_received: int = 0

        self._session = None
        self._subscriber = None

    @property
    def running(self) -> bool:
        return self._subscriber is not None

    def start(self, loop: asyncio.AbstractEventLoop) -> None:
        """
        Open the Zenoh session and declare the subscriber.

        Args:
            loop: Event loop that owns the buffer
        """
        self.buffer.bind_loop(loop)
        config = build_zenoh_config(self.mode, self.connect_endpoints)

        logger.info(
            f"Opening Zenoh session (mode={self.mode}, "
            f"endpoints={self.connect_endpoints or 'default'})"
        )
        self._session = zenoh.open(config)
        self._subscriber = self._session.declare_subscriber(self.topic, self._on_sample)
        logger.info(f"Subscribed to {self.topic}")

    def _on_sample(self, sample: "zenoh.Sample") -> None:
        message = BusMessage(
            topic=str(sample.key_expr),
            payload=sample.payload.to_bytes(),
            received_at=time.time(),
        )
        self.samples_received += 1
        logger.debug(f"Received sample. Topic: {message.topic}")
        try:
            self.buffer.put_threadsafe(message)
        except RuntimeError as e:
            # Event loop already shut down
            logger.warning(f"Dropping sample, buffer unavailable: {e}")

    def close(self) -> None:
        """Undeclare the subscriber, close the session and the buffer."""
        if self._subscriber is not None:
            try:
                self._subscriber.undeclare()
            except Exception as e:
                logger.warning(f"Error undeclaring subscriber: {e}")
            self._subscriber = None

        if self._session is not None:
            try:
                self._session.close()
            except Exception as e:
                logger.warning(f"Error closing Zenoh session: {e}")
            self._session = None

        self.buffer.close()
        logger.info("Zenoh subscriber closed")
