"""
Test Configuration
==================

Pytest fixtures and test configuration for the message shipper.
"""

import time
from typing import List, Optional, Tuple

import pytest

from message_shipper.errors import SinkConnectionError, SinkError
from message_shipper.models.connection import ConnectionState
from message_shipper.models import schemas
from message_shipper.sink.base import SinkAddress
from message_shipper.stream.message import BusMessage


class FakeSink:
    """In-memory Sink that records every call."""

    def __init__(
        self,
        healthy: bool = True,
        replacement: Optional["FakeSink"] = None,
        reconnect_error: Optional[Exception] = None,
        forward_error: Optional[Exception] = None,
        health_delay: float = 0.0,
        reconnect_delay: float = 0.0,
    ) -> None:
        self.healthy = healthy
        self.replacement = replacement
        self.reconnect_error = reconnect_error
        self.forward_error = forward_error
        self.health_delay = health_delay
        self.reconnect_delay = reconnect_delay

        self.cursors: List[Tuple[str, float]] = []
        self.forwarded: List[tuple] = []
        self.reconnects: List[SinkAddress] = []
        self.health_checks: int = 0
        self.closed: bool = False

    def set_timeline_cursor(self, timeline: str, time_seconds: float) -> None:
        self.cursors.append((timeline, time_seconds))

    def forward(self, path: str, artifact) -> None:
        if self.forward_error is not None:
            raise self.forward_error
        self.forwarded.append((path, artifact))

    def health_snapshot(self) -> ConnectionState:
        self.health_checks += 1
        if self.health_delay:
            time.sleep(self.health_delay)
        if self.healthy:
            return ConnectionState.connected()
        return ConnectionState.disconnected("fake sink is down")

    def reconnect(self, address: SinkAddress) -> "FakeSink":
        self.reconnects.append(address)
        if self.reconnect_delay:
            time.sleep(self.reconnect_delay)
        if self.reconnect_error is not None:
            raise self.reconnect_error
        return self.replacement or FakeSink()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_sink():
    """Provide a healthy FakeSink."""
    return FakeSink()


@pytest.fixture
def sink_factory():
    """Provide the FakeSink class for tests that need custom behaviour."""
    return FakeSink


@pytest.fixture
def sink_address():
    return SinkAddress("localhost", 9876)


@pytest.fixture
def down_sink_error():
    return SinkConnectionError("connection refused")


@pytest.fixture
def rejecting_sink():
    """Provide a FakeSink whose forward always fails."""
    return FakeSink(forward_error=SinkError("rejected"))


@pytest.fixture
def make_header():
    """Factory for Header messages."""

    def _make(entity_path: str = "/camera", seconds: Optional[int] = 1700000000, nanos: int = 0):
        header = schemas.Header(entity_path=entity_path)
        if seconds is not None:
            header.timestamp.seconds = seconds
            header.timestamp.nanos = nanos
        return header

    return _make


@pytest.fixture
def plain_text_payload(make_header):
    """Serialized PlainText with a header."""
    message = schemas.PlainText(body="hello", header=make_header("/logs"))
    return message.SerializeToString()


@pytest.fixture
def make_raw_payload(make_header):
    """Factory for serialized Image<Format> messages."""

    def _make(schema_name: str, width: int, height: int, data: bytes, entity_path: str = "/camera"):
        schema = schemas.message_class(schema_name)
        message = schema(width=width, height=height, data=data, header=make_header(entity_path))
        return message.SerializeToString()

    return _make


@pytest.fixture
def make_bus_message():
    """Factory for BusMessage."""

    def _make(payload: bytes, topic: str = "robot/node/cam/make87_messages-text-PlainText/a"):
        return BusMessage(topic=topic, payload=payload, received_at=time.time())

    return _make
