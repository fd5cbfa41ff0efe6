"""
Handler Base
============

Abstract decode-and-forward handler.

One handler instance is created per subscription and reused for every
message on it, so handlers keep no per-message state.
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from google.protobuf.message import DecodeError as ProtobufDecodeError

from message_shipper.errors import DecodeError
from message_shipper.handlers.envelope import Envelope, decode_envelope
from message_shipper.models.artifacts import Artifact
from message_shipper.sink.base import Sink


logger = logging.getLogger(__name__)


class MessageHandler(ABC):
    """
    Decodes one schema and forwards the resulting artifact to a sink.

    Subclasses set `schema` to the protobuf message class and implement
    `handle`.
    """

    schema: Any = None

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock

    @property
    def name(self) -> str:
        return self.schema.DESCRIPTOR.name

    def decode(self, payload: bytes) -> Any:
        """
        Parse payload bytes as this handler's schema.

        Raises:
            DecodeError: If the bytes are not a valid message
        """
        try:
            return self.schema.FromString(payload)
        except ProtobufDecodeError as e:
            raise DecodeError(f"Failed to decode {self.name}: {e}") from e

    def envelope(self, message: Any, sink: Sink) -> Envelope:
        header = message.header if message.HasField("header") else None
        return decode_envelope(header, sink, clock=self._clock)

    @abstractmethod
    def handle(self, payload: bytes, sink: Sink) -> Optional[Artifact]:
        """
        Decode payload and forward it.

        Returns:
            The forwarded artifact, or None if nothing was forwarded

        Raises:
            ShipperError subclasses for per-message failures
        """
        ...

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name})"
