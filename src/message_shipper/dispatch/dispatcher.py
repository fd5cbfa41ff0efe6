"""
Dispatch Loop
=============

Single consumer loop for one subscription.

The handler is resolved once, before the loop starts. Each message is then
pulled from the buffer and processed end-to-end (decode -> normalize ->
forward) before the next one, so per-path ordering is preserved without
locks. Between pulls the loop gives the ConnectionSupervisor a chance to run
its periodic health check.

Design Rules:
    - A failing message is counted, logged and skipped; never retried
    - Nothing raised while handling a message ends the loop
    - The loop ends only when the buffer is closed
"""

import logging
from typing import Optional

from message_shipper.dispatch.metrics import DispatchMetrics
from message_shipper.errors import (
    ConversionError,
    DecodeError,
    MalformedPayloadError,
    SinkError,
    UnsupportedFormatError,
)
from message_shipper.handlers.base import MessageHandler
from message_shipper.sink.supervisor import ConnectionSupervisor
from message_shipper.stream.buffer import ChannelClosed, MessageBuffer
from message_shipper.stream.message import BusMessage


logger = logging.getLogger(__name__)


class Dispatcher:
    """
    Pulls messages from a buffer and runs them through one handler.

    Attributes:
        buffer: Source of messages
        handler: Handler resolved for the subscription
        supervisor: Owner of the sink handle
        poll_timeout: Seconds to wait for a message before checking health
        metrics: Per-instance diagnostics counters

    Example:
        dispatcher = Dispatcher(buffer, handler, supervisor)
        task = asyncio.create_task(dispatcher.run())
        ...
        buffer.close()
        await task
    """

    def __init__(
        self,
        buffer: MessageBuffer,
        handler: MessageHandler,
        supervisor: ConnectionSupervisor,
        poll_timeout: float = 0.5,
        metrics: Optional[DispatchMetrics] = None,
    ) -> None:
        self.buffer = buffer
        self.handler = handler
        self.supervisor = supervisor
        self.poll_timeout = poll_timeout
        self.metrics = metrics or DispatchMetrics()
        self._running: bool = False

    @property
    def running(self) -> bool:
        return self._running

    async def run(self) -> None:
        """Consume until the buffer is closed."""
        self._running = True
        logger.info(f"Dispatcher started with {self.handler!r}")

        try:
            while True:
                try:
                    message = await self.buffer.get(timeout=self.poll_timeout)
                except ChannelClosed:
                    logger.info("Subscription closed, dispatcher stopping")
                    break

                await self.supervisor.poll()

                if message is None:
                    continue

                self.process(message)
        finally:
            self._running = False

        logger.info(
            f"Dispatcher stopped: {self.metrics.messages_forwarded} forwarded, "
            f"{self.metrics.failures} failed"
        )

    def process(self, message: BusMessage) -> bool:
        """
        Handle one message, isolating any failure.

        Returns:
            True if an artifact was forwarded
        """
        metrics = self.metrics
        metrics.messages_received += 1
        metrics.bytes_received += len(message.payload)
        metrics.last_message_at = message.received_at

        try:
            artifact = self.handler.handle(message.payload, self.supervisor.sink)
        except UnsupportedFormatError as e:
            metrics.unsupported_formats += 1
            logger.warning(f"Skipping message on {message.topic}: {e}")
            return False
        except MalformedPayloadError as e:
            metrics.malformed_payloads += 1
            logger.error(f"Malformed payload on {message.topic}: {e}")
            return False
        except DecodeError as e:
            metrics.decode_errors += 1
            logger.error(f"Decode error on {message.topic}: {e}")
            return False
        except ConversionError as e:
            metrics.conversion_failures += 1
            logger.error(f"Conversion failed on {message.topic}: {e}")
            return False
        except SinkError as e:
            metrics.forward_errors += 1
            logger.error(f"Forwarding failed for {message.topic}: {e}")
            return False
        except Exception as e:
            metrics.unexpected_errors += 1
            logger.exception(f"Unexpected error handling {message!r}: {e}")
            return False

        if artifact is None:
            metrics.messages_skipped += 1
            return False

        metrics.messages_forwarded += 1
        return True
