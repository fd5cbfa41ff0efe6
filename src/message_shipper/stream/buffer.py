"""
Message Buffer
==============

Async bounded queue between the bus subscriber and the dispatch loop.

Backpressure policies:
    BLOCK        Producer waits while the buffer is full. Every message is
                 kept, at the risk of stalling the bus callback.
    DROP_OLDEST  Newest message is always accepted; the oldest buffered
                 message is dropped and counted.

The subscriber runs on the bus library's own thread, so it uses the
*_threadsafe entry points; the dispatch loop uses get() on the event loop.

Closing the buffer is how shutdown reaches the dispatch loop: once closed
and drained, get() raises ChannelClosed.
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from message_shipper.stream.message import BusMessage


logger = logging.getLogger(__name__)


class BackpressurePolicy(str, Enum):
    BLOCK = "block"
    DROP_OLDEST = "drop_oldest"


class ChannelClosed(Exception):
    """Raised by get() once the buffer is closed and empty."""
    pass


_CLOSED = object()


class MessageBuffer:
    """
    Async bounded queue for bus messages.

    Attributes:
        maxsize: Maximum number of buffered messages
        policy: Behaviour when full
        dropped_count: Messages dropped due to overflow (DROP_OLDEST)

    Example:
        buffer = MessageBuffer(maxsize=50, policy=BackpressurePolicy.DROP_OLDEST)

        # Producer (event loop)
        await buffer.put(message)

        # Producer (foreign thread)
        buffer.put_threadsafe(message)

        # Consumer
        message = await buffer.get(timeout=0.5)
    """

    def __init__(
        self,
        maxsize: int = 50,
        policy: BackpressurePolicy = BackpressurePolicy.DROP_OLDEST,
    ) -> None:
        """
        Initialize message buffer.

        Args:
            maxsize: Maximum messages to buffer. Must be >= 1.
            policy: Backpressure policy when full
        """
        if maxsize < 1:
            raise ValueError("maxsize must be >= 1")

        self._maxsize = maxsize
        self._policy = BackpressurePolicy(policy)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._closed: bool = False
        self._dropped_count: int = 0
        self._total_put: int = 0

    @property
    def maxsize(self) -> int:
        """Maximum buffer size."""
        return self._maxsize

    @property
    def policy(self) -> BackpressurePolicy:
        return self._policy

    @property
    def size(self) -> int:
        """Current number of messages in buffer."""
        return self._queue.qsize()

    @property
    def dropped_count(self) -> int:
        """Number of messages dropped due to overflow."""
        return self._dropped_count

    @property
    def total_put(self) -> int:
        """Total messages ever accepted by put."""
        return self._total_put

    @property
    def closed(self) -> bool:
        return self._closed

    def bind_loop(self, loop: asyncio.AbstractEventLoop) -> None:
        """Set the event loop that owns the queue (for *_threadsafe calls)."""
        self._loop = loop

    async def put(self, message: BusMessage) -> bool:
        """
        Add a message according to the backpressure policy.

        Returns:
            True if added without dropping anything, False if the message
            was refused (closed) or the oldest message was dropped.
        """
        if self._closed:
            logger.debug(f"Buffer closed, ignoring {message!r}")
            return False

        if self._policy is BackpressurePolicy.BLOCK:
            self._total_put += 1
            await self._queue.put(message)
            return True

        return self._put_dropping(message)

    def _put_dropping(self, message: BusMessage) -> bool:
        if self._closed:
            return False

        self._total_put += 1
        dropped = False

        # If queue is full, drop oldest
        if self._queue.full():
            try:
                self._queue.get_nowait()
                self._dropped_count += 1
                dropped = True
                # Log first drop, then every 100th
                if self._dropped_count == 1 or self._dropped_count % 100 == 0:
                    logger.warning(
                        f"Buffer full, dropped oldest message. "
                        f"Total dropped: {self._dropped_count}"
                    )
            except asyncio.QueueEmpty:
                pass

        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            self._dropped_count += 1
            logger.error("Failed to add message after dropping - queue full")
            return False

        return not dropped

    def put_threadsafe(self, message: BusMessage) -> None:
        """
        Add a message from a thread other than the event loop's.

        With BLOCK this call waits until there is room.
        """
        loop = self._require_loop()
        if self._policy is BackpressurePolicy.BLOCK:
            future = asyncio.run_coroutine_threadsafe(self.put(message), loop)
            future.result()
        else:
            loop.call_soon_threadsafe(self._put_dropping, message)

    async def get(self, timeout: Optional[float] = None) -> Optional[BusMessage]:
        """
        Get next message from buffer.

        Args:
            timeout: Maximum seconds to wait. None = wait forever.

        Returns:
            Next message, or None if timeout occurred.

        Raises:
            ChannelClosed: Buffer is closed and drained
        """
        if self._closed and self._queue.empty():
            raise ChannelClosed()

        try:
            if timeout is not None:
                item = await asyncio.wait_for(self._queue.get(), timeout=timeout)
            else:
                item = await self._queue.get()
        except asyncio.TimeoutError:
            return None

        if item is _CLOSED:
            raise ChannelClosed()
        return item

    def close(self) -> None:
        """Stop accepting messages and wake a waiting consumer."""
        if self._closed:
            return
        self._closed = True
        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Consumer will drain and then see the closed flag
            pass

    def close_threadsafe(self) -> None:
        """close() from a foreign thread."""
        self._require_loop().call_soon_threadsafe(self.close)

    def _require_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            raise RuntimeError("MessageBuffer.bind_loop() must be called first")
        return self._loop

    def metrics(self) -> dict:
        """
        Get buffer metrics for observability.

        Returns:
            Dict with size, maxsize, policy, dropped_count, total_put
        """
        return {
            "size": self.size,
            "maxsize": self._maxsize,
            "policy": self._policy.value,
            "dropped_count": self._dropped_count,
            "total_put": self._total_put,
        }
