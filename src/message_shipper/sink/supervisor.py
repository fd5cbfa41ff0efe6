"""
Connection Supervisor
=====================

Keeps the outbound sink connection alive.

State machine:
    CONNECTED -> DISCONNECTED        probe reports failure or times out
    DISCONNECTED -> CONNECTING       reconnect attempt starts (background)
    CONNECTING -> CONNECTED          new handle opened and its probe passed
    CONNECTING -> DISCONNECTED       reconnect failed, timed out or the new
                                     handle is unhealthy; stale handle kept

Design Rules:
    - Checked on a fixed interval from the dispatch loop, not per message
    - Probe is bounded by probe_timeout; a slow probe counts as unhealthy
    - Reconnect runs as a background task; the dispatch loop only awaits
      the bounded probe, never the reconnect itself
    - One reconnect attempt per check, never more
    - Reconnect failures are logged and retried next interval, never raised
    - Replaced, rejected and late handles are closed off the event loop
    - Messages are not queued while disconnected
"""

import asyncio
import logging
import time
from typing import Callable, Optional, Set

from message_shipper.errors import SinkConnectionError
from message_shipper.models.connection import ConnectionState, ConnectionStatus
from message_shipper.sink.base import Sink, SinkAddress


logger = logging.getLogger(__name__)


class SupervisorMetrics:
    """Counters for supervisor observability."""

    __slots__ = (
        "checks",
        "probe_timeouts",
        "reconnect_attempts",
        "reconnect_failures",
        "reconnect_successes",
        "handles_closed",
    )

    def __init__(self) -> None:
        self.checks: int = 0
        self.probe_timeouts: int = 0
        self.reconnect_attempts: int = 0
        self.reconnect_failures: int = 0
        self.reconnect_successes: int = 0
        self.handles_closed: int = 0

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {
            "checks": self.checks,
            "probe_timeouts": self.probe_timeouts,
            "reconnect_attempts": self.reconnect_attempts,
            "reconnect_failures": self.reconnect_failures,
            "reconnect_successes": self.reconnect_successes,
            "handles_closed": self.handles_closed,
        }


class ConnectionSupervisor:
    """
    Owns the current sink handle and its connection state.

    The dispatch loop reads `sink` for every forward and calls `poll()`
    between messages. Only the supervisor replaces the handle, and only
    from `poll()`/`check()` on the event loop.

    Attributes:
        address: Sink address used for every reconnect
        check_interval: Seconds between health checks
        probe_timeout: Seconds a health probe may take
        reconnect_timeout: Seconds a reconnect attempt may take
        metrics: Operational counters

    Example:
        supervisor = ConnectionSupervisor(sink, SinkAddress("localhost", 9876))

        while running:
            await supervisor.poll()
            supervisor.sink.forward(path, artifact)

        await supervisor.close()
    """

    def __init__(
        self,
        sink: Sink,
        address: SinkAddress,
        check_interval: float = 5.0,
        probe_timeout: float = 0.1,
        reconnect_timeout: float = 2.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if check_interval < 0:
            raise ValueError("check_interval must be >= 0")
        if probe_timeout <= 0:
            raise ValueError("probe_timeout must be > 0")

        self.address = address
        self.check_interval = check_interval
        self.probe_timeout = probe_timeout
        self.reconnect_timeout = reconnect_timeout
        self.metrics = SupervisorMetrics()

        self._sink = sink
        self._clock = clock
        self._state = ConnectionState.connected()
        self._last_check: Optional[float] = None
        self._reconnect_task: Optional[asyncio.Task] = None
        self._closing: Set[asyncio.Future] = set()

    @property
    def sink(self) -> Sink:
        """Handle to use for forwarding."""
        return self._sink

    @property
    def state(self) -> ConnectionState:
        """Last known connection state."""
        return self._state

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None

    def due(self) -> bool:
        """Whether the check interval has elapsed."""
        if self._last_check is None:
            return True
        return self._clock() - self._last_check >= self.check_interval

    async def poll(self) -> ConnectionState:
        """
        Pick up a finished reconnect, then run a health check if one is due.

        Returns the cached state when nothing is due.
        """
        self._collect_reconnect()
        if not self.due():
            return self._state
        return await self.check()

    async def check(self) -> ConnectionState:
        """
        Probe the sink and start one background reconnect if it is down.

        Returns:
            Connection state after this check (CONNECTING while a
            reconnect is in flight)
        """
        self._last_check = self._clock()
        self.metrics.checks += 1

        self._collect_reconnect()
        if self._reconnect_task is not None:
            logger.debug(f"Reconnect to {self.address} still in progress")
            return self._state

        snapshot = await self._probe(self._sink)
        if snapshot.status is not ConnectionStatus.DISCONNECTED:
            if not self._state.is_connected and snapshot.is_connected:
                logger.info(f"Sink {self.address} is healthy again")
            self._state = snapshot
            return self._state

        logger.warning(f"Sink disconnected: {snapshot.reason}")
        self._state = ConnectionState.connecting()
        self.metrics.reconnect_attempts += 1
        self._reconnect_task = asyncio.create_task(
            self._reconnect(self._sink), name="sink-reconnect"
        )
        return self._state

    async def settle(self) -> ConnectionState:
        """Wait for an in-flight reconnect and any pending closes."""
        if self._reconnect_task is not None:
            await asyncio.wait({self._reconnect_task})
            self._collect_reconnect()
        if self._closing:
            await asyncio.wait(set(self._closing))
        return self._state

    async def close(self) -> None:
        """Cancel any reconnect and close the current handle."""
        task = self._reconnect_task
        self._reconnect_task = None
        if task is not None:
            if not task.done():
                task.cancel()
            try:
                self._close_in_background(await task)
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Pending reconnect ended with {e!r}")

        self._close_in_background(self._sink)
        await asyncio.wait(set(self._closing))

    async def _reconnect(self, stale: Sink) -> Sink:
        attempt = asyncio.ensure_future(asyncio.to_thread(stale.reconnect, self.address))
        try:
            done, _ = await asyncio.wait({attempt}, timeout=self.reconnect_timeout)
        except asyncio.CancelledError:
            attempt.add_done_callback(self._close_late_handle)
            raise

        if not done:
            # The thread keeps running; whatever it returns gets closed
            attempt.add_done_callback(self._close_late_handle)
            raise SinkConnectionError(
                f"reconnect exceeded {self.reconnect_timeout:.1f}s"
            )

        new_sink = attempt.result()
        try:
            snapshot = await self._probe(new_sink)
        except asyncio.CancelledError:
            self._close_in_background(new_sink)
            raise
        if not snapshot.is_connected:
            self._close_in_background(new_sink)
            raise SinkConnectionError(f"new connection is unhealthy: {snapshot.reason}")
        return new_sink

    def _collect_reconnect(self) -> None:
        task = self._reconnect_task
        if task is None or not task.done():
            return
        self._reconnect_task = None

        try:
            new_sink = task.result()
        except SinkConnectionError as e:
            self._reconnect_failed(str(e))
            return
        except Exception as e:
            logger.exception(f"Unexpected error reconnecting to {self.address}")
            self._reconnect_failed(f"{type(e).__name__}: {e}")
            return

        stale = self._sink
        self._sink = new_sink
        self._close_in_background(stale)
        self.metrics.reconnect_successes += 1
        self._state = ConnectionState.connected()
        logger.info(f"Reconnected to sink {self.address}")

    def _reconnect_failed(self, reason: str) -> None:
        self.metrics.reconnect_failures += 1
        logger.warning(
            f"Reconnect to {self.address} failed ({reason}); "
            f"keeping stale handle, retrying in {self.check_interval:.1f}s"
        )
        self._state = ConnectionState.disconnected(reason)

    async def _probe(self, sink: Sink) -> ConnectionState:
        try:
            return await asyncio.wait_for(
                asyncio.to_thread(sink.health_snapshot),
                timeout=self.probe_timeout,
            )
        except asyncio.TimeoutError:
            self.metrics.probe_timeouts += 1
            return ConnectionState.disconnected(
                f"health probe exceeded {self.probe_timeout * 1000:.0f} ms"
            )

    def _close_in_background(self, sink: Sink) -> None:
        # Closing flushes, which can block for seconds on a dead connection
        future = asyncio.ensure_future(asyncio.to_thread(sink.close))
        self._closing.add(future)
        future.add_done_callback(self._closing.discard)
        self.metrics.handles_closed += 1

    def _close_late_handle(self, attempt: asyncio.Future) -> None:
        if attempt.cancelled() or attempt.exception() is not None:
            return
        logger.info(f"Closing late reconnect handle for {self.address}")
        self._close_in_background(attempt.result())
