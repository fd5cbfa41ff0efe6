"""
Message Shipper Main Application
================================

FastAPI entry point for the bus-to-Rerun shipper.

Startup (lifespan):
    1. Resolve the handler for the configured topic (fatal if unknown)
    2. Connect the Rerun sink (fatal if unreachable)
    3. Start the Zenoh subscriber feeding the message buffer
    4. Start the dispatch loop

Endpoints:
    GET  /          - Service information
    GET  /health    - Liveness probe (is process alive?)
    GET  /ready     - Readiness probe (handler resolved + sink connected?)
    GET  /metrics   - Dispatch, buffer and connection counters
"""

import asyncio
import logging
import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from message_shipper.config import Settings, settings
from message_shipper.dispatch import Dispatcher
from message_shipper.errors import RoutingError, SinkConnectionError
from message_shipper.handlers import MessageHandler, build_default_registry
from message_shipper.imaging import PixelNormalizer
from message_shipper.models.connection import ConnectionStatus
from message_shipper.sink import ConnectionSupervisor, SinkAddress
from message_shipper.sink.rerun_sink import RerunSink
from message_shipper.stream import MessageBuffer
from message_shipper.stream.subscriber import ZenohSubscriber


logger = logging.getLogger(__name__)


# =============================================================================
# Global State
# =============================================================================

_buffer: Optional[MessageBuffer] = None
_subscriber: Optional[ZenohSubscriber] = None
_supervisor: Optional[ConnectionSupervisor] = None
_dispatcher: Optional[Dispatcher] = None
_dispatch_task: Optional[asyncio.Task] = None
_handler: Optional[MessageHandler] = None
_startup_time: float = 0.0


# =============================================================================
# Getters
# =============================================================================

def get_dispatcher() -> Optional[Dispatcher]:
    return _dispatcher

def get_supervisor() -> Optional[ConnectionSupervisor]:
    return _supervisor

def get_buffer() -> Optional[MessageBuffer]:
    return _buffer

def is_ready() -> bool:
    return (
        _handler is not None
        and _dispatcher is not None
        and _dispatcher.running
        and _supervisor is not None
        and _supervisor.state.status is ConnectionStatus.CONNECTED
    )


# =============================================================================
# Component Factories
# =============================================================================

def create_normalizer(config: Settings) -> PixelNormalizer:
    """Build the shared PixelNormalizer from image settings."""
    image = config.image
    logger.info(
        f"Pixel normalization: mode={image.mode.value}, range={image.yuv_range.value}, "
        f"matrix={image.yuv_matrix.value}, chroma={image.chroma_interpolation.value}"
    )
    return PixelNormalizer(
        mode=image.mode,
        jpeg_quality=image.jpeg_quality,
        yuv_range=image.yuv_range,
        yuv_matrix=image.yuv_matrix,
        chroma_interpolation=image.chroma_interpolation,
    )


def resolve_handler(config: Settings, normalizer: PixelNormalizer) -> MessageHandler:
    """
    Resolve the handler for the configured topic.

    Fails fast: a subscription without a handler cannot run.
    """
    registry = build_default_registry(normalizer)
    handler = registry.resolve(config.bus.topic)
    if handler is None:
        type_id = registry.extract_type_id(config.bus.topic)
        raise RoutingError(
            f"Cannot build pipeline for topic {config.bus.topic!r} "
            f"(schema type: {type_id!r}; known: {', '.join(registry.type_ids)})"
        )
    logger.info(f"Resolved {handler!r} for {config.bus.topic}")
    return handler


def connect_sink(config: Settings) -> RerunSink:
    """
    Connect to Rerun and verify the proxy is reachable.

    Fails fast: an unreachable sink at startup is fatal.
    """
    address = SinkAddress(config.sink.host, config.sink.port)
    sink = RerunSink.connect(
        address,
        application_id=config.sink.application_id,
        url_template=config.sink.url_template,
        probe_timeout=config.sink.probe_timeout_ms / 1000.0,
    )
    state = sink.health_snapshot()
    if not state.is_connected:
        sink.close()
        raise SinkConnectionError(f"Sink unreachable at startup: {state.reason}")
    return sink


# =============================================================================
# Lifespan Management
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan manager with graceful shutdown."""
    global _buffer, _subscriber, _supervisor, _dispatcher, _dispatch_task
    global _handler, _startup_time

    _startup_time = time.time()
    logger.info(f"Starting {settings.service.name} {settings.service.version}")

    normalizer = create_normalizer(settings)
    _handler = resolve_handler(settings, normalizer)

    sink = connect_sink(settings)
    _supervisor = ConnectionSupervisor(
        sink=sink,
        address=SinkAddress(settings.sink.host, settings.sink.port),
        check_interval=settings.sink.health_check_interval_sec,
        probe_timeout=settings.sink.probe_timeout_ms / 1000.0,
        reconnect_timeout=settings.sink.reconnect_timeout_sec,
    )

    try:
        _buffer = MessageBuffer(
            maxsize=settings.bus.max_queue_size,
            policy=settings.bus.backpressure,
        )
        _dispatcher = Dispatcher(
            buffer=_buffer,
            handler=_handler,
            supervisor=_supervisor,
            poll_timeout=settings.bus.poll_timeout_seconds,
        )
        _dispatch_task = asyncio.create_task(_dispatcher.run(), name="dispatcher")

        _subscriber = ZenohSubscriber(
            topic=settings.bus.topic,
            buffer=_buffer,
            mode=settings.bus.mode,
            connect_endpoints=settings.bus.connect_endpoints,
        )
        _subscriber.start(asyncio.get_running_loop())
    except Exception:
        logger.exception("Startup failed, releasing started components")
        await shutdown_components()
        raise

    logger.info("All components started")

    yield

    logger.info("Shutting down gracefully...")
    await shutdown_components()
    logger.info("Shutdown complete")


async def shutdown_components() -> None:
    """Stop subscriber, dispatcher and sink, in that order; skips what never started."""
    # Closing the subscriber closes the buffer, which ends the dispatcher
    if _subscriber:
        _subscriber.close()
    elif _buffer:
        _buffer.close()

    if _dispatch_task:
        try:
            await asyncio.wait_for(_dispatch_task, timeout=5.0)
        except asyncio.TimeoutError:
            _dispatch_task.cancel()
            try:
                await _dispatch_task
            except asyncio.CancelledError:
                pass

    if _supervisor:
        try:
            await asyncio.wait_for(_supervisor.close(), timeout=10.0)
        except asyncio.TimeoutError:
            logger.warning("Sink did not close within 10s")


# =============================================================================
# FastAPI Application
# =============================================================================

app = FastAPI(
    title="make87 messages shipper",
    description="Forwards bus messages to a Rerun sink",
    version=settings.service.version,
    lifespan=lifespan,
)


# =============================================================================
# HTTP Endpoints
# =============================================================================

@app.get("/")
async def root() -> JSONResponse:
    """Service information endpoint."""
    return JSONResponse({
        "service": settings.service.name,
        "version": settings.service.version,
        "topic": settings.bus.topic,
        "sink": f"{settings.sink.host}:{settings.sink.port}",
        "image_mode": settings.image.mode.value,
        "status": "running",
    })


@app.get("/health")
async def health() -> JSONResponse:
    """
    Liveness probe - is the process alive?

    Always returns 200 if the service is running.
    """
    return JSONResponse({
        "status": "healthy",
        "uptime_seconds": round(time.time() - _startup_time, 1),
    })


@app.get("/ready")
async def ready() -> JSONResponse:
    """
    Readiness probe.

    Returns 200 if the dispatcher is running and the sink is connected,
    503 otherwise.
    """
    supervisor = get_supervisor()
    connection = supervisor.state.to_dict() if supervisor else None

    if is_ready():
        return JSONResponse({
            "status": "ready",
            "handler": repr(_handler),
            "connection": connection,
        })
    return JSONResponse(
        {
            "status": "not_ready",
            "handler": repr(_handler) if _handler else None,
            "connection": connection,
        },
        status_code=503,
    )


@app.get("/metrics")
async def metrics() -> JSONResponse:
    """Detailed metrics for observability."""
    dispatcher = get_dispatcher()
    supervisor = get_supervisor()
    buffer = get_buffer()

    return JSONResponse({
        "uptime_seconds": round(time.time() - _startup_time, 1),
        "dispatch": dispatcher.metrics.to_dict() if dispatcher else {},
        "buffer": buffer.metrics() if buffer else {},
        "connection": supervisor.state.to_dict() if supervisor else {},
        "supervisor": supervisor.metrics.to_dict() if supervisor else {},
        "samples_received": _subscriber.samples_received if _subscriber else 0,
    })


# =============================================================================
# Main Entry Point
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    port = int(os.environ.get("PORT", settings.server.port))

    uvicorn.run(
        "message_shipper.main:app",
        host=settings.server.host,
        port=port,
        reload=False,
    )
