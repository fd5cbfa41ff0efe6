"""
Message Shipper Configuration
=============================

This module handles configuration loading for the shipper.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SHIPPER_BUS_TOPIC        -> bus.topic
    SHIPPER_BUS_MODE         -> bus.mode
    SHIPPER_BUS_ENDPOINTS    -> bus.connect_endpoints (comma separated)
    SHIPPER_BACKPRESSURE     -> bus.backpressure
    SHIPPER_MAX_QUEUE_SIZE   -> bus.max_queue_size
    SHIPPER_SINK_HOST        -> sink.host
    SHIPPER_SINK_PORT        -> sink.port
    SHIPPER_IMAGE_MODE       -> image.mode
    SHIPPER_JPEG_QUALITY     -> image.jpeg_quality
    SHIPPER_PORT             -> server.port
    SHIPPER_LOG_LEVEL        -> logging.level
    PORT                     -> server.port

Example:
    from message_shipper.config import settings

    print(settings.bus.topic)
    print(settings.sink.host, settings.sink.port)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field

from message_shipper.imaging.colorspace import ChromaInterpolation, YuvMatrix, YuvRange
from message_shipper.imaging.normalizer import NormalizationMode
from message_shipper.sink.base import DEFAULT_URL_TEMPLATE
from message_shipper.stream.buffer import BackpressurePolicy


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="make87-messages-shipper", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class BusConfig(BaseModel):
    """Zenoh subscription configuration."""

    mode: str = Field(default="peer", description="Zenoh session mode: 'peer' or 'client'")
    connect_endpoints: List[str] = Field(
        default_factory=list,
        description="Zenoh router endpoints, e.g. tcp/192.168.1.10:7447",
    )
    topic: str = Field(
        default="*/*/*/make87_messages-text-PlainText/**",
        description="Key expression to subscribe to; its schema segment picks the handler",
    )
    backpressure: BackpressurePolicy = Field(
        default=BackpressurePolicy.DROP_OLDEST,
        description="Buffer policy when the dispatcher falls behind",
    )
    max_queue_size: int = Field(
        default=50,
        ge=1,
        description="Maximum size of internal message buffer",
    )
    poll_timeout_seconds: float = Field(
        default=0.5,
        gt=0,
        description="Max wait for a message before the loop checks sink health",
    )


class SinkConfig(BaseModel):
    """Rerun sink connection configuration."""

    host: str = Field(default="localhost", description="Rerun gRPC proxy host")
    port: int = Field(default=9876, ge=1, le=65535, description="Rerun gRPC proxy port")
    application_id: str = Field(
        default="make87_messages_shipper",
        description="Rerun application id",
    )
    url_template: str = Field(
        default=DEFAULT_URL_TEMPLATE,
        description="Connection URL, formatted with host and port",
    )
    health_check_interval_sec: float = Field(
        default=5.0,
        gt=0,
        description="Seconds between connection health checks",
    )
    probe_timeout_ms: int = Field(
        default=100,
        ge=1,
        description="Health probe timeout; slower probes count as unhealthy",
    )
    reconnect_timeout_sec: float = Field(
        default=2.0,
        gt=0,
        description="Upper bound on one reconnect attempt",
    )


class ImageConfig(BaseModel):
    """Pixel normalization configuration."""

    mode: NormalizationMode = Field(
        default=NormalizationMode.TENSOR,
        description="Raw images become 'tensor' (decoded RGB/RGBA) or 'jpeg'",
    )
    jpeg_quality: int = Field(default=85, ge=1, le=100, description="JPEG quality")
    yuv_range: YuvRange = Field(default=YuvRange.LIMITED, description="YUV signal range")
    yuv_matrix: YuvMatrix = Field(default=YuvMatrix.BT709, description="YUV -> RGB matrix")
    chroma_interpolation: ChromaInterpolation = Field(
        default=ChromaInterpolation.NEAREST,
        description="Chroma upsampling filter",
    )


class ServerConfig(BaseModel):
    """Probe server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the shipper.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    bus: BusConfig = Field(default_factory=BusConfig)
    sink: SinkConfig = Field(default_factory=SinkConfig)
    image: ImageConfig = Field(default_factory=ImageConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, uses SHIPPER_CONFIG or
            searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get("SHIPPER_CONFIG")

    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.info("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Bus settings
    if env_topic := os.environ.get("SHIPPER_BUS_TOPIC"):
        config_data.setdefault("bus", {})["topic"] = env_topic
    if env_mode := os.environ.get("SHIPPER_BUS_MODE"):
        config_data.setdefault("bus", {})["mode"] = env_mode
    if env_endpoints := os.environ.get("SHIPPER_BUS_ENDPOINTS"):
        config_data.setdefault("bus", {})["connect_endpoints"] = [
            endpoint.strip() for endpoint in env_endpoints.split(",") if endpoint.strip()
        ]
    if env_policy := os.environ.get("SHIPPER_BACKPRESSURE"):
        config_data.setdefault("bus", {})["backpressure"] = env_policy
    if env_queue := os.environ.get("SHIPPER_MAX_QUEUE_SIZE"):
        config_data.setdefault("bus", {})["max_queue_size"] = int(env_queue)

    # Sink settings
    if env_host := os.environ.get("SHIPPER_SINK_HOST"):
        config_data.setdefault("sink", {})["host"] = env_host
    if env_sink_port := os.environ.get("SHIPPER_SINK_PORT"):
        config_data.setdefault("sink", {})["port"] = int(env_sink_port)

    # Image settings
    if env_image_mode := os.environ.get("SHIPPER_IMAGE_MODE"):
        config_data.setdefault("image", {})["mode"] = env_image_mode
    if env_quality := os.environ.get("SHIPPER_JPEG_QUALITY"):
        config_data.setdefault("image", {})["jpeg_quality"] = int(env_quality)

    # Server settings (PORT wins for container platforms)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SHIPPER_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SHIPPER_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
