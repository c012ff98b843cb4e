"""Unified configuration schema for todoist_sync_server.

Defines Pydantic models for the YAML config structure with dedicated
sections for the Todoist connection, the local database, the real-time
listener endpoint and logging.  ``to_fallbacks()`` flattens a validated
config into the ``yaml_fallbacks`` dict consumed by ``load_config()``.

Usage:
    from todoist_sync_server.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class TodoistConfig(BaseModel):
    """Todoist connection settings.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    token: str | None = Field(default=None, description="Todoist API token")
    api_url: str | None = Field(
        default=None, description="Todoist REST base URL"
    )
    request_timeout: float = Field(
        default=30.0,
        ge=1,
        le=300,
        description="Read timeout for a single Todoist request (seconds)",
    )
    max_parallel_requests: int = Field(
        default=2,
        ge=1,
        le=100,
        description="Maximum concurrent requests to Todoist (1-100)",
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    model_config = {"frozen": True}


class DatabaseConfig(BaseModel):
    """Local SQLite store settings."""

    path: str | None = Field(
        default=None, description="SQLite database file path"
    )

    model_config = {"frozen": True}


class RealtimeConfig(BaseModel):
    """Real-time WebSocket endpoint settings."""

    enabled: bool = Field(
        default=True, description="Serve the /ws/sync endpoint"
    )
    host: str | None = Field(default=None, description="Bind host")
    port: int = Field(default=3001, ge=1, le=65535, description="Bind port")

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has sensible defaults, so ``UnifiedConfig()``
    (zero-config) is always valid.
    """

    todoist: TodoistConfig = Field(default_factory=TodoistConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# Top-level YAML keys and the model validating each one
SECTION_MODELS: dict[str, type[BaseModel]] = {
    "todoist": TodoistConfig,
    "database": DatabaseConfig,
    "realtime": RealtimeConfig,
    "logging": LoggingConfig,
}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Handles missing sections gracefully; anything absent gets defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_config() fallbacks
# ---------------------------------------------------------------------------


def to_fallbacks(unified: UnifiedConfig) -> dict[str, Any]:
    """Flatten *unified* into the keyword fallbacks used by ``load_config``.

    ``None`` values are dropped so that built-in defaults still apply.
    """
    flat: dict[str, Any] = {
        "token": unified.todoist.token,
        "api_url": unified.todoist.api_url,
        "request_timeout": unified.todoist.request_timeout,
        "max_parallel_requests": unified.todoist.max_parallel_requests,
        "debug": unified.todoist.debug,
        "database_path": unified.database.path,
        "realtime_enabled": unified.realtime.enabled,
        "host": unified.realtime.host,
        "port": unified.realtime.port,
    }
    return {k: v for k, v in flat.items() if v is not None}
