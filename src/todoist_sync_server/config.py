"""Runtime configuration for the sync server.

Reads Todoist connection settings, the local database location and the
real-time listener address from CLI args, environment variables, .env
files, and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    TODOIST_API_TOKEN: Todoist API token (optional; sync stays disabled until set)
    TODOIST_API_URL: Todoist REST base URL (default: https://api.todoist.com/api/v1)
    TODOIST_SYNC_DATABASE: SQLite database path (default: .todoist_sync/tasks.db)
    TODOIST_REQUEST_TIMEOUT: Per-request read timeout in seconds (default: 30)
    TODOIST_MAX_PARALLEL_REQUESTS: Max concurrent Todoist requests (default: 2)
    TODOIST_SYNC_HOST: Real-time WebSocket bind host (default: 127.0.0.1)
    TODOIST_SYNC_PORT: Real-time WebSocket port (default: 3001)
    TODOIST_SYNC_REALTIME: Serve the real-time WebSocket (default: true)
"""

import logging
import os
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.todoist.com/api/v1"
DEFAULT_DATABASE_PATH = ".todoist_sync/tasks.db"

# Shipped in the sample .env; treated the same as no token at all.
PLACEHOLDER_TOKEN = "your_todoist_api_token_here"

_BEARER_PREFIX = re.compile(r"^Bearer\s+", re.IGNORECASE)


@dataclass
class Config:
    api_token: str | None = None
    api_url: str = DEFAULT_API_URL
    database_path: str = DEFAULT_DATABASE_PATH
    request_timeout: float = 30.0
    connect_timeout: float = 10.0
    max_parallel_requests: int = 2
    realtime_enabled: bool = True
    realtime_host: str = "127.0.0.1"
    realtime_port: int = 3001
    debug: bool = False

    @property
    def has_token(self) -> bool:
        return bool(self.api_token)


def clean_token(token: str | None) -> str | None:
    """Strip whitespace and a leading ``Bearer`` prefix from *token*.

    Returns ``None`` for empty values and for the sample placeholder.
    """
    if token is None:
        return None
    cleaned = _BEARER_PREFIX.sub("", token.strip()).strip()
    if not cleaned or cleaned == PLACEHOLDER_TOKEN:
        return None
    return cleaned


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ConfigurationError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ConfigurationError: If the API URL is malformed or a numeric
            setting is out of range.
    """
    config.api_url = config.api_url.strip()

    if not config.api_url.startswith(("http://", "https://")):
        raise ConfigurationError(
            f"Invalid Todoist API URL '{config.api_url}': must start with http:// or https://"
        )

    parsed = urlparse(config.api_url)
    if not parsed.hostname:
        raise ConfigurationError(
            f"Invalid Todoist API URL '{config.api_url}': URL must include a hostname"
        )

    config.api_url = config.api_url.removesuffix("/")

    config.api_token = clean_token(config.api_token)

    if not config.database_path.strip():
        raise ConfigurationError("Database path cannot be empty.")

    if not (1 <= config.realtime_port <= 65535):
        raise ConfigurationError(
            f"Invalid real-time port {config.realtime_port}: must be between 1 and 65535"
        )

    if config.api_url.startswith("http://"):
        logger.warning(
            "WARNING: Todoist API URL is not using TLS (%s). Use only for development.",
            config.api_url,
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, cast, low, high):
    """Parse a bounded numeric env var, or return None if unset."""
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ConfigurationError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    token: str | None = None,
    api_url: str | None = None,
    database: str | None = None,
    host: str | None = None,
    port: int | None = None,
    realtime: bool | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Unlike the URL and database settings, the API token is optional: a
    server without one still serves the local store, and sync is switched
    on later when a token is supplied at runtime.

    Args:
        token: Override Todoist API token.
        api_url: Override Todoist REST base URL.
        database: Override SQLite database path.
        host: Override real-time bind host.
        port: Override real-time port.
        realtime: Force the real-time endpoint on or off.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML config file.

    Returns:
        Validated Config instance.

    Raises:
        ConfigurationError: If any value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_token = token or os.getenv("TODOIST_API_TOKEN") or fb.get("token")
    if clean_token(final_token) is None:
        logger.warning(
            "Todoist API token not configured; real-time sync disabled until a token is set"
        )

    final_url = (
        api_url
        or os.getenv("TODOIST_API_URL")
        or fb.get("api_url")
        or DEFAULT_API_URL
    )
    final_database = (
        database
        or os.getenv("TODOIST_SYNC_DATABASE")
        or fb.get("database_path")
        or DEFAULT_DATABASE_PATH
    )
    final_host = (
        host
        or os.getenv("TODOIST_SYNC_HOST")
        or fb.get("host")
        or "127.0.0.1"
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if realtime is not None:
        final_realtime = realtime
    else:
        env_realtime = _get_bool_env("TODOIST_SYNC_REALTIME")
        if env_realtime is not None:
            final_realtime = env_realtime
        else:
            final_realtime = bool(fb.get("realtime_enabled", True))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("TODOIST_DEBUG")
        if env_debug is not None:
            final_debug = env_debug
        else:
            final_debug = bool(fb.get("debug", False))

    # --- Numeric fields: CLI > env > YAML > default ---

    if port is not None:
        final_port = port
    else:
        env_port = _get_number_env("TODOIST_SYNC_PORT", int, 1, 65535)
        final_port = (
            env_port if env_port is not None else int(fb.get("port", 3001))
        )

    env_timeout = _get_number_env("TODOIST_REQUEST_TIMEOUT", float, 1, 300)
    final_timeout = (
        env_timeout
        if env_timeout is not None
        else float(fb.get("request_timeout", 30.0))
    )

    env_parallel = _get_number_env(
        "TODOIST_MAX_PARALLEL_REQUESTS", int, 1, 100
    )
    final_parallel = (
        env_parallel
        if env_parallel is not None
        else int(fb.get("max_parallel_requests", 2))
    )

    config = Config(
        api_token=final_token,
        api_url=final_url,
        database_path=final_database,
        request_timeout=final_timeout,
        max_parallel_requests=final_parallel,
        realtime_enabled=final_realtime,
        realtime_host=final_host,
        realtime_port=final_port,
        debug=final_debug,
    )

    validate_config(config)

    return config
