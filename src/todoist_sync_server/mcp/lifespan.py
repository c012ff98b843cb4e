"""Lifespan management for MCP server startup and shutdown."""

import logging
import sys
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

from dotenv import load_dotenv

from ..config import load_config
from ..config_loader import (
    discover_config_files,
    load_hierarchical_config,
)
from ..config_schema import build_config, to_fallbacks
from ..context import AppContext
from ..core.async_utils import init_semaphore, run_sync, run_sync_limited
from ..exceptions import ConfigurationError, SyncError
from ..store.local_store import LocalStore

logger = logging.getLogger(__name__)


def _stderr_print(msg: str) -> None:
    """Print message to stderr for user feedback (safe in MCP mode)."""
    print(msg, file=sys.stderr, flush=True)


@asynccontextmanager
async def server_lifespan(
    config_overrides: dict[str, Any] | None = None,
) -> AsyncIterator[AppContext]:
    """
    Manage server startup and shutdown lifecycle.

    On startup:
    - Load .env file (so values are available for env var lookups and YAML interpolation)
    - Load YAML config file if present (as fallback values)
    - Merge all sources via load_config(): CLI > env vars > .env > YAML > defaults
    - Open and migrate the local SQLite store
    - Build the AppContext and check the Todoist token when one is set
      (a rejected token is reported but does not stop the server)

    On shutdown:
    - Cancel any running background sync and drop real-time listeners

    Args:
        config_overrides: Optional dict with config values from CLI
            (token, api_url, database, host, port, realtime, debug)

    Yields:
        The initialized AppContext

    Raises:
        RuntimeError: If configuration is invalid or the store cannot be opened.
    """
    logger.info("MCP server starting...")
    _stderr_print("Todoist Sync Server starting...")

    overrides = config_overrides or {}
    try:
        # 1. Load .env early (before YAML, so ${VAR} interpolation can use .env values)
        load_dotenv()

        # 2. Load YAML config if present, flattened into fallbacks
        yaml_fallbacks: dict[str, Any] | None = None
        config_files = discover_config_files()
        sources = []

        if config_files:
            raw = load_hierarchical_config(config_files)
            yaml_fallbacks = to_fallbacks(build_config(raw))
            sources.append(f"config file: {config_files[0]}")

        # 3. Single call to load_config with all sources merged
        config = load_config(
            token=overrides.get("token"),
            api_url=overrides.get("api_url"),
            database=overrides.get("database"),
            host=overrides.get("host"),
            port=overrides.get("port"),
            realtime=overrides.get("realtime"),
            debug=overrides.get("debug", False),
            yaml_fallbacks=yaml_fallbacks,
        )

        if overrides:
            sources.append("CLI arguments")
        sources.append("environment variables")
        source_desc = ", ".join(sources)
        logger.info("Configuration loaded from: %s", source_desc)
        _stderr_print(f"  Configuration loaded from: {source_desc}")
        _stderr_print(f"  Database: {config.database_path}")
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        _stderr_print(f"ERROR: Configuration error: {e}")
        raise RuntimeError(f"Configuration error: {e}") from e

    try:
        store = LocalStore(config.database_path)
        await run_sync(store.init)
    except Exception as e:
        logger.error("Failed to open database %s: %s", config.database_path, e)
        _stderr_print(f"ERROR: Cannot open database {config.database_path}: {e}")
        raise RuntimeError(f"Database error: {e}") from e

    init_semaphore(config.max_parallel_requests)
    context = AppContext(config, store)

    if context.client is not None:
        _stderr_print("  Validating Todoist token...")
        try:
            count = await run_sync_limited(context.client.validate_connection)
            logger.info("Todoist token valid, %d projects visible", count)
            _stderr_print(f"  Connected to Todoist ({count} projects)")
        except ConfigurationError as e:
            logger.warning("Todoist rejected the token: %s", e)
            _stderr_print(f"WARNING: {e}. Use sync_set_token to replace it.")
        except SyncError as e:
            logger.warning("Todoist not reachable: %s", e)
            _stderr_print(f"WARNING: Todoist not reachable: {e}")
    else:
        _stderr_print(
            "  No Todoist API token configured; real-time sync disabled. "
            "Set TODOIST_API_TOKEN or call sync_set_token."
        )

    _stderr_print("Server ready. Waiting for MCP client connection...")

    try:
        yield context
    finally:
        logger.info("MCP server shutting down")
        if context.broadcaster is not None:
            await context.broadcaster.close()
        _stderr_print("Todoist Sync Server shutting down.")
