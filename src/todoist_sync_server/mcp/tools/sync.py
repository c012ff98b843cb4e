"""MCP tool handlers for running and inspecting Todoist sync.

Defines four tools:

- ``sync_run`` -- run one pass in a chosen direction.
- ``sync_status`` -- per-status entity counts and recent log activity.
- ``sync_logs`` -- paginated audit log.
- ``sync_set_token`` -- install a Todoist token at runtime.
"""

from __future__ import annotations

import dataclasses
import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...config import clean_token
from ...core.async_utils import run_sync, run_sync_limited
from ...exceptions import SyncError
from ...sync.log import DEFAULT_PAGE_SIZE
from ...sync.models import EntityScope, EntityType, SyncDirection
from ...sync.reporter import (
    format_log_entry,
    format_status_summary,
    format_sync_outcome,
    outcome_to_json,
)
from ...sync.status import get_sync_status_summary
from .errors import build_error_response, translate_sync_error

if TYPE_CHECKING:
    from ...context import AppContext

logger = logging.getLogger(__name__)

MAX_LOG_PAGE_SIZE = 500

# Names used by the REST surface this server replaces
_DIRECTION_ALIASES = {
    "FROM_TODOIST": SyncDirection.FROM_REMOTE,
    "TO_TODOIST": SyncDirection.TO_REMOTE,
}


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


SYNC_TOOLS: list[types.Tool] = [
    types.Tool(
        name="sync_run",
        description=(
            "Synchronize the local task store with Todoist. TO_REMOTE uploads "
            "pending local changes, FROM_REMOTE downloads projects and tasks, "
            "BIDIRECTIONAL does both (upload first)."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "direction": {
                    "type": "string",
                    "enum": [d.value for d in SyncDirection],
                    "description": "Sync direction",
                },
                "entity_kinds": {
                    "type": "string",
                    "enum": [s.value for s in EntityScope],
                    "default": "all",
                    "description": "Entity kinds to download (upload always covers both)",
                },
            },
            "required": ["direction"],
        },
    ),
    types.Tool(
        name="sync_status",
        description=(
            "Show how many projects and tasks are SYNCED, PENDING_UPLOAD or "
            "ERROR, plus the 20 most recent sync log entries."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={"type": "object", "properties": {}, "required": []},
    ),
    types.Tool(
        name="sync_logs",
        description="List sync log entries, newest first, with pagination.",
        annotations=types.ToolAnnotations(
            readOnlyHint=True,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=False,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "entity_type": {
                    "type": "string",
                    "enum": ["project", "task"],
                    "description": "Only show entries for this entity type",
                },
                "limit": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": MAX_LOG_PAGE_SIZE,
                    "default": DEFAULT_PAGE_SIZE,
                },
                "offset": {"type": "integer", "minimum": 0, "default": 0},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="sync_set_token",
        description=(
            "Configure the Todoist API token at runtime. Enables sync_run and "
            "real-time sync. The token is checked against Todoist first unless "
            "validate is false."
        ),
        annotations=types.ToolAnnotations(
            readOnlyHint=False,
            destructiveHint=False,
            idempotentHint=True,
            openWorldHint=True,
        ),
        inputSchema={
            "type": "object",
            "properties": {
                "token": {
                    "type": "string",
                    "description": "Todoist API token",
                },
                "validate": {"type": "boolean", "default": True},
            },
            "required": ["token"],
        },
    ),
]

SYNC_TOOL_NAMES = frozenset(tool.name for tool in SYNC_TOOLS)


# ---------------------------------------------------------------------------
# Tool handler
# ---------------------------------------------------------------------------


async def handle_sync_tool(
    name: str,
    arguments: dict[str, Any] | None,
    context: AppContext,
) -> types.CallToolResult:
    """Dispatch and execute a sync tool.

    Args:
        name: Tool name.
        arguments: Tool arguments dict.
        context: Shared application context.

    Returns:
        ``CallToolResult`` with tool output or error details.
    """
    args = arguments or {}

    try:
        match name:
            case "sync_run":
                return await _handle_sync_run(args, context)
            case "sync_status":
                return await _handle_sync_status(context)
            case "sync_logs":
                return await _handle_sync_logs(args, context)
            case "sync_set_token":
                return await _handle_set_token(args, context)
            case _:
                raise ValueError(f"Unknown sync tool: {name}")

    except SyncError as exc:
        return translate_sync_error(exc)
    except ValueError as exc:
        return build_error_response(
            "validation_error",
            str(exc),
            "Check parameter values and retry.",
        )
    except Exception as exc:
        logger.exception("Sync tool error: %s", exc)
        return build_error_response(
            "server_error",
            str(exc),
            "Check the server log and Todoist connectivity.",
        )


# ---------------------------------------------------------------------------
# Individual handlers
# ---------------------------------------------------------------------------


def _parse_direction(value: Any) -> SyncDirection:
    if not isinstance(value, str) or not value:
        raise ValueError("direction is required")
    key = value.upper()
    if key in _DIRECTION_ALIASES:
        return _DIRECTION_ALIASES[key]
    try:
        return SyncDirection(key)
    except ValueError:
        allowed = ", ".join(d.value for d in SyncDirection)
        raise ValueError(
            f"Invalid direction '{value}'. Must be one of: {allowed}"
        ) from None


def _parse_scope(value: Any) -> EntityScope:
    try:
        return EntityScope(str(value).lower())
    except ValueError:
        allowed = ", ".join(s.value for s in EntityScope)
        raise ValueError(
            f"Invalid entity_kinds '{value}'. Must be one of: {allowed}"
        ) from None


def _parse_int(args: dict, key: str, default: int, low: int, high: int | None = None) -> int:
    value = args.get(key, default)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f">= {low}"
        raise ValueError(f"{key} must be {bound}")
    return value


async def _handle_sync_run(
    args: dict[str, Any], context: AppContext
) -> types.CallToolResult:
    """Handle the ``sync_run`` tool."""
    direction = _parse_direction(args.get("direction"))
    scope = _parse_scope(args.get("entity_kinds", EntityScope.ALL.value))
    engine = context.require_engine()

    outcome = await run_sync(engine.reconcile, direction, scope)

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=format_sync_outcome(outcome))],
        structuredContent=outcome_to_json(outcome),
    )


async def _handle_sync_status(context: AppContext) -> types.CallToolResult:
    """Handle the ``sync_status`` tool."""
    summary = await run_sync(
        get_sync_status_summary, context.store, context.sync_log
    )
    broadcaster = context.broadcaster
    structured = {
        **summary,
        "realtime_enabled": broadcaster is not None,
        "listeners": broadcaster.listener_count if broadcaster else 0,
    }
    text = format_status_summary(summary)
    if broadcaster is None:
        text += "\n\nReal-time sync disabled: no Todoist API token configured."

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=structured,
    )


async def _handle_sync_logs(
    args: dict[str, Any], context: AppContext
) -> types.CallToolResult:
    """Handle the ``sync_logs`` tool."""
    raw_type = args.get("entity_type")
    entity_type = None
    if raw_type:
        # Accept the plural scope names as well
        entity_type = EntityType(str(raw_type).lower().removesuffix("s"))
    limit = _parse_int(args, "limit", DEFAULT_PAGE_SIZE, 1, MAX_LOG_PAGE_SIZE)
    offset = _parse_int(args, "offset", 0, 0)

    entries, total = await run_sync(
        context.sync_log.list, entity_type, limit, offset
    )

    if entries:
        lines = [f"Sync log ({offset + 1}-{offset + len(entries)} of {total}):"]
        lines.extend(f"  {format_log_entry(e)}" for e in entries)
    else:
        lines = [f"No sync log entries (total {total})."]

    return types.CallToolResult(
        content=[types.TextContent(type="text", text="\n".join(lines))],
        structuredContent={
            "entries": [e.model_dump(mode="json") for e in entries],
            "total": total,
            "limit": limit,
            "offset": offset,
        },
    )


async def _handle_set_token(
    args: dict[str, Any], context: AppContext
) -> types.CallToolResult:
    """Handle the ``sync_set_token`` tool."""
    token = clean_token(args.get("token"))
    if token is None:
        return build_error_response(
            "validation_error",
            "token is required",
            "Provide a Todoist API token (Settings > Integrations > Developer).",
        )

    project_count = None
    if args.get("validate", True):
        candidate = context.client_factory(
            dataclasses.replace(context.config, api_token=token)
        )
        project_count = await run_sync_limited(candidate.validate_connection)

    context.configure_remote(token)

    text = "Todoist API token configured. Real-time sync enabled."
    if project_count is not None:
        text += f" Token verified ({project_count} projects visible)."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "configured": True,
            "verified": project_count is not None,
            "project_count": project_count,
        },
    )
