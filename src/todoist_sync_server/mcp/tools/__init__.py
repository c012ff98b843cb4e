"""MCP tool handlers for the sync server.

This package contains MCP tool implementations that wrap the local store
and the sync engine with async handlers and structured error responses.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import mcp.types as types

from .entities import ENTITY_TOOL_NAMES, ENTITY_TOOLS, handle_entity_tool
from .errors import build_error_response, translate_sync_error
from .sync import SYNC_TOOL_NAMES, SYNC_TOOLS, handle_sync_tool

if TYPE_CHECKING:
    from ...context import AppContext

ALL_TOOLS: list[types.Tool] = SYNC_TOOLS + ENTITY_TOOLS


async def dispatch_tool(
    name: str, arguments: dict[str, Any] | None, context: AppContext
) -> types.CallToolResult:
    """Route a tool call to the module that defines it.

    Raises:
        ValueError: If no tool with this name exists.
    """
    if name in SYNC_TOOL_NAMES:
        return await handle_sync_tool(name, arguments, context)
    if name in ENTITY_TOOL_NAMES:
        return await handle_entity_tool(name, arguments, context)
    raise ValueError(f"Unknown tool: {name}")


__all__ = [
    "ALL_TOOLS",
    "ENTITY_TOOLS",
    "SYNC_TOOLS",
    "build_error_response",
    "dispatch_tool",
    "handle_entity_tool",
    "handle_sync_tool",
    "translate_sync_error",
]
