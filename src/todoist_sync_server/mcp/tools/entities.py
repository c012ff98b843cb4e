"""Project and task tool handlers for MCP server.

Thin CRUD over the local store.  Every write marks the entity
``PENDING_UPLOAD`` and then notifies the real-time broadcaster, which
starts a background sync when listeners are connected.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import mcp.types as types

from ...core.async_utils import run_sync
from ...exceptions import SyncError
from ...sync.models import Project, SyncStatus, Task
from ...validators import (
    LOCAL_COLORS,
    parse_due_date,
    validate_color,
    validate_priority,
    validate_project_name,
    validate_task_text,
)
from .errors import build_error_response, translate_sync_error

if TYPE_CHECKING:
    from ...context import AppContext

logger = logging.getLogger(__name__)

_STATUS_VALUES = [s.value for s in SyncStatus]

# Tool definitions for list_tools()
ENTITY_TOOLS = [
    types.Tool(
        name="project_list",
        description="List local projects with their sync status.",
        inputSchema={
            "type": "object",
            "properties": {
                "status": {
                    "type": "string",
                    "enum": _STATUS_VALUES,
                    "description": "Only list projects with this sync status",
                },
            },
            "required": [],
        },
    ),
    types.Tool(
        name="project_create",
        description="Create a local project. It is uploaded to Todoist on the next sync.",
        inputSchema={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Project name (1-100 chars)"},
                "color": {
                    "type": "string",
                    "enum": sorted(LOCAL_COLORS),
                    "default": "blue",
                },
            },
            "required": ["name"],
        },
    ),
    types.Tool(
        name="project_update",
        description="Rename or recolor a local project.",
        inputSchema={
            "type": "object",
            "properties": {
                "project_id": {"type": "string"},
                "name": {"type": "string"},
                "color": {"type": "string", "enum": sorted(LOCAL_COLORS)},
            },
            "required": ["project_id"],
        },
    ),
    types.Tool(
        name="project_delete",
        description=(
            "Delete a local project with all its tasks and sync log entries. "
            "The Todoist project is not deleted."
        ),
        annotations=types.ToolAnnotations(destructiveHint=True),
        inputSchema={
            "type": "object",
            "properties": {"project_id": {"type": "string"}},
            "required": ["project_id"],
        },
    ),
    types.Tool(
        name="task_list",
        description="List local tasks, optionally for one project or sync status.",
        inputSchema={
            "type": "object",
            "properties": {
                "project_id": {"type": "string"},
                "status": {"type": "string", "enum": _STATUS_VALUES},
            },
            "required": [],
        },
    ),
    types.Tool(
        name="task_create",
        description="Create a local task in an existing project.",
        inputSchema={
            "type": "object",
            "properties": {
                "project_id": {"type": "string"},
                "text": {"type": "string", "description": "Task text (1-500 chars)"},
                "priority": {
                    "type": "integer",
                    "minimum": 1,
                    "maximum": 4,
                    "default": 2,
                    "description": "1 (highest) to 4 (lowest)",
                },
                "notes": {"type": "string", "default": ""},
                "due_date": {
                    "type": "string",
                    "description": "ISO 8601 date or date-time",
                },
                "metadata": {"type": "object"},
            },
            "required": ["project_id", "text"],
        },
    ),
    types.Tool(
        name="task_update",
        description="Update fields of a local task. Only provided fields change.",
        inputSchema={
            "type": "object",
            "properties": {
                "task_id": {"type": "string"},
                "text": {"type": "string"},
                "priority": {"type": "integer", "minimum": 1, "maximum": 4},
                "notes": {"type": "string"},
                "due_date": {
                    "type": ["string", "null"],
                    "description": "ISO 8601 date; null or empty clears it",
                },
                "completed": {"type": "boolean"},
                "project_id": {"type": "string"},
                "metadata": {"type": "object"},
            },
            "required": ["task_id"],
        },
    ),
    types.Tool(
        name="task_toggle",
        description="Flip the completed flag of a local task.",
        inputSchema={
            "type": "object",
            "properties": {"task_id": {"type": "string"}},
            "required": ["task_id"],
        },
    ),
    types.Tool(
        name="task_delete",
        description="Delete a local task. The Todoist task is not deleted.",
        annotations=types.ToolAnnotations(destructiveHint=True),
        inputSchema={
            "type": "object",
            "properties": {"task_id": {"type": "string"}},
            "required": ["task_id"],
        },
    ),
]

ENTITY_TOOL_NAMES = frozenset(tool.name for tool in ENTITY_TOOLS)


async def handle_entity_tool(
    name: str, arguments: dict[str, Any] | None, context: AppContext
) -> types.CallToolResult:
    """Dispatch and execute a project or task tool."""
    args = arguments or {}
    try:
        match name:
            case "project_list":
                return await _handle_project_list(args, context)
            case "project_create":
                return await _handle_project_create(args, context)
            case "project_update":
                return await _handle_project_update(args, context)
            case "project_delete":
                return await _handle_project_delete(args, context)
            case "task_list":
                return await _handle_task_list(args, context)
            case "task_create":
                return await _handle_task_create(args, context)
            case "task_update":
                return await _handle_task_update(args, context)
            case "task_toggle":
                return await _handle_task_toggle(args, context)
            case "task_delete":
                return await _handle_task_delete(args, context)
            case _:
                raise ValueError(f"Unknown entity tool: {name}")

    except SyncError as e:
        return translate_sync_error(e)
    except ValueError as e:
        return build_error_response(
            "validation_error",
            str(e),
            "Check parameter values and retry.",
        )
    except Exception as e:
        logger.exception("Entity tool error: %s", e)
        return build_error_response(
            "server_error",
            str(e),
            "Retry later or inspect the server log.",
        )


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------


def _format_project(project: Project) -> str:
    remote = f" [todoist {project.remote_id}]" if project.remote_id else ""
    return (
        f"{project.id}  {project.name} ({project.color}) "
        f"{project.sync_status.value}{remote}"
    )


def _format_task(task: Task) -> str:
    mark = "x" if task.completed else " "
    due = f" due {task.due_date}" if task.due_date else ""
    return (
        f"[{mark}] {task.id}  P{task.priority} {task.text}{due} "
        f"{task.sync_status.value}"
    )


def _entity_result(text: str, entity: Project | Task) -> types.CallToolResult:
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent=entity.model_dump(mode="json"),
    )


def _require_str(args: dict, key: str) -> str:
    value = args.get(key)
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} is required")
    return value


def _parse_status(args: dict) -> list[SyncStatus] | None:
    status = args.get("status")
    if status is None:
        return None
    return [SyncStatus(status)]


def _check(result: tuple[bool, str]) -> None:
    is_valid, message = result
    if not is_valid:
        raise ValueError(message)


def _check_due_date(value: Any) -> str | None:
    if value is not None and not isinstance(value, str):
        raise ValueError("Due date must be a string")
    parsed, message = parse_due_date(value)
    if message:
        raise ValueError(message)
    return value if parsed is not None else None


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------


async def _handle_project_list(args: dict, context: AppContext) -> types.CallToolResult:
    projects = await run_sync(context.store.list_projects, _parse_status(args))
    if projects:
        text = "\n".join(_format_project(p) for p in projects)
    else:
        text = "No projects."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={
            "projects": [p.model_dump(mode="json") for p in projects]
        },
    )


async def _handle_project_create(args: dict, context: AppContext) -> types.CallToolResult:
    name = args.get("name")
    color = args.get("color", "blue")
    _check(validate_project_name(name))
    _check(validate_color(color))

    project = await run_sync(context.store.create_project, name.strip(), color)
    context.notify_local_change()
    return _entity_result(f"Created project {_format_project(project)}", project)


async def _handle_project_update(args: dict, context: AppContext) -> types.CallToolResult:
    project_id = _require_str(args, "project_id")
    name = args.get("name")
    color = args.get("color")
    if name is None and color is None:
        raise ValueError("Provide at least one of: name, color")
    if name is not None:
        _check(validate_project_name(name))
        name = name.strip()
    if color is not None:
        _check(validate_color(color))

    project = await run_sync(context.store.update_project, project_id, name, color)
    context.notify_local_change()
    return _entity_result(f"Updated project {_format_project(project)}", project)


async def _handle_project_delete(args: dict, context: AppContext) -> types.CallToolResult:
    project_id = _require_str(args, "project_id")
    await run_sync(context.store.delete_project, project_id)
    context.notify_local_change()
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=f"Deleted project {project_id}")],
        structuredContent={"deleted": project_id},
    )


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


async def _handle_task_list(args: dict, context: AppContext) -> types.CallToolResult:
    tasks = await run_sync(
        context.store.list_tasks, args.get("project_id"), _parse_status(args)
    )
    text = "\n".join(_format_task(t) for t in tasks) if tasks else "No tasks."
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=text)],
        structuredContent={"tasks": [t.model_dump(mode="json") for t in tasks]},
    )


async def _handle_task_create(args: dict, context: AppContext) -> types.CallToolResult:
    project_id = _require_str(args, "project_id")
    text = args.get("text")
    priority = args.get("priority", 2)
    notes = args.get("notes", "") or ""
    metadata = args.get("metadata") or {}
    _check(validate_task_text(text))
    _check(validate_priority(priority))
    due_date = _check_due_date(args.get("due_date"))
    if not isinstance(metadata, dict):
        raise ValueError("metadata must be an object")

    task = await run_sync(
        context.store.create_task,
        project_id,
        text.strip(),
        priority,
        notes,
        due_date,
        metadata,
    )
    context.notify_local_change()
    return _entity_result(f"Created task {_format_task(task)}", task)


async def _handle_task_update(args: dict, context: AppContext) -> types.CallToolResult:
    task_id = _require_str(args, "task_id")
    fields: dict[str, Any] = {}

    if "text" in args:
        _check(validate_task_text(args["text"]))
        fields["text"] = args["text"].strip()
    if "priority" in args:
        _check(validate_priority(args["priority"]))
        fields["priority"] = args["priority"]
    if "notes" in args:
        fields["notes"] = args["notes"] or ""
    if "due_date" in args:
        fields["due_date"] = _check_due_date(args["due_date"])
    if "completed" in args:
        if not isinstance(args["completed"], bool):
            raise ValueError("completed must be a boolean")
        fields["completed"] = args["completed"]
    if "project_id" in args:
        fields["project_id"] = _require_str(args, "project_id")
    if "metadata" in args:
        if not isinstance(args["metadata"], dict):
            raise ValueError("metadata must be an object")
        fields["metadata"] = args["metadata"]

    if not fields:
        raise ValueError("Provide at least one field to update")

    task = await run_sync(context.store.update_task, task_id, **fields)
    context.notify_local_change()
    return _entity_result(f"Updated task {_format_task(task)}", task)


async def _handle_task_toggle(args: dict, context: AppContext) -> types.CallToolResult:
    task_id = _require_str(args, "task_id")
    task = await run_sync(context.store.toggle_task, task_id)
    context.notify_local_change()
    state = "completed" if task.completed else "reopened"
    return _entity_result(f"Task {state}: {_format_task(task)}", task)


async def _handle_task_delete(args: dict, context: AppContext) -> types.CallToolResult:
    task_id = _require_str(args, "task_id")
    await run_sync(context.store.delete_task, task_id)
    context.notify_local_change()
    return types.CallToolResult(
        content=[types.TextContent(type="text", text=f"Deleted task {task_id}")],
        structuredContent={"deleted": task_id},
    )
