"""Field translation between local entities and Todoist payloads.

Handles three concerns:

- Color: Todoist color names and legacy numeric codes map onto the local
  palette.  Anything unknown falls back to ``blue``.
- Priority: Local 1 is the highest priority, Todoist 4 is.  Both
  directions are ``5 - p``.
- Task payloads: the body sent on task create/update.  Completion is
  handled by separate close/reopen calls and is never part of it.
"""

from __future__ import annotations

import logging
from typing import Any

from .models import Task

logger = logging.getLogger(__name__)

DEFAULT_LOCAL_COLOR = "blue"

REMOTE_COLOR_MAP: dict[str, str] = {
    "berry_red": "red",
    "red": "red",
    "orange": "orange",
    "yellow": "yellow",
    "olive_green": "green",
    "green": "green",
    "teal": "blue",
    "blue": "blue",
    "purple": "purple",
    "pink": "purple",
    "brown": "gray",
    "gray": "gray",
    "grey": "gray",
    "charcoal": "gray",
    # Legacy numeric color codes.  "36" and "37" keep their own pink and
    # brown while the names "pink" and "brown" fold into purple and gray;
    # both tables match what existing clients store.
    "30": "red",
    "31": "orange",
    "32": "yellow",
    "33": "green",
    "34": "blue",
    "35": "purple",
    "36": "pink",
    "37": "brown",
    "38": "gray",
    "39": "gray",
}


def map_remote_color_to_local(value: str | int | None) -> str:
    """Translate a Todoist color name or numeric code to a local color.

    Never raises; unknown values map to ``blue``.
    """
    if value is None or isinstance(value, bool):
        return DEFAULT_LOCAL_COLOR
    key = str(value).strip().lower()
    color = REMOTE_COLOR_MAP.get(key)
    if color is None:
        logger.debug("Unknown Todoist color %r, using %s", value, DEFAULT_LOCAL_COLOR)
        return DEFAULT_LOCAL_COLOR
    return color


def _invert_priority(priority: int) -> int:
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValueError(f"Priority must be an integer, got {priority!r}")
    if not 1 <= priority <= 4:
        raise ValueError(f"Priority must be between 1 and 4, got {priority}")
    return 5 - priority


def map_remote_priority_to_local(priority: int) -> int:
    """Todoist priority (4 = urgent) to local priority (1 = highest)."""
    return _invert_priority(priority)


def map_local_priority_to_remote(priority: int) -> int:
    """Local priority (1 = highest) to Todoist priority (4 = urgent)."""
    return _invert_priority(priority)


def format_due_date(due_date: str | None) -> str | None:
    """Reduce an ISO 8601 date or date-time to ``YYYY-MM-DD``."""
    if not due_date:
        return None
    return due_date[:10]


def build_task_payload(task: Task, remote_project_id: str) -> dict[str, Any]:
    """Build the Todoist create/update body for *task*.

    Args:
        task: Local task.
        remote_project_id: Todoist id of the owning project.

    Returns:
        Dict with ``content``, ``project_id``, ``description``,
        ``priority`` and, when the task has one, ``due_date``.
    """
    payload: dict[str, Any] = {
        "content": task.text,
        "project_id": remote_project_id,
        "description": task.notes or "",
        "priority": map_local_priority_to_remote(task.priority),
    }
    due = format_due_date(task.due_date)
    if due:
        payload["due_date"] = due
    return payload
