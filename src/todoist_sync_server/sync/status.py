"""Sync status summary: per-status entity counts plus recent log activity."""

from __future__ import annotations

from typing import Any

from ..store.local_store import LocalStore
from .log import RECENT_LIMIT, SyncLog


def get_sync_status_summary(
    store: LocalStore, sync_log: SyncLog, recent_limit: int = RECENT_LIMIT
) -> dict[str, Any]:
    """Return ``{projects: {status: n}, tasks: {status: n}, recent_log: [...]}``.

    Statuses with no entities are omitted from the counts.  Log entries
    are newest first and dumped to JSON-compatible dicts.
    """
    return {
        "projects": store.count_by_status("projects"),
        "tasks": store.count_by_status("tasks"),
        "recent_log": [
            entry.model_dump(mode="json")
            for entry in sync_log.recent(recent_limit)
        ],
    }
