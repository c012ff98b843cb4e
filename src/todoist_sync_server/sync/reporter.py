"""Sync outcome formatting functions.

Provides human-readable and machine-readable output for sync operations:

- ``format_sync_outcome`` -- full post-sync summary.
- ``format_status_summary`` -- per-status counts and recent log lines.
- ``outcome_to_json`` -- structured dict for MCP tool output.
- ``event_summary`` -- the counts carried by real-time events.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .models import SyncLogEntry, SyncOutcome

from .models import ResultAction, SyncDirection

# ------------------------------------------------------------------
# Human-readable report
# ------------------------------------------------------------------


def format_sync_outcome(outcome: SyncOutcome) -> str:
    """Format a complete sync outcome as human-readable text.

    Sections are only included when they contain at least one result.

    Args:
        outcome: The completed sync outcome.

    Returns:
        Multi-line formatted string.
    """
    lines: list[str] = []

    lines.append(
        f"Sync {outcome.direction.value} ({outcome.scope.value})"
    )
    lines.append(f"Started: {outcome.started_at}")
    if outcome.completed_at:
        lines.append(f"Completed: {outcome.completed_at}")
    lines.append("")

    lines.append(
        f"Synced {outcome.total} entities: "
        f"{len(outcome.created)} created, {len(outcome.updated)} updated, "
        f"{len(outcome.uploaded)} uploaded, "
        f"{len(outcome.downloaded)} downloaded, "
        f"{len(outcome.errors)} errors"
    )
    lines.append("")

    if outcome.uploaded:
        lines.append("Uploaded to Todoist:")
        for r in outcome.uploaded:
            lines.append(
                f"  [{r.action.value}] {r.entity_type.value} {r.entity_id} -> {r.remote_id}"
            )
        lines.append("")

    if outcome.downloaded:
        lines.append("Downloaded from Todoist:")
        for r in outcome.downloaded:
            lines.append(
                f"  [{r.action.value}] {r.entity_type.value} {r.remote_id} -> {r.entity_id}"
            )
        lines.append("")

    if outcome.errors:
        lines.append("Errors:")
        for r in outcome.errors:
            lines.append(f"  {r.entity_type.value} {r.entity_id}: {r.error}")
        lines.append("")

    if outcome.total == 0:
        lines.append("Nothing to sync.")

    return "\n".join(lines).rstrip()


def format_status_summary(summary: dict[str, Any]) -> str:
    """Format the output of ``get_sync_status_summary`` as text."""
    lines: list[str] = []
    for kind in ("projects", "tasks"):
        counts = summary.get(kind, {})
        if counts:
            parts = ", ".join(
                f"{status}: {count}" for status, count in sorted(counts.items())
            )
        else:
            parts = "none"
        lines.append(f"{kind.capitalize()}: {parts}")

    recent = summary.get("recent_log", [])
    if recent:
        lines.append("")
        lines.append("Recent activity:")
        for entry in recent:
            lines.append(f"  {format_log_entry(entry)}")

    return "\n".join(lines)


def format_log_entry(entry: SyncLogEntry | dict) -> str:
    """One-line rendering of a sync log entry (model or dumped dict)."""
    data = entry if isinstance(entry, dict) else entry.model_dump(mode="json")
    line = (
        f"{data['timestamp']} {data['action']} {data['direction']} "
        f"{data['entity_type']} {data['entity_id']}"
    )
    if data.get("remote_id"):
        line += f" ({data['remote_id']})"
    if data.get("error_message"):
        line += f" ERROR: {data['error_message']}"
    return line


# ------------------------------------------------------------------
# JSON output
# ------------------------------------------------------------------


def event_summary(outcome: SyncOutcome) -> dict[str, int]:
    """Counts broadcast with every sync completion event.

    ``created_or_uploaded`` counts entities created on either side plus
    updates written to Todoist.
    """
    uploaded_updates = [
        r
        for r in outcome.uploaded
        if r.action == ResultAction.UPDATED
        and r.direction == SyncDirection.TO_REMOTE
    ]
    return {
        "total": outcome.total,
        "created_or_uploaded": len(outcome.created) + len(uploaded_updates),
        "errors": len(outcome.errors),
        "uploaded": len(outcome.uploaded),
        "downloaded": len(outcome.downloaded),
    }


def outcome_to_json(outcome: SyncOutcome) -> dict:
    """Convert a sync outcome to a structured dict for JSON serialisation.

    Suitable for MCP ``structuredContent`` output and WebSocket events.

    Args:
        outcome: The sync outcome.

    Returns:
        Dict with direction, counts, and per-result details.
    """
    results_list = []
    for r in outcome.results:
        entry: dict = {
            "entity_type": r.entity_type.value,
            "entity_id": r.entity_id,
            "remote_id": r.remote_id,
            "action": r.action.value,
            "direction": r.direction.value,
        }
        if r.error:
            entry["error"] = r.error
        results_list.append(entry)

    return {
        "direction": outcome.direction.value,
        "entity_kinds": outcome.scope.value,
        "started_at": outcome.started_at,
        "completed_at": outcome.completed_at,
        "counts": {
            **event_summary(outcome),
            "created": len(outcome.created),
            "updated": len(outcome.updated),
        },
        "results": results_list,
    }
