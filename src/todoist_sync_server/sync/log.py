"""Append-only audit log of sync decisions.

Each row belongs to exactly one project or task through the nullable
``project_id`` / ``task_id`` owner columns; deleting the entity deletes
its log rows.
"""

from __future__ import annotations

import logging

from ..store.local_store import LocalStore, utc_now
from .models import EntityType, LogAction, SyncDirection, SyncLogEntry

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
RECENT_LIMIT = 20


def _row_to_entry(row) -> SyncLogEntry:
    return SyncLogEntry(
        id=row["id"],
        entity_type=EntityType(row["entity_type"]),
        entity_id=row["entity_id"],
        action=LogAction(row["action"]),
        direction=SyncDirection(row["direction"]),
        remote_id=row["remote_id"],
        timestamp=row["timestamp"],
        error_message=row["error_message"],
    )


class SyncLog:
    """Writer and reader for the ``sync_logs`` table.

    Args:
        store: Store whose database holds the log.
    """

    def __init__(self, store: LocalStore) -> None:
        self.store = store

    def append(
        self,
        entity_type: EntityType,
        entity_id: str,
        action: LogAction,
        direction: SyncDirection,
        remote_id: str | None = None,
        error_message: str | None = None,
    ) -> SyncLogEntry:
        """Record one sync decision and return the stored entry."""
        entity_type = EntityType(entity_type)
        timestamp = utc_now()
        project_id = entity_id if entity_type == EntityType.PROJECT else None
        task_id = entity_id if entity_type == EntityType.TASK else None

        with self.store.connection() as conn:
            cursor = conn.execute(
                """
                INSERT INTO sync_logs
                    (entity_type, entity_id, action, direction, remote_id,
                     timestamp, error_message, project_id, task_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    entity_type.value,
                    entity_id,
                    LogAction(action).value,
                    SyncDirection(direction).value,
                    remote_id,
                    timestamp,
                    error_message,
                    project_id,
                    task_id,
                ),
            )
            conn.commit()
            entry_id = cursor.lastrowid

        return SyncLogEntry(
            id=entry_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            direction=direction,
            remote_id=remote_id,
            timestamp=timestamp,
            error_message=error_message,
        )

    def list(
        self,
        entity_type: EntityType | str | None = None,
        limit: int = DEFAULT_PAGE_SIZE,
        offset: int = 0,
    ) -> tuple[list[SyncLogEntry], int]:
        """Return one page of entries, newest first, and the total count.

        Args:
            entity_type: Restrict to ``project`` or ``task`` entries.
            limit: Page size.
            offset: Number of entries to skip.

        Returns:
            ``(entries, total)`` where *total* ignores pagination.
        """
        where = ""
        params: list = []
        if entity_type is not None:
            where = " WHERE entity_type = ?"
            params.append(EntityType(entity_type).value)

        with self.store.connection() as conn:
            total = conn.execute(
                f"SELECT COUNT(*) FROM sync_logs{where}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM sync_logs{where} ORDER BY id DESC LIMIT ? OFFSET ?",
                [*params, max(limit, 0), max(offset, 0)],
            ).fetchall()

        return [_row_to_entry(r) for r in rows], total

    def recent(self, limit: int = RECENT_LIMIT) -> list[SyncLogEntry]:
        entries, _ = self.list(limit=limit)
        return entries
