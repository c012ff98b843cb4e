"""SQLite-backed store for local projects and tasks.

Every public method opens its own connection and commits its own
transaction, so a single upsert is atomic and the store can be shared
between the event loop's worker threads.

Local writes (``create_*``, ``update_*``, ``toggle_task``) always mark
the entity ``PENDING_UPLOAD``.  Pulls write whole rows through
``save_project`` / ``save_task``.  Pushes only touch ``remote_id`` and
``sync_status`` through ``mark_synced`` / ``mark_error``, so an edit or
delete that lands while a Todoist call is in flight survives it.
"""

from __future__ import annotations

import json
import logging
import sqlite3
import uuid
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from ..exceptions import NotFoundError
from ..sync.models import Project, SyncStatus, Task
from .database import get_connection, init_database

logger = logging.getLogger(__name__)

_TASK_FIELDS = frozenset(
    {"text", "completed", "priority", "notes", "due_date", "project_id", "metadata"}
)


def utc_now() -> str:
    """Current time as an ISO 8601 string."""
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return uuid.uuid4().hex


def _row_to_project(row: sqlite3.Row) -> Project:
    return Project(
        id=row["id"],
        name=row["name"],
        color=row["color"],
        remote_id=row["remote_id"],
        sync_status=SyncStatus(row["sync_status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        text=row["text"],
        completed=bool(row["completed"]),
        priority=row["priority"],
        notes=row["notes"],
        due_date=row["due_date"],
        project_id=row["project_id"],
        remote_id=row["remote_id"],
        sync_status=SyncStatus(row["sync_status"]),
        metadata=json.loads(row["metadata"] or "{}"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _status_clause(statuses: Iterable[SyncStatus] | None) -> tuple[str, list]:
    if not statuses:
        return "", []
    values = [SyncStatus(s).value for s in statuses]
    placeholders = ", ".join("?" for _ in values)
    return f"sync_status IN ({placeholders})", values


def _check_table(table: str) -> None:
    if table not in ("projects", "tasks"):
        raise ValueError(f"Unknown table: {table}")


class LocalStore:
    """Local replica of projects and tasks.

    Args:
        db_path: SQLite database file.  Created (with parents) by ``init()``.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def init(self) -> None:
        """Create the schema if needed."""
        init_database(self.db_path)

    def connection(self):
        """Open a connection to the underlying database (context manager)."""
        return get_connection(self.db_path)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def get_project(self, project_id: str) -> Project | None:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE id = ?", (project_id,)
            ).fetchone()
        return _row_to_project(row) if row else None

    def get_project_by_remote_id(self, remote_id: str) -> Project | None:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM projects WHERE remote_id = ?", (remote_id,)
            ).fetchone()
        return _row_to_project(row) if row else None

    def require_project(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project

    def list_projects(
        self, statuses: Iterable[SyncStatus] | None = None
    ) -> list[Project]:
        """List projects, optionally restricted to some sync statuses."""
        clause, params = _status_clause(statuses)
        sql = "SELECT * FROM projects"
        if clause:
            sql += f" WHERE {clause}"
        sql += " ORDER BY created_at, id"
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_project(r) for r in rows]

    def save_project(self, project: Project) -> Project:
        """Insert or replace *project* by local id."""
        with self.connection() as conn:
            conn.execute(
                """
                INSERT INTO projects
                    (id, name, color, remote_id, sync_status, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (id) DO UPDATE SET
                    name = excluded.name,
                    color = excluded.color,
                    remote_id = excluded.remote_id,
                    sync_status = excluded.sync_status,
                    updated_at = excluded.updated_at
                """,
                (
                    project.id,
                    project.name,
                    project.color,
                    project.remote_id,
                    project.sync_status.value,
                    project.created_at,
                    project.updated_at,
                ),
            )
            conn.commit()
        return project

    def create_project(self, name: str, color: str = "blue") -> Project:
        now = utc_now()
        project = Project(
            id=new_id(),
            name=name,
            color=color,
            sync_status=SyncStatus.PENDING_UPLOAD,
            created_at=now,
            updated_at=now,
        )
        logger.debug("Creating project %s (%s)", project.id, name)
        return self.save_project(project)

    def update_project(
        self,
        project_id: str,
        name: str | None = None,
        color: str | None = None,
    ) -> Project:
        """Apply a local edit and mark the project for upload.

        Raises:
            NotFoundError: If the project does not exist.
        """
        project = self.require_project(project_id)
        changes: dict[str, Any] = {
            "sync_status": SyncStatus.PENDING_UPLOAD,
            "updated_at": utc_now(),
        }
        if name is not None:
            changes["name"] = name
        if color is not None:
            changes["color"] = color
        return self.save_project(project.model_copy(update=changes))

    def delete_project(self, project_id: str) -> None:
        """Delete a project together with its tasks and log rows."""
        with self.connection() as conn:
            cursor = conn.execute(
                "DELETE FROM projects WHERE id = ?", (project_id,)
            )
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError("project", project_id)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Task | None:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
        return _row_to_task(row) if row else None

    def get_task_by_remote_id(self, remote_id: str) -> Task | None:
        with self.connection() as conn:
            row = conn.execute(
                "SELECT * FROM tasks WHERE remote_id = ?", (remote_id,)
            ).fetchone()
        return _row_to_task(row) if row else None

    def require_task(self, task_id: str) -> Task:
        task = self.get_task(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    def list_tasks(
        self,
        project_id: str | None = None,
        statuses: Iterable[SyncStatus] | None = None,
    ) -> list[Task]:
        """List tasks, optionally for one project and/or some statuses."""
        clauses: list[str] = []
        params: list[Any] = []
        if project_id is not None:
            clauses.append("project_id = ?")
            params.append(project_id)
        status_clause, status_params = _status_clause(statuses)
        if status_clause:
            clauses.append(status_clause)
            params.extend(status_params)

        sql = "SELECT * FROM tasks"
        if clauses:
            sql += " WHERE " + " AND ".join(clauses)
        sql += " ORDER BY created_at, id"
        with self.connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [_row_to_task(r) for r in rows]

    def save_task(self, task: Task) -> Task:
        """Insert or replace *task* by local id.

        Raises:
            NotFoundError: If ``task.project_id`` does not reference an
                existing project.
        """
        try:
            with self.connection() as conn:
                conn.execute(
                    """
                    INSERT INTO tasks
                        (id, text, completed, priority, notes, due_date,
                         project_id, remote_id, sync_status, metadata,
                         created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT (id) DO UPDATE SET
                        text = excluded.text,
                        completed = excluded.completed,
                        priority = excluded.priority,
                        notes = excluded.notes,
                        due_date = excluded.due_date,
                        project_id = excluded.project_id,
                        remote_id = excluded.remote_id,
                        sync_status = excluded.sync_status,
                        metadata = excluded.metadata,
                        updated_at = excluded.updated_at
                    """,
                    (
                        task.id,
                        task.text,
                        int(task.completed),
                        task.priority,
                        task.notes,
                        task.due_date,
                        task.project_id,
                        task.remote_id,
                        task.sync_status.value,
                        json.dumps(task.metadata),
                        task.created_at,
                        task.updated_at,
                    ),
                )
                conn.commit()
        except sqlite3.IntegrityError as exc:
            if "FOREIGN KEY" in str(exc):
                raise NotFoundError("project", task.project_id) from exc
            raise
        return task

    def create_task(
        self,
        project_id: str,
        text: str,
        priority: int = 2,
        notes: str = "",
        due_date: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Task:
        """Create a task in an existing project.

        Raises:
            NotFoundError: If the project does not exist.
        """
        self.require_project(project_id)
        now = utc_now()
        task = Task(
            id=new_id(),
            text=text,
            priority=priority,
            notes=notes,
            due_date=due_date,
            project_id=project_id,
            metadata=metadata or {},
            sync_status=SyncStatus.PENDING_UPLOAD,
            created_at=now,
            updated_at=now,
        )
        logger.debug("Creating task %s in project %s", task.id, project_id)
        return self.save_task(task)

    def update_task(self, task_id: str, **fields: Any) -> Task:
        """Apply a local edit and mark the task for upload.

        Args:
            task_id: Local task id.
            **fields: Any of ``text``, ``completed``, ``priority``,
                ``notes``, ``due_date``, ``project_id``, ``metadata``.

        Raises:
            NotFoundError: If the task (or a new ``project_id``) does not exist.
            ValueError: On an unknown field name.
        """
        unknown = set(fields) - _TASK_FIELDS
        if unknown:
            raise ValueError(f"Unknown task fields: {', '.join(sorted(unknown))}")

        task = self.require_task(task_id)
        if "project_id" in fields:
            self.require_project(fields["project_id"])
        changes = dict(fields)
        changes["sync_status"] = SyncStatus.PENDING_UPLOAD
        changes["updated_at"] = utc_now()
        return self.save_task(task.model_copy(update=changes))

    def toggle_task(self, task_id: str) -> Task:
        """Flip the completion flag of a task."""
        task = self.require_task(task_id)
        return self.update_task(task_id, completed=not task.completed)

    def delete_task(self, task_id: str) -> None:
        with self.connection() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        if cursor.rowcount == 0:
            raise NotFoundError("task", task_id)

    # ------------------------------------------------------------------
    # Status
    # ------------------------------------------------------------------

    def mark_synced(
        self,
        table: str,
        entity_id: str,
        remote_id: str,
        expected_updated_at: str,
    ) -> SyncStatus | None:
        """Record a successful push without touching user fields.

        The row becomes ``SYNCED`` only while its ``updated_at`` still
        equals *expected_updated_at*.  A row edited during the push keeps
        ``PENDING_UPLOAD`` and only gains the remote id.

        Returns:
            The resulting status, or ``None`` if the row no longer exists.
        """
        return self._mark_pushed(
            table, entity_id, SyncStatus.SYNCED, expected_updated_at, remote_id
        )

    def mark_error(
        self,
        table: str,
        entity_id: str,
        expected_updated_at: str,
        remote_id: str | None = None,
    ) -> SyncStatus | None:
        """Record a failed push; same rules as ``mark_synced``.

        A *remote_id* obtained before the failure is stored either way.
        """
        return self._mark_pushed(
            table, entity_id, SyncStatus.ERROR, expected_updated_at, remote_id
        )

    def _mark_pushed(
        self,
        table: str,
        entity_id: str,
        status: SyncStatus,
        expected_updated_at: str,
        remote_id: str | None,
    ) -> SyncStatus | None:
        _check_table(table)
        with self.connection() as conn:
            conn.execute(
                f"""
                UPDATE {table} SET
                    remote_id = COALESCE(?, remote_id),
                    sync_status = CASE
                        WHEN updated_at = ? THEN ? ELSE sync_status
                    END
                WHERE id = ?
                """,
                (remote_id, expected_updated_at, status.value, entity_id),
            )
            row = conn.execute(
                f"SELECT sync_status FROM {table} WHERE id = ?", (entity_id,)
            ).fetchone()
            conn.commit()
        return SyncStatus(row["sync_status"]) if row else None

    def count_by_status(self, table: str) -> dict[str, int]:
        """Count rows of ``projects`` or ``tasks`` grouped by sync status."""
        _check_table(table)
        with self.connection() as conn:
            rows = conn.execute(
                f"SELECT sync_status, COUNT(*) AS n FROM {table} GROUP BY sync_status"
            ).fetchall()
        return {row["sync_status"]: row["n"] for row in rows}
