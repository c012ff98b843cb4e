"""Pydantic models for the sync engine.

Defines the data contracts shared by the store, the engine, the sync log
and the real-time broadcaster:

- ``SyncStatus``: Per-entity replication state.
- ``SyncDirection`` / ``EntityScope``: What a sync pass covers.
- ``Project`` / ``Task``: Local entities.
- ``SyncLogEntry``: One audit row.
- ``SyncResult``: Outcome of syncing one entity.
- ``SyncOutcome``: Aggregate results for a full pass.

All models are frozen (immutable); updates go through ``model_copy``.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SyncStatus(str, Enum):
    """Replication state of a local entity."""

    SYNCED = "SYNCED"
    PENDING_UPLOAD = "PENDING_UPLOAD"
    ERROR = "ERROR"


class SyncDirection(str, Enum):
    """Direction of a sync pass or of a single logged action."""

    TO_REMOTE = "TO_REMOTE"
    FROM_REMOTE = "FROM_REMOTE"
    BIDIRECTIONAL = "BIDIRECTIONAL"


class EntityScope(str, Enum):
    """Entity kinds covered by a sync pass."""

    PROJECTS = "projects"
    TASKS = "tasks"
    ALL = "all"

    @property
    def includes_projects(self) -> bool:
        return self in (EntityScope.PROJECTS, EntityScope.ALL)

    @property
    def includes_tasks(self) -> bool:
        return self in (EntityScope.TASKS, EntityScope.ALL)


class EntityType(str, Enum):
    PROJECT = "project"
    TASK = "task"


class LogAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"


class ResultAction(str, Enum):
    """What happened to one entity during a pass."""

    CREATED = "created"
    UPDATED = "updated"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Local entities
# ---------------------------------------------------------------------------


class Project(BaseModel):
    """A local project.

    Attributes:
        id: Local identifier.
        name: Display name (1-100 characters).
        color: Local palette color name.
        remote_id: Todoist id, set once the project has been replicated.
        sync_status: Replication state.
        created_at: ISO 8601 creation timestamp.
        updated_at: ISO 8601 timestamp of the last local write.
    """

    id: str
    name: str
    color: str = "blue"
    remote_id: str | None = None
    sync_status: SyncStatus = SyncStatus.PENDING_UPLOAD
    created_at: str
    updated_at: str

    model_config = {"frozen": True}


class Task(BaseModel):
    """A local task.

    Attributes:
        id: Local identifier.
        text: Task content (1-500 characters).
        completed: Completion flag.
        priority: 1 (highest) to 4 (lowest).
        notes: Free-form notes, mirrored to the Todoist description.
        due_date: ISO 8601 due date or date-time.
        project_id: Owning local project.
        remote_id: Todoist id, set once the task has been replicated.
        sync_status: Replication state.
        metadata: Free-form JSON object kept locally.
        created_at: ISO 8601 creation timestamp.
        updated_at: ISO 8601 timestamp of the last local write.
    """

    id: str
    text: str
    completed: bool = False
    priority: int = 2
    notes: str = ""
    due_date: str | None = None
    project_id: str
    remote_id: str | None = None
    sync_status: SyncStatus = SyncStatus.PENDING_UPLOAD
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: str
    updated_at: str

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Audit and results
# ---------------------------------------------------------------------------


class SyncLogEntry(BaseModel):
    """One append-only audit row describing a sync decision."""

    id: int
    entity_type: EntityType
    entity_id: str
    action: LogAction
    direction: SyncDirection
    remote_id: str | None = None
    timestamp: str
    error_message: str | None = None

    model_config = {"frozen": True}


class SyncResult(BaseModel):
    """Result of syncing one entity.

    Attributes:
        entity_type: ``project`` or ``task``.
        entity_id: Local id of the entity.
        remote_id: Todoist id, when known.
        action: ``created``, ``updated`` or ``error``.
        direction: ``TO_REMOTE`` or ``FROM_REMOTE``.
        error: Error message if the operation failed.
    """

    entity_type: EntityType
    entity_id: str
    remote_id: str | None = None
    action: ResultAction
    direction: SyncDirection
    error: str | None = None

    model_config = {"frozen": True}

    @property
    def success(self) -> bool:
        return self.action != ResultAction.ERROR


class SyncOutcome(BaseModel):
    """Aggregate outcome of one sync pass.

    Attributes:
        direction: Requested direction of the pass.
        scope: Entity kinds covered.
        results: Individual results in processing order.
        started_at: ISO 8601 timestamp when the pass started.
        completed_at: ISO 8601 timestamp when the pass completed.
    """

    direction: SyncDirection
    scope: EntityScope = EntityScope.ALL
    results: list[SyncResult] = []
    started_at: str
    completed_at: str | None = None

    model_config = {"frozen": True}

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def created(self) -> list[SyncResult]:
        """Results where action is CREATED."""
        return [r for r in self.results if r.action == ResultAction.CREATED]

    @property
    def updated(self) -> list[SyncResult]:
        """Results where action is UPDATED."""
        return [r for r in self.results if r.action == ResultAction.UPDATED]

    @property
    def errors(self) -> list[SyncResult]:
        """Results where action is ERROR."""
        return [r for r in self.results if r.action == ResultAction.ERROR]

    @property
    def uploaded(self) -> list[SyncResult]:
        """Successful results that wrote to Todoist."""
        return [
            r
            for r in self.results
            if r.success and r.direction == SyncDirection.TO_REMOTE
        ]

    @property
    def downloaded(self) -> list[SyncResult]:
        """Successful results that wrote to the local store."""
        return [
            r
            for r in self.results
            if r.success and r.direction == SyncDirection.FROM_REMOTE
        ]

    def summary(self) -> str:
        """Format a human-readable summary of the pass.

        Returns:
            Multi-line summary string with counts by action.
        """
        lines = [
            f"Sync {self.direction.value} ({self.scope.value})",
            f"  Created:    {len(self.created)}",
            f"  Updated:    {len(self.updated)}",
            f"  Uploaded:   {len(self.uploaded)}",
            f"  Downloaded: {len(self.downloaded)}",
            f"  Errors:     {len(self.errors)}",
            f"  Total:      {self.total}",
        ]
        return "\n".join(lines)
