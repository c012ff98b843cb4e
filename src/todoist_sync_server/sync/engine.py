"""Core sync engine that reconciles the local store with Todoist.

The ``SyncEngine`` ties together the Todoist client, the local store,
the mappers and the sync log.  A pass in each direction works like this:

Pull (``FROM_REMOTE``):
    1. List remote projects; create or update the local project matched
       by remote id, writing it ``SYNCED``.
    2. List remote tasks; resolve the owning local project by its remote
       id (skip the task when there is none) and create or update the
       local task, writing it ``SYNCED``.

Push (``TO_REMOTE``):
    1. Every project that is ``PENDING_UPLOAD`` or ``ERROR`` is created on
       or updated in Todoist.
    2. Then every such task whose owning project is already ``SYNCED``
       with a remote id, followed by one close/reopen call matching the
       local completion flag.

    Push writes only ``remote_id`` and ``sync_status``.  An entity edited
    during its Todoist call stays ``PENDING_UPLOAD`` for the next pass;
    one deleted meanwhile is left deleted.

Error handling is per-entity: a ``RemoteCallError`` marks the entity
``ERROR``, is logged and the pass continues.  ``ConfigurationError`` and
``MalformedResponseError`` abort the pass; rows already written stay.
Local entities are never deleted by a pass.
"""

from __future__ import annotations

import logging
import threading

from ..core.client import TodoistClient
from ..core.responses import RemoteProject, RemoteTask
from ..exceptions import ConfigurationError, NotFoundError, RemoteCallError
from ..store.local_store import LocalStore, new_id, utc_now
from .log import SyncLog
from .mapper import (
    build_task_payload,
    map_remote_color_to_local,
    map_remote_priority_to_local,
)
from .models import (
    EntityScope,
    EntityType,
    LogAction,
    Project,
    ResultAction,
    SyncDirection,
    SyncOutcome,
    SyncResult,
    SyncStatus,
    Task,
)

logger = logging.getLogger(__name__)

PUSHABLE_STATUSES = (SyncStatus.PENDING_UPLOAD, SyncStatus.ERROR)


class SyncEngine:
    """Reconcile the local store with Todoist.

    Args:
        client: Todoist client used for all remote calls.
        store: Local project/task store.
        sync_log: Audit log receiving one entry per decision.
        lock: Lock serializing passes.  Engines that share a store must
            share it; a private lock is created when omitted.
    """

    def __init__(
        self,
        client: TodoistClient,
        store: LocalStore,
        sync_log: SyncLog,
        lock: threading.Lock | None = None,
    ) -> None:
        self.client = client
        self.store = store
        self.sync_log = sync_log
        self._lock = lock or threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    # ------------------------------------------------------------------
    # Main entry point
    # ------------------------------------------------------------------

    def reconcile(
        self,
        direction: SyncDirection | str,
        entity_kinds: EntityScope | str = EntityScope.ALL,
    ) -> SyncOutcome:
        """Run one sync pass.

        Only one pass runs at a time; a concurrent call waits for the
        running one to finish.

        Args:
            direction: ``TO_REMOTE`` pushes, ``FROM_REMOTE`` pulls,
                ``BIDIRECTIONAL`` pushes and then pulls.
            entity_kinds: ``projects``, ``tasks`` or ``all``; restricts
                the pull phase.  Push always covers both kinds.

        Returns:
            A ``SyncOutcome`` with every per-entity result.

        Raises:
            ConfigurationError: Missing or rejected Todoist token.
            MalformedResponseError: Todoist returned an unexpected listing.
        """
        direction = SyncDirection(direction)
        scope = EntityScope(entity_kinds)

        if not self.client.has_credentials:
            raise ConfigurationError("Todoist API token is not configured")

        with self._lock:
            started_at = utc_now()
            logger.info("Sync pass started: %s (%s)", direction.value, scope.value)
            results: list[SyncResult] = []

            if direction in (SyncDirection.TO_REMOTE, SyncDirection.BIDIRECTIONAL):
                results.extend(self.push())

            if direction in (SyncDirection.FROM_REMOTE, SyncDirection.BIDIRECTIONAL):
                if scope.includes_projects:
                    results.extend(self.pull_projects())
                if scope.includes_tasks:
                    results.extend(self.pull_tasks())

            outcome = SyncOutcome(
                direction=direction,
                scope=scope,
                results=results,
                started_at=started_at,
                completed_at=utc_now(),
            )
            logger.info(
                "Sync pass finished: %d results, %d errors",
                outcome.total,
                len(outcome.errors),
            )
            return outcome

    # ------------------------------------------------------------------
    # Pull
    # ------------------------------------------------------------------

    def pull_projects(self) -> list[SyncResult]:
        """Create or update local projects from Todoist."""
        results: list[SyncResult] = []
        for remote in self.client.list_projects():
            results.append(self._pull_project(remote))
        return results

    def _pull_project(self, remote: RemoteProject) -> SyncResult:
        now = utc_now()
        existing = self.store.get_project_by_remote_id(remote.id)

        if existing is not None:
            project = existing.model_copy(
                update={
                    "name": remote.name,
                    "sync_status": SyncStatus.SYNCED,
                    "updated_at": now,
                }
            )
            log_action, result_action = LogAction.UPDATE, ResultAction.UPDATED
        else:
            project = Project(
                id=new_id(),
                name=remote.name,
                color=map_remote_color_to_local(remote.color),
                remote_id=remote.id,
                sync_status=SyncStatus.SYNCED,
                created_at=now,
                updated_at=now,
            )
            log_action, result_action = LogAction.CREATE, ResultAction.CREATED

        self.store.save_project(project)
        self.sync_log.append(
            EntityType.PROJECT,
            project.id,
            log_action,
            SyncDirection.FROM_REMOTE,
            remote_id=remote.id,
        )
        return SyncResult(
            entity_type=EntityType.PROJECT,
            entity_id=project.id,
            remote_id=remote.id,
            action=result_action,
            direction=SyncDirection.FROM_REMOTE,
        )

    def pull_tasks(self) -> list[SyncResult]:
        """Create or update local tasks from Todoist.

        Tasks whose remote project has no local counterpart are skipped
        without a log entry or result.
        """
        results: list[SyncResult] = []
        for remote in self.client.list_tasks():
            project = self.store.get_project_by_remote_id(remote.project_id)
            if project is None:
                logger.warning(
                    "Skipping Todoist task %s: project %s is not known locally",
                    remote.id,
                    remote.project_id,
                )
                continue
            try:
                results.append(self._pull_task(remote, project))
            except NotFoundError:
                logger.warning(
                    "Skipping Todoist task %s: project %s was deleted locally",
                    remote.id,
                    project.id,
                )
        return results

    def _pull_task(self, remote: RemoteTask, project: Project) -> SyncResult:
        now = utc_now()
        fields = {
            "text": remote.content,
            "completed": remote.completed,
            "priority": map_remote_priority_to_local(remote.priority),
            "notes": remote.description or "",
            "due_date": remote.due.value if remote.due else None,
            "project_id": project.id,
            "sync_status": SyncStatus.SYNCED,
            "updated_at": now,
        }
        existing = self.store.get_task_by_remote_id(remote.id)

        if existing is not None:
            task = existing.model_copy(update=fields)
            log_action, result_action = LogAction.UPDATE, ResultAction.UPDATED
        else:
            task = Task(
                id=new_id(),
                remote_id=remote.id,
                created_at=now,
                **fields,
            )
            log_action, result_action = LogAction.CREATE, ResultAction.CREATED

        self.store.save_task(task)
        self.sync_log.append(
            EntityType.TASK,
            task.id,
            log_action,
            SyncDirection.FROM_REMOTE,
            remote_id=remote.id,
        )
        return SyncResult(
            entity_type=EntityType.TASK,
            entity_id=task.id,
            remote_id=remote.id,
            action=result_action,
            direction=SyncDirection.FROM_REMOTE,
        )

    # ------------------------------------------------------------------
    # Push
    # ------------------------------------------------------------------

    def push(self) -> list[SyncResult]:
        """Upload pending projects, then pending tasks."""
        results: list[SyncResult] = []
        for project in self.store.list_projects(statuses=PUSHABLE_STATUSES):
            results.append(self._push_project(project))

        for task in self.store.list_tasks(statuses=PUSHABLE_STATUSES):
            # Re-read: the project phase above may have just synced it
            project = self.store.get_project(task.project_id)
            if (
                project is None
                or project.remote_id is None
                or project.sync_status != SyncStatus.SYNCED
            ):
                logger.info(
                    "Skipping task %s: project %s is not synced yet",
                    task.id,
                    task.project_id,
                )
                continue
            results.append(self._push_task(task, project.remote_id))
        return results

    def _push_project(self, project: Project) -> SyncResult:
        action = LogAction.UPDATE if project.remote_id else LogAction.CREATE
        try:
            if project.remote_id is None:
                remote_id = self.client.create_project(project.name)
            else:
                remote_id = project.remote_id
                self.client.update_project(remote_id, project.name)
        except RemoteCallError as exc:
            return self._record_push_error(EntityType.PROJECT, project, action, exc)

        status = self.store.mark_synced(
            "projects", project.id, remote_id, project.updated_at
        )
        return self._record_push_success(
            EntityType.PROJECT, project.id, action, remote_id, status
        )

    def _push_task(self, task: Task, remote_project_id: str) -> SyncResult:
        action = LogAction.UPDATE if task.remote_id else LogAction.CREATE
        payload = build_task_payload(task, remote_project_id)
        remote_id = task.remote_id
        try:
            if remote_id is None:
                remote_id = self.client.create_task(payload)
                if task.completed:
                    self.client.close_task(remote_id)
            else:
                self.client.update_task(remote_id, payload)
                if task.completed:
                    self.client.close_task(remote_id)
                else:
                    self.client.reopen_task(remote_id)
        except RemoteCallError as exc:
            # Keep a remote id obtained before a failed close call
            return self._record_push_error(
                EntityType.TASK, task, action, exc, new_remote_id=remote_id
            )

        status = self.store.mark_synced("tasks", task.id, remote_id, task.updated_at)
        return self._record_push_success(
            EntityType.TASK, task.id, action, remote_id, status
        )

    def _record_push_success(
        self,
        entity_type: EntityType,
        entity_id: str,
        action: LogAction,
        remote_id: str,
        status: SyncStatus | None,
    ) -> SyncResult:
        if status is None:
            logger.info(
                "%s %s was deleted locally during push",
                entity_type.value.capitalize(),
                entity_id,
            )
        else:
            if status != SyncStatus.SYNCED:
                logger.info(
                    "%s %s changed locally during push, left %s",
                    entity_type.value.capitalize(),
                    entity_id,
                    status.value,
                )
            self.sync_log.append(
                entity_type,
                entity_id,
                action,
                SyncDirection.TO_REMOTE,
                remote_id=remote_id,
            )
        return SyncResult(
            entity_type=entity_type,
            entity_id=entity_id,
            remote_id=remote_id,
            action=(
                ResultAction.CREATED
                if action == LogAction.CREATE
                else ResultAction.UPDATED
            ),
            direction=SyncDirection.TO_REMOTE,
        )

    def _record_push_error(
        self,
        entity_type: EntityType,
        entity: Project | Task,
        action: LogAction,
        exc: RemoteCallError,
        new_remote_id: str | None = None,
    ) -> SyncResult:
        logger.error(
            "Failed to push %s %s: %s", entity_type.value, entity.id, exc
        )
        remote_id = new_remote_id or entity.remote_id
        table = "projects" if entity_type == EntityType.PROJECT else "tasks"
        status = self.store.mark_error(
            table, entity.id, entity.updated_at, remote_id=remote_id
        )
        if status is not None:
            self.sync_log.append(
                entity_type,
                entity.id,
                action,
                SyncDirection.TO_REMOTE,
                remote_id=remote_id,
                error_message=str(exc),
            )
        return SyncResult(
            entity_type=entity_type,
            entity_id=entity.id,
            remote_id=remote_id,
            action=ResultAction.ERROR,
            direction=SyncDirection.TO_REMOTE,
            error=str(exc),
        )
