"""Tests for the append-only sync log."""

from __future__ import annotations

from todoist_sync_server.sync.models import (
    EntityType,
    LogAction,
    SyncDirection,
)


def _append_project(sync_log, project_id, **kwargs):
    return sync_log.append(
        EntityType.PROJECT,
        project_id,
        LogAction.CREATE,
        SyncDirection.TO_REMOTE,
        **kwargs,
    )


class TestAppend:
    def test_returns_stored_entry(self, store, sync_log):
        project = store.create_project("Inbox")

        entry = _append_project(sync_log, project.id, remote_id="r1")

        assert entry.id >= 1
        assert entry.entity_type == EntityType.PROJECT
        assert entry.entity_id == project.id
        assert entry.remote_id == "r1"
        assert entry.error_message is None
        assert entry.timestamp

    def test_error_message_is_kept(self, store, sync_log):
        project = store.create_project("Inbox")

        _append_project(sync_log, project.id, error_message="HTTP 500")

        entries, _ = sync_log.list()
        assert entries[0].error_message == "HTTP 500"

    def test_task_entry(self, store, sync_log):
        project = store.create_project("Inbox")
        task = store.create_task(project.id, "Call")

        sync_log.append(
            EntityType.TASK, task.id, LogAction.UPDATE, SyncDirection.FROM_REMOTE
        )

        entries, total = sync_log.list(entity_type="task")
        assert total == 1
        assert entries[0].entity_id == task.id
        assert entries[0].direction == SyncDirection.FROM_REMOTE


class TestList:
    def test_newest_first_with_pagination(self, store, sync_log):
        project = store.create_project("Inbox")
        ids = [_append_project(sync_log, project.id).id for _ in range(5)]

        page, total = sync_log.list(limit=2, offset=1)

        assert total == 5
        assert [e.id for e in page] == [ids[3], ids[2]]

    def test_filter_by_entity_type(self, store, sync_log):
        project = store.create_project("Inbox")
        task = store.create_task(project.id, "Call")
        _append_project(sync_log, project.id)
        sync_log.append(EntityType.TASK, task.id, LogAction.CREATE, SyncDirection.TO_REMOTE)

        entries, total = sync_log.list(entity_type=EntityType.PROJECT)

        assert total == 1
        assert entries[0].entity_type == EntityType.PROJECT

    def test_offset_past_end(self, store, sync_log):
        project = store.create_project("Inbox")
        _append_project(sync_log, project.id)

        entries, total = sync_log.list(offset=10)

        assert entries == []
        assert total == 1

    def test_recent_limits_entries(self, store, sync_log):
        project = store.create_project("Inbox")
        for _ in range(3):
            _append_project(sync_log, project.id)

        assert len(sync_log.recent(limit=2)) == 2


class TestOwnership:
    def test_deleting_project_removes_its_entries(self, store, sync_log):
        project = store.create_project("Inbox")
        task = store.create_task(project.id, "Call")
        _append_project(sync_log, project.id)
        sync_log.append(EntityType.TASK, task.id, LogAction.CREATE, SyncDirection.TO_REMOTE)

        store.delete_project(project.id)

        _, total = sync_log.list()
        assert total == 0

    def test_deleting_task_keeps_project_entries(self, store, sync_log):
        project = store.create_project("Inbox")
        task = store.create_task(project.id, "Call")
        _append_project(sync_log, project.id)
        sync_log.append(EntityType.TASK, task.id, LogAction.CREATE, SyncDirection.TO_REMOTE)

        store.delete_task(task.id)

        entries, total = sync_log.list()
        assert total == 1
        assert entries[0].entity_type == EntityType.PROJECT
