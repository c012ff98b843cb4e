"""Tests for the real-time change trigger and event fan-out."""

from __future__ import annotations

import asyncio
import json
import threading
from unittest.mock import AsyncMock, MagicMock

import pytest

from todoist_sync_server.core import async_utils
from todoist_sync_server.core.async_utils import run_sync_limited
from todoist_sync_server.exceptions import ConfigurationError
from todoist_sync_server.realtime.broadcaster import (
    BroadcasterState,
    EventType,
    SyncBroadcaster,
)
from todoist_sync_server.sync.models import (
    EntityScope,
    EntityType,
    ResultAction,
    SyncDirection,
    SyncOutcome,
    SyncResult,
)


def _outcome(direction=SyncDirection.BIDIRECTIONAL, results=()):
    return SyncOutcome(
        direction=direction,
        results=list(results),
        started_at="2026-01-01T00:00:00+00:00",
        completed_at="2026-01-01T00:00:01+00:00",
    )


@pytest.fixture
def mock_engine():
    engine = MagicMock()
    engine.reconcile.return_value = _outcome()
    return engine


@pytest.fixture
def broadcaster(mock_engine):
    return SyncBroadcaster(mock_engine)


def _listener():
    ws = AsyncMock()
    return ws


def _sent_types(ws) -> list[str]:
    return [call.args[0]["type"] for call in ws.send_json.call_args_list]


class TestListeners:
    async def test_register_sends_greeting(self, broadcaster):
        ws = _listener()

        await broadcaster.register_listener(ws)

        assert broadcaster.listener_count == 1
        ws.send_json.assert_awaited_once_with(
            {"type": "connected", "message": "Connected to real-time sync"}
        )

    async def test_unregister_unknown_listener_is_ignored(self, broadcaster):
        broadcaster.unregister_listener(_listener())
        assert broadcaster.listener_count == 0

    async def test_broadcast_removes_dead_connections(self, broadcaster):
        alive, dead = _listener(), _listener()
        dead.send_json.side_effect = RuntimeError("socket closed")
        broadcaster.listeners.extend([alive, dead])

        await broadcaster.broadcast({"type": "ping"})

        alive.send_json.assert_awaited_once_with({"type": "ping"})
        assert broadcaster.listeners == [alive]

    async def test_failed_greeting_drops_listener(self, broadcaster):
        ws = _listener()
        ws.send_json.side_effect = RuntimeError("gone")

        await broadcaster.register_listener(ws)

        assert broadcaster.listener_count == 0


class TestTrigger:
    async def test_no_listeners_no_pass(self, broadcaster, mock_engine):
        assert broadcaster.on_local_change() is False

        await broadcaster.wait_idle()
        mock_engine.reconcile.assert_not_called()

    async def test_local_change_runs_bidirectional_pass(self, broadcaster, mock_engine):
        ws = _listener()
        broadcaster.listeners.append(ws)
        mock_engine.reconcile.return_value = _outcome(
            results=[
                SyncResult(
                    entity_type=EntityType.PROJECT,
                    entity_id="p1",
                    remote_id="r1",
                    action=ResultAction.CREATED,
                    direction=SyncDirection.TO_REMOTE,
                )
            ]
        )

        assert broadcaster.on_local_change() is True
        await broadcaster.wait_idle()

        mock_engine.reconcile.assert_called_once_with(
            SyncDirection.BIDIRECTIONAL, EntityScope.ALL
        )
        event = ws.send_json.call_args.args[0]
        assert event["type"] == "AUTO_SYNC_COMPLETED"
        assert event["summary"]["created_or_uploaded"] == 1
        assert event["results"][0]["entity_id"] == "p1"
        assert event["timestamp"]
        assert broadcaster.state == BroadcasterState.IDLE

    async def test_pass_error_becomes_event(self, broadcaster, mock_engine):
        ws = _listener()
        broadcaster.listeners.append(ws)
        mock_engine.reconcile.side_effect = ConfigurationError(
            "Todoist rejected the API token (HTTP 401)"
        )

        broadcaster.on_local_change()
        await broadcaster.wait_idle()

        event = ws.send_json.call_args.args[0]
        assert event["type"] == "AUTO_SYNC_ERROR"
        assert "HTTP 401" in event["error"]

    async def test_triggers_during_a_pass_coalesce_into_one_more(
        self, broadcaster, mock_engine
    ):
        broadcaster.listeners.append(_listener())
        started = threading.Event()
        release = threading.Event()

        def _blocking_reconcile(direction, scope):
            started.set()
            release.wait(timeout=5)
            return _outcome()

        mock_engine.reconcile.side_effect = _blocking_reconcile

        broadcaster.on_local_change()
        await asyncio.to_thread(started.wait, 5)
        assert broadcaster.state == BroadcasterState.RUNNING

        assert broadcaster.on_local_change() is True
        assert broadcaster.on_local_change() is True
        release.set()
        await broadcaster.wait_idle()

        assert mock_engine.reconcile.call_count == 2

    async def test_close_cancels_running_pass(self, broadcaster, mock_engine):
        broadcaster.listeners.append(_listener())
        release = threading.Event()
        mock_engine.reconcile.side_effect = lambda *a: release.wait(5) and _outcome()

        broadcaster.on_local_change()
        await asyncio.sleep(0)
        await broadcaster.close()
        release.set()

        assert broadcaster.listener_count == 0
        assert broadcaster.state == BroadcasterState.IDLE


class TestForceSync:
    async def test_force_sync_pushes_only(self, broadcaster, mock_engine):
        ws = _listener()
        broadcaster.listeners.append(ws)
        mock_engine.reconcile.return_value = _outcome(SyncDirection.TO_REMOTE)

        event = await broadcaster.force_sync()

        mock_engine.reconcile.assert_called_once_with(
            SyncDirection.TO_REMOTE, EntityScope.ALL
        )
        assert event["type"] == EventType.FORCE_SYNC_COMPLETED.value
        ws.send_json.assert_awaited_once_with(event)

    async def test_force_sync_error(self, broadcaster, mock_engine):
        mock_engine.reconcile.side_effect = RuntimeError("disk full")

        event = await broadcaster.force_sync()

        assert event["type"] == "FORCE_SYNC_ERROR"
        assert event["error"] == "disk full"

    async def test_running_pass_leaves_request_slots_free(
        self, broadcaster, mock_engine, monkeypatch
    ):
        monkeypatch.setattr(async_utils, "_semaphore", asyncio.Semaphore(1))
        started = threading.Event()
        release = threading.Event()

        def _blocking_reconcile(direction, scope):
            started.set()
            release.wait(timeout=5)
            return _outcome(direction)

        mock_engine.reconcile.side_effect = _blocking_reconcile

        pending = asyncio.create_task(broadcaster.force_sync())
        await asyncio.to_thread(started.wait, 5)
        try:
            assert await asyncio.wait_for(run_sync_limited(lambda: 42), timeout=2) == 42
        finally:
            release.set()
        event = await pending

        assert event["type"] == EventType.FORCE_SYNC_COMPLETED.value


class TestHandleMessage:
    async def test_invalid_json(self, broadcaster):
        ws = _listener()

        await broadcaster.handle_message(ws, "{not json")

        ws.send_json.assert_awaited_once_with(
            {"type": "error", "message": "Invalid message format"}
        )

    @pytest.mark.parametrize("message", ['{"type": "DANCE"}', "[1, 2]", '"FORCE_SYNC"'])
    async def test_unknown_type(self, broadcaster, message):
        ws = _listener()

        await broadcaster.handle_message(ws, message)

        ws.send_json.assert_awaited_once_with(
            {"type": "error", "message": "Unknown message type"}
        )

    async def test_force_sync_message(self, broadcaster, mock_engine):
        ws = _listener()
        broadcaster.listeners.append(ws)

        await broadcaster.handle_message(ws, json.dumps({"type": "FORCE_SYNC"}))

        assert _sent_types(ws) == ["FORCE_SYNC_COMPLETED"]
        mock_engine.reconcile.assert_called_once()

    async def test_stop_auto_sync_is_broadcast(self, broadcaster):
        sender, other = _listener(), _listener()
        broadcaster.listeners.extend([sender, other])

        await broadcaster.handle_message(sender, '{"type": "STOP_AUTO_SYNC"}')

        assert _sent_types(sender) == ["AUTO_SYNC_STOPPED"]
        assert _sent_types(other) == ["AUTO_SYNC_STOPPED"]

    async def test_start_auto_sync_sends_nothing(self, broadcaster, mock_engine):
        ws = _listener()

        await broadcaster.handle_message(ws, '{"type": "START_AUTO_SYNC"}')

        ws.send_json.assert_not_awaited()
        mock_engine.reconcile.assert_not_called()


class TestWithRealEngine:
    async def test_local_project_is_uploaded_and_announced(
        self, engine, store, fake_client
    ):
        broadcaster = SyncBroadcaster(engine)
        ws = _listener()
        broadcaster.listeners.append(ws)
        store.create_project("Inbox")

        broadcaster.on_local_change()
        await broadcaster.wait_idle()

        assert fake_client.call_names[:3] == [
            "create_project",
            "list_projects",
            "list_tasks",
        ]
        event = ws.send_json.call_args.args[0]
        assert event["type"] == "AUTO_SYNC_COMPLETED"
        assert event["summary"]["uploaded"] == 1
        assert event["summary"]["created_or_uploaded"] == 1
        assert event["summary"]["errors"] == 0
