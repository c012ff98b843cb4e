"""Tests for MCP sync tool definitions and handlers.

Covers:
- Tool definitions have valid schemas
- sync_run runs a pass and returns structured counts
- sync_status and sync_logs read the store and the audit log
- sync_set_token validates and installs a token at runtime
- Errors come back as isError responses, never as exceptions
"""

from __future__ import annotations

import asyncio

import mcp.types as types
import pytest
from conftest import BlockingTodoistClient

from todoist_sync_server.context import AppContext
from todoist_sync_server.core import async_utils
from todoist_sync_server.core.async_utils import run_sync_limited
from todoist_sync_server.core.responses import RemoteProject
from todoist_sync_server.exceptions import ConfigurationError, RemoteCallError
from todoist_sync_server.mcp.tools.sync import (
    SYNC_TOOL_NAMES,
    SYNC_TOOLS,
    handle_sync_tool,
)
from todoist_sync_server.sync.models import EntityType, LogAction, SyncDirection


def _text(result: types.CallToolResult) -> str:
    return result.content[0].text


# ---------------------------------------------------------------------------
# Tool definitions
# ---------------------------------------------------------------------------


class TestToolDefinitions:
    def test_names(self):
        assert SYNC_TOOL_NAMES == {"sync_run", "sync_status", "sync_logs", "sync_set_token"}

    def test_schemas_are_objects(self):
        for tool in SYNC_TOOLS:
            assert tool.inputSchema["type"] == "object"
            assert tool.description

    def test_sync_run_requires_direction(self):
        tool = next(t for t in SYNC_TOOLS if t.name == "sync_run")
        assert tool.inputSchema["required"] == ["direction"]
        assert set(tool.inputSchema["properties"]["direction"]["enum"]) == {
            "TO_REMOTE",
            "FROM_REMOTE",
            "BIDIRECTIONAL",
        }


# ---------------------------------------------------------------------------
# sync_run
# ---------------------------------------------------------------------------


class TestSyncRun:
    async def test_pull(self, app_context, fake_client, store):
        fake_client.projects.append(RemoteProject(id="r1", name="Work"))

        result = await handle_sync_tool(
            "sync_run", {"direction": "FROM_REMOTE"}, app_context
        )

        assert not result.isError
        assert result.structuredContent["direction"] == "FROM_REMOTE"
        assert result.structuredContent["counts"]["downloaded"] == 1
        assert store.get_project_by_remote_id("r1") is not None
        assert "Downloaded from Todoist:" in _text(result)

    async def test_legacy_direction_alias(self, app_context, fake_client):
        result = await handle_sync_tool(
            "sync_run", {"direction": "to_todoist"}, app_context
        )

        assert result.structuredContent["direction"] == "TO_REMOTE"
        assert fake_client.calls == []

    async def test_entity_kinds(self, app_context, fake_client):
        await handle_sync_tool(
            "sync_run",
            {"direction": "FROM_REMOTE", "entity_kinds": "tasks"},
            app_context,
        )
        assert fake_client.call_names == ["list_tasks"]

    async def test_push_error_is_reported_not_raised(self, app_context, fake_client, store):
        store.create_project("Broken")
        fake_client.fail["create_project"] = RemoteCallError("HTTP 500", status_code=500)

        result = await handle_sync_tool(
            "sync_run", {"direction": "TO_REMOTE"}, app_context
        )

        assert not result.isError
        assert result.structuredContent["counts"]["errors"] == 1

    @pytest.mark.parametrize(
        "arguments",
        [{}, {"direction": "SIDEWAYS"}, {"direction": "TO_REMOTE", "entity_kinds": "labels"}],
    )
    async def test_invalid_arguments(self, app_context, arguments):
        result = await handle_sync_tool("sync_run", arguments, app_context)

        assert result.isError
        assert _text(result).startswith("Error (validation_error)")

    async def test_without_token(self, offline_context):
        result = await handle_sync_tool(
            "sync_run", {"direction": "BIDIRECTIONAL"}, offline_context
        )

        assert result.isError
        assert _text(result).startswith("Error (configuration_error)")

    async def test_rejected_token(self, app_context, fake_client):
        fake_client.fail["list_projects"] = ConfigurationError(
            "Todoist rejected the API token (HTTP 401)"
        )

        result = await handle_sync_tool(
            "sync_run", {"direction": "FROM_REMOTE"}, app_context
        )

        assert result.isError
        assert "HTTP 401" in _text(result)

    async def test_unexpected_exception_is_server_error(self, app_context, fake_client):
        fake_client.fail["list_projects"] = KeyError("boom")

        result = await handle_sync_tool(
            "sync_run", {"direction": "FROM_REMOTE"}, app_context
        )

        assert result.isError
        assert _text(result).startswith("Error (server_error)")

    async def test_running_pass_leaves_request_slots_free(
        self, mock_config, store, monkeypatch
    ):
        monkeypatch.setattr(async_utils, "_semaphore", asyncio.Semaphore(1))
        client = BlockingTodoistClient()
        context = AppContext(mock_config, store, client_factory=lambda config: client)

        pending = asyncio.create_task(
            handle_sync_tool("sync_run", {"direction": "FROM_REMOTE"}, context)
        )
        await asyncio.to_thread(client.entered.wait, 5)
        try:
            assert await asyncio.wait_for(run_sync_limited(lambda: 42), timeout=2) == 42
        finally:
            client.release.set()
        result = await pending

        assert not result.isError


# ---------------------------------------------------------------------------
# sync_status / sync_logs
# ---------------------------------------------------------------------------


class TestSyncStatus:
    async def test_counts_and_realtime_flag(self, app_context, store):
        store.create_project("Inbox")

        result = await handle_sync_tool("sync_status", None, app_context)

        assert result.structuredContent["projects"] == {"PENDING_UPLOAD": 1}
        assert result.structuredContent["tasks"] == {}
        assert result.structuredContent["realtime_enabled"] is True
        assert result.structuredContent["listeners"] == 0

    async def test_offline_note(self, offline_context):
        result = await handle_sync_tool("sync_status", {}, offline_context)

        assert result.structuredContent["realtime_enabled"] is False
        assert "Real-time sync disabled" in _text(result)


class TestSyncLogs:
    @pytest.fixture
    def logged(self, app_context, store):
        project = store.create_project("Inbox")
        task = store.create_task(project.id, "Call")
        log = app_context.sync_log
        for _ in range(3):
            log.append(EntityType.PROJECT, project.id, LogAction.UPDATE, SyncDirection.FROM_REMOTE)
        log.append(EntityType.TASK, task.id, LogAction.CREATE, SyncDirection.TO_REMOTE)
        return project, task

    async def test_pagination(self, app_context, logged):
        result = await handle_sync_tool(
            "sync_logs", {"limit": 2, "offset": 1}, app_context
        )

        data = result.structuredContent
        assert data["total"] == 4
        assert data["limit"] == 2
        assert data["offset"] == 1
        assert len(data["entries"]) == 2
        assert _text(result).startswith("Sync log (2-3 of 4):")

    async def test_filter_accepts_plural(self, app_context, logged):
        _, task = logged

        result = await handle_sync_tool(
            "sync_logs", {"entity_type": "tasks"}, app_context
        )

        assert result.structuredContent["total"] == 1
        assert result.structuredContent["entries"][0]["entity_id"] == task.id

    async def test_empty(self, app_context):
        result = await handle_sync_tool("sync_logs", {}, app_context)

        assert result.structuredContent["entries"] == []
        assert _text(result) == "No sync log entries (total 0)."

    @pytest.mark.parametrize(
        "arguments",
        [{"limit": 0}, {"limit": 501}, {"limit": "10"}, {"offset": -1}, {"entity_type": "label"}],
    )
    async def test_invalid_arguments(self, app_context, arguments):
        result = await handle_sync_tool("sync_logs", arguments, app_context)

        assert result.isError
        assert _text(result).startswith("Error (validation_error)")


# ---------------------------------------------------------------------------
# sync_set_token
# ---------------------------------------------------------------------------


class TestSetToken:
    async def test_validates_then_enables_sync(self, offline_context, fake_client):
        fake_client.projects.append(RemoteProject(id="r1", name="Work"))
        seen = []

        def _factory(config):
            seen.append(config.api_token)
            return fake_client

        offline_context.client_factory = _factory

        result = await handle_sync_tool(
            "sync_set_token", {"token": "fresh-token"}, offline_context
        )

        assert not result.isError
        assert result.structuredContent == {
            "configured": True,
            "verified": True,
            "project_count": 1,
        }
        assert seen == ["fresh-token", "fresh-token"]
        assert offline_context.realtime_enabled is True

    async def test_skip_validation(self, offline_context, fake_client):
        offline_context.client_factory = lambda config: fake_client

        result = await handle_sync_tool(
            "sync_set_token", {"token": "fresh-token", "validate": False}, offline_context
        )

        assert result.structuredContent["verified"] is False
        assert fake_client.calls == []
        assert offline_context.engine is not None

    async def test_rejected_token_leaves_context_unchanged(self, offline_context, fake_client):
        fake_client.fail["validate_connection"] = ConfigurationError(
            "Todoist rejected the API token (HTTP 401)"
        )
        offline_context.client_factory = lambda config: fake_client

        result = await handle_sync_tool(
            "sync_set_token", {"token": "bad-token"}, offline_context
        )

        assert result.isError
        assert _text(result).startswith("Error (configuration_error)")
        assert offline_context.engine is None
        assert offline_context.config.api_token is None

    @pytest.mark.parametrize("arguments", [{}, {"token": ""}, {"token": "  "}])
    async def test_missing_token(self, offline_context, arguments):
        result = await handle_sync_tool("sync_set_token", arguments, offline_context)

        assert result.isError
        assert _text(result).startswith("Error (validation_error): token is required")


async def test_unknown_tool_name(app_context):
    result = await handle_sync_tool("sync_everything", {}, app_context)

    assert result.isError
    assert "Unknown sync tool" in _text(result)
