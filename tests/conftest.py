"""Shared pytest fixtures for todoist-sync-server tests."""

from __future__ import annotations

import dataclasses
import threading
from typing import Any

import pytest

from todoist_sync_server.config import Config
from todoist_sync_server.context import AppContext
from todoist_sync_server.core.responses import RemoteDue, RemoteProject, RemoteTask
from todoist_sync_server.store.local_store import LocalStore
from todoist_sync_server.sync.engine import SyncEngine
from todoist_sync_server.sync.log import SyncLog


def pytest_addoption(parser):
    """Add custom CLI options for test filtering."""
    parser.addoption(
        "--run-live",
        action="store_true",
        default=False,
        help="Run tests that require a live Todoist account",
    )


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "live: mark test as requiring a live Todoist account"
    )


def pytest_collection_modifyitems(config, items):
    """Skip live tests unless --run-live is passed."""
    if config.getoption("--run-live"):
        # --run-live given: do not skip live tests
        return
    skip_live = pytest.mark.skip(reason="need --run-live option to run")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


class FakeTodoistClient:
    """Minimal TodoistClient replacement for testing.

    Keeps remote projects and tasks in memory and records every call.
    ``fail`` maps a method name, or a ``(method, key)`` pair, to the
    exception that call should raise.  The key is the project name for
    ``create_project``, the task content for ``create_task`` and the
    remote id for every other mutating call.
    """

    def __init__(
        self,
        projects: list[RemoteProject] | None = None,
        tasks: list[RemoteTask] | None = None,
    ) -> None:
        self.projects: list[RemoteProject] = list(projects or [])
        self.tasks: list[RemoteTask] = list(tasks or [])
        self.calls: list[tuple] = []
        self.fail: dict[Any, Exception] = {}
        self.has_credentials = True
        self._next_id = 1000

    def _new_id(self) -> str:
        self._next_id += 1
        return str(self._next_id)

    def _maybe_fail(self, method: str, key: Any = None) -> None:
        exc = self.fail.get((method, key)) or self.fail.get(method)
        if exc is not None:
            raise exc

    def calls_to(self, method: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == method]

    @property
    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]

    # --- projects ---

    def list_projects(self) -> list[RemoteProject]:
        self.calls.append(("list_projects",))
        self._maybe_fail("list_projects")
        return list(self.projects)

    def create_project(self, name: str) -> str:
        self.calls.append(("create_project", name))
        self._maybe_fail("create_project", name)
        remote_id = self._new_id()
        self.projects.append(RemoteProject(id=remote_id, name=name))
        return remote_id

    def update_project(self, remote_id: str, name: str) -> None:
        self.calls.append(("update_project", remote_id, name))
        self._maybe_fail("update_project", remote_id)

    # --- tasks ---

    def list_tasks(self) -> list[RemoteTask]:
        self.calls.append(("list_tasks",))
        self._maybe_fail("list_tasks")
        return list(self.tasks)

    def create_task(self, fields: dict[str, Any]) -> str:
        self.calls.append(("create_task", fields))
        self._maybe_fail("create_task", fields["content"])
        remote_id = self._new_id()
        self.tasks.append(
            RemoteTask(
                id=remote_id,
                content=fields["content"],
                description=fields.get("description", ""),
                priority=fields.get("priority", 1),
                project_id=fields["project_id"],
                due=RemoteDue(date=fields["due_date"]) if "due_date" in fields else None,
            )
        )
        return remote_id

    def update_task(self, remote_id: str, fields: dict[str, Any]) -> None:
        self.calls.append(("update_task", remote_id, fields))
        self._maybe_fail("update_task", remote_id)

    def close_task(self, remote_id: str) -> None:
        self.calls.append(("close_task", remote_id))
        self._maybe_fail("close_task", remote_id)

    def reopen_task(self, remote_id: str) -> None:
        self.calls.append(("reopen_task", remote_id))
        self._maybe_fail("reopen_task", remote_id)

    def validate_connection(self) -> int:
        self.calls.append(("validate_connection",))
        self._maybe_fail("validate_connection")
        return len(self.projects)


class BlockingTodoistClient(FakeTodoistClient):
    """Fake whose ``list_projects`` waits until ``release`` is set."""

    def __init__(self) -> None:
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def list_projects(self) -> list[RemoteProject]:
        self.entered.set()
        assert self.release.wait(timeout=5), "list_projects never released"
        return super().list_projects()


@pytest.fixture
def mock_config(tmp_path):
    """Create a Config instance pointing at a temporary database."""
    return Config(
        api_token="test-token",
        api_url="https://api.todoist.example/api/v1",
        database_path=str(tmp_path / "tasks.db"),
    )


@pytest.fixture
def store(tmp_path) -> LocalStore:
    """An initialized LocalStore in a temporary directory."""
    local_store = LocalStore(tmp_path / "data" / "tasks.db")
    local_store.init()
    return local_store


@pytest.fixture
def sync_log(store) -> SyncLog:
    return SyncLog(store)


@pytest.fixture
def fake_client() -> FakeTodoistClient:
    return FakeTodoistClient()


@pytest.fixture
def engine(fake_client, store, sync_log) -> SyncEngine:
    return SyncEngine(fake_client, store, sync_log)  # type: ignore[arg-type]


@pytest.fixture
def app_context(mock_config, store, fake_client) -> AppContext:
    """AppContext with a token, wired to the in-memory Todoist fake."""
    return AppContext(mock_config, store, client_factory=lambda config: fake_client)


@pytest.fixture
def offline_context(mock_config, store) -> AppContext:
    """AppContext started without a Todoist token."""
    return AppContext(dataclasses.replace(mock_config, api_token=None), store)
