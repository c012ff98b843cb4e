"""Composition root shared by the MCP tools and the real-time endpoint.

``AppContext`` owns the store and the sync log for the whole process.
The Todoist client, the engine and the broadcaster only exist once an
API token is known, either at startup or later via ``configure_remote``.
Until then local CRUD works and ``notify_local_change`` does nothing.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Callable

from .config import Config, clean_token
from .core.client import TodoistClient
from .exceptions import ConfigurationError
from .realtime.broadcaster import SyncBroadcaster
from .store.local_store import LocalStore
from .sync.engine import SyncEngine
from .sync.log import SyncLog

logger = logging.getLogger(__name__)


class AppContext:
    """Process-wide services.

    Args:
        config: Validated configuration.
        store: Initialized local store.
        sync_log: Audit log; defaults to one backed by *store*.
        client_factory: Builds the Todoist client from a config.
    """

    def __init__(
        self,
        config: Config,
        store: LocalStore,
        sync_log: SyncLog | None = None,
        client_factory: Callable[[Config], TodoistClient] = TodoistClient,
    ) -> None:
        self.config = config
        self.store = store
        self.sync_log = sync_log or SyncLog(store)
        self.client_factory = client_factory
        self.client: TodoistClient | None = None
        self.engine: SyncEngine | None = None
        self.broadcaster: SyncBroadcaster | None = None
        # Shared by every engine built here, across token changes
        self.sync_lock = threading.Lock()

        if config.has_token:
            self._build_remote()

    @property
    def realtime_enabled(self) -> bool:
        return self.broadcaster is not None

    def _build_remote(self) -> None:
        self.client = self.client_factory(self.config)
        self.engine = SyncEngine(
            self.client, self.store, self.sync_log, lock=self.sync_lock
        )
        if self.broadcaster is None:
            self.broadcaster = SyncBroadcaster(self.engine)
        else:
            # Keep connected listeners across a token change
            self.broadcaster.engine = self.engine

    def configure_remote(self, token: str) -> None:
        """Install a Todoist token and (re)build the sync services.

        Raises:
            ConfigurationError: If the token is empty or the placeholder.
        """
        cleaned = clean_token(token)
        if cleaned is None:
            raise ConfigurationError("Todoist API token cannot be empty")
        self.config = dataclasses.replace(self.config, api_token=cleaned)
        self._build_remote()
        logger.info("Todoist token configured; real-time sync enabled")

    def require_engine(self) -> SyncEngine:
        if self.engine is None:
            raise ConfigurationError("Todoist API token is not configured")
        return self.engine

    def notify_local_change(self) -> bool:
        """Tell the broadcaster that a project or task was written locally."""
        if self.broadcaster is None:
            return False
        return self.broadcaster.on_local_change()
