"""Change trigger and event fan-out for real-time sync listeners.

``SyncBroadcaster`` owns the set of connected WebSocket listeners.  After
every local write the tool layer calls ``on_local_change()``; when at
least one listener is connected this schedules a background
``BIDIRECTIONAL`` pass and broadcasts its outcome to every listener.

Triggers that arrive while a pass is running are coalesced: they set a
single pending flag and exactly one extra pass runs afterwards.  Errors
are turned into ``*_ERROR`` events and never propagate to the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
from enum import Enum
from typing import Any

from fastapi import WebSocket

from ..core.async_utils import run_sync
from ..store.local_store import utc_now
from ..sync.engine import SyncEngine
from ..sync.models import EntityScope, SyncDirection
from ..sync.reporter import event_summary, outcome_to_json

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    CONNECTED = "connected"
    ERROR = "error"
    AUTO_SYNC_COMPLETED = "AUTO_SYNC_COMPLETED"
    AUTO_SYNC_ERROR = "AUTO_SYNC_ERROR"
    AUTO_SYNC_STOPPED = "AUTO_SYNC_STOPPED"
    FORCE_SYNC_COMPLETED = "FORCE_SYNC_COMPLETED"
    FORCE_SYNC_ERROR = "FORCE_SYNC_ERROR"


class BroadcasterState(str, Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"


class SyncBroadcaster:
    """Manages real-time listeners and launches sync passes on local changes.

    Args:
        engine: Engine used for every pass.
    """

    def __init__(self, engine: SyncEngine) -> None:
        self.engine = engine
        self.listeners: list[WebSocket] = []
        self._active_passes = 0
        self._pending = False
        self._auto_task: asyncio.Task | None = None

    @property
    def state(self) -> BroadcasterState:
        if self._active_passes or self._auto_sync_active:
            return BroadcasterState.RUNNING
        return BroadcasterState.IDLE

    @property
    def listener_count(self) -> int:
        return len(self.listeners)

    @property
    def _auto_sync_active(self) -> bool:
        return self._auto_task is not None and not self._auto_task.done()

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    async def register_listener(self, ws: WebSocket) -> None:
        """Add an accepted WebSocket and greet it."""
        self.listeners.append(ws)
        logger.info("Listener connected (%d total)", len(self.listeners))
        await self.send(
            ws,
            {
                "type": EventType.CONNECTED.value,
                "message": "Connected to real-time sync",
            },
        )

    def unregister_listener(self, ws: WebSocket) -> None:
        if ws in self.listeners:
            self.listeners.remove(ws)
            logger.info("Listener disconnected (%d left)", len(self.listeners))

    async def send(self, ws: WebSocket, event: dict[str, Any]) -> None:
        """Send an event to one listener, dropping it if the send fails."""
        try:
            await ws.send_json(event)
        except Exception as exc:
            logger.debug("Dropping listener after failed send: %s", exc)
            self.unregister_listener(ws)

    async def broadcast(self, event: dict[str, Any]) -> None:
        """Send an event to all connected listeners."""
        dead_connections: list[WebSocket] = []

        for conn in list(self.listeners):
            try:
                await conn.send_json(event)
            except Exception:
                dead_connections.append(conn)

        for conn in dead_connections:
            self.unregister_listener(conn)

    # ------------------------------------------------------------------
    # Trigger
    # ------------------------------------------------------------------

    def on_local_change(self) -> bool:
        """Schedule a background pass after a local write.

        Must be called from the event loop thread.  Returns immediately.

        Returns:
            ``True`` if a pass was scheduled or coalesced into the running
            one, ``False`` when nobody is listening.
        """
        if not self.listeners:
            logger.debug("Local change with no listeners, skipping sync")
            return False

        if self._auto_sync_active:
            self._pending = True
            logger.debug("Sync already running, coalescing trigger")
            return True

        self._auto_task = asyncio.get_running_loop().create_task(
            self._auto_sync_loop()
        )
        return True

    async def _auto_sync_loop(self) -> None:
        while True:
            self._pending = False
            await self.run_auto_sync()
            if not self._pending or not self.listeners:
                break

    async def wait_idle(self) -> None:
        """Wait until the scheduled auto-sync (if any) has finished."""
        if self._auto_task is not None:
            await self._auto_task

    async def close(self) -> None:
        """Cancel a running auto-sync and forget all listeners."""
        if self._auto_sync_active:
            self._auto_task.cancel()
            try:
                await self._auto_task
            except asyncio.CancelledError:
                pass
        self.listeners.clear()

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    async def _run_pass(
        self,
        direction: SyncDirection,
        completed: EventType,
        failed: EventType,
    ) -> dict[str, Any]:
        self._active_passes += 1
        try:
            # Passes are serialized by the engine lock, not the request semaphore
            outcome = await run_sync(
                self.engine.reconcile, direction, EntityScope.ALL
            )
        except Exception as exc:
            logger.exception("%s pass failed", direction.value)
            event = {
                "type": failed.value,
                "error": str(exc) or type(exc).__name__,
                "timestamp": utc_now(),
            }
        else:
            event = {
                "type": completed.value,
                "results": outcome_to_json(outcome)["results"],
                "summary": event_summary(outcome),
                "timestamp": utc_now(),
            }
        finally:
            self._active_passes -= 1

        await self.broadcast(event)
        return event

    async def run_auto_sync(self) -> dict[str, Any]:
        """Push pending changes, pull everything, and broadcast the outcome."""
        return await self._run_pass(
            SyncDirection.BIDIRECTIONAL,
            EventType.AUTO_SYNC_COMPLETED,
            EventType.AUTO_SYNC_ERROR,
        )

    async def force_sync(self) -> dict[str, Any]:
        """Push pending changes only and broadcast the outcome."""
        return await self._run_pass(
            SyncDirection.TO_REMOTE,
            EventType.FORCE_SYNC_COMPLETED,
            EventType.FORCE_SYNC_ERROR,
        )

    # ------------------------------------------------------------------
    # Inbound messages
    # ------------------------------------------------------------------

    async def handle_message(self, ws: WebSocket, message: str) -> None:
        """Dispatch one text frame received from a listener."""
        try:
            data = json.loads(message)
        except json.JSONDecodeError:
            logger.warning("Invalid JSON from listener: %.200s", message)
            await self.send(
                ws,
                {"type": EventType.ERROR.value, "message": "Invalid message format"},
            )
            return

        msg_type = data.get("type") if isinstance(data, dict) else None

        match msg_type:
            case "START_AUTO_SYNC":
                # Passes are driven by local changes; nothing to start.
                logger.info("Listener requested auto-sync")
            case "STOP_AUTO_SYNC":
                await self.broadcast(
                    {
                        "type": EventType.AUTO_SYNC_STOPPED.value,
                        "timestamp": utc_now(),
                    }
                )
            case "FORCE_SYNC":
                await self.force_sync()
            case _:
                await self.send(
                    ws,
                    {
                        "type": EventType.ERROR.value,
                        "message": "Unknown message type",
                    },
                )
