"""FastAPI application serving the real-time sync WebSocket."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, FastAPI, WebSocket, WebSocketDisconnect

from .. import __version__

if TYPE_CHECKING:
    from ..context import AppContext

logger = logging.getLogger(__name__)

# "Try again later": the token may be configured at runtime
DISABLED_CLOSE_CODE = 1013


def create_realtime_app(context: AppContext) -> FastAPI:
    """Build the app exposing ``/ws/sync`` and ``/health`` for *context*."""
    app = FastAPI(title="Todoist Sync Server", version=__version__)
    router = APIRouter()

    @router.get("/health")
    async def health_check():
        broadcaster = context.broadcaster
        return {
            "status": "healthy",
            "realtime_enabled": broadcaster is not None,
            "listeners": broadcaster.listener_count if broadcaster else 0,
        }

    @router.websocket("/ws/sync")
    async def sync_websocket(websocket: WebSocket):
        """WebSocket endpoint for real-time sync events."""
        await websocket.accept()

        broadcaster = context.broadcaster
        if broadcaster is None:
            await websocket.send_json(
                {
                    "type": "error",
                    "message": "Real-time sync disabled: Todoist API token not configured",
                }
            )
            await websocket.close(code=DISABLED_CLOSE_CODE)
            return

        await broadcaster.register_listener(websocket)
        try:
            while True:
                message = await websocket.receive_text()
                await broadcaster.handle_message(websocket, message)
        except WebSocketDisconnect:
            logger.info("Listener closed the connection")
        finally:
            broadcaster.unregister_listener(websocket)

    app.include_router(router)
    return app
