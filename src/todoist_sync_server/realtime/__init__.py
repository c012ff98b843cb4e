"""Real-time sync: WebSocket listeners and the local-change trigger."""

from .app import create_realtime_app
from .broadcaster import BroadcasterState, EventType, SyncBroadcaster

__all__ = [
    "BroadcasterState",
    "EventType",
    "SyncBroadcaster",
    "create_realtime_app",
]
