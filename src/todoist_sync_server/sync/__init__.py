"""Synchronisation of the local store with Todoist.

Modules:

- ``engine``    -- ``SyncEngine``: pull, push and full reconcile passes.
- ``log``       -- ``SyncLog``: append-only audit trail.
- ``status``    -- ``get_sync_status_summary``.
- ``mapper``    -- color/priority translation and task payloads.
- ``models``    -- ``Project``, ``Task``, ``SyncResult``, ``SyncOutcome``
  and the status/direction enums.
- ``reporter``  -- Human-readable and JSON outcome formatting.

Only the dependency-free modules are re-exported here; import
``SyncEngine`` and ``SyncLog`` from their modules, since both depend on
the store, which itself depends on ``models``.

Usage example
-------------
::

    from todoist_sync_server.sync.engine import SyncEngine
    from todoist_sync_server.sync.log import SyncLog
    from todoist_sync_server.sync import SyncDirection, format_sync_outcome

    engine = SyncEngine(client, store, SyncLog(store))
    outcome = engine.reconcile(SyncDirection.BIDIRECTIONAL)
    print(format_sync_outcome(outcome))
"""

from .mapper import (
    build_task_payload,
    map_local_priority_to_remote,
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
    SyncLogEntry,
    SyncOutcome,
    SyncResult,
    SyncStatus,
    Task,
)
from .reporter import (
    event_summary,
    format_status_summary,
    format_sync_outcome,
    outcome_to_json,
)

__all__ = [
    "EntityScope",
    "EntityType",
    "LogAction",
    "Project",
    "ResultAction",
    "SyncDirection",
    "SyncLogEntry",
    "SyncOutcome",
    "SyncResult",
    "SyncStatus",
    "Task",
    "build_task_payload",
    "event_summary",
    "format_status_summary",
    "format_sync_outcome",
    "map_local_priority_to_remote",
    "map_remote_color_to_local",
    "map_remote_priority_to_local",
    "outcome_to_json",
]
