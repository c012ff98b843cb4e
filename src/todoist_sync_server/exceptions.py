"""Error taxonomy shared by the store, the Todoist client and the sync engine.

- ``ConfigurationError``: missing or rejected Todoist credential, or an
  invalid setting.  Fatal for a whole sync pass.
- ``RemoteCallError``: one Todoist request failed (network, timeout, HTTP
  error).  Isolated to the entity being processed.
- ``MalformedResponseError``: Todoist answered with a payload shape we do
  not understand.  Aborts the current pull.
- ``NotFoundError``: a referenced local project or task does not exist.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all todoist_sync_server errors."""


class ConfigurationError(SyncError, ValueError):
    """Raised when configuration (most often the API token) is unusable."""


class RemoteCallError(SyncError):
    """Raised when a single call to the Todoist API fails.

    Attributes:
        status_code: HTTP status code, or ``None`` for transport errors.
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedResponseError(SyncError):
    """Raised when a Todoist response does not have an expected shape."""


class NotFoundError(SyncError, LookupError):
    """Raised when a local entity referenced by id does not exist."""

    def __init__(self, entity_type: str, entity_id: str):
        super().__init__(f"{entity_type.capitalize()} '{entity_id}' not found")
        self.entity_type = entity_type
        self.entity_id = entity_id
