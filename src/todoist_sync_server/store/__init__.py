"""Local SQLite replica of projects, tasks and the sync log."""

from .database import SCHEMA_VERSION, get_connection, init_database
from .local_store import LocalStore, utc_now

__all__ = [
    "SCHEMA_VERSION",
    "LocalStore",
    "get_connection",
    "init_database",
    "utc_now",
]
