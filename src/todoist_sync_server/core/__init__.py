"""Todoist client functionality shared by the sync engine and the MCP server."""

from .async_utils import run_sync, run_sync_limited
from .client import TodoistClient

__all__ = ["TodoistClient", "run_sync", "run_sync_limited"]
