"""Keep a local task/project store in sync with Todoist."""

__version__ = "0.3.0"
