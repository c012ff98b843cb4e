"""
Input validation for local project and task writes.

Every validator returns ``(is_valid, error_message)`` so the tool layer
can turn a failure into a structured ``validation_error`` response
without raising.
"""

from datetime import datetime

LOCAL_COLORS = frozenset(
    {
        "red",
        "orange",
        "yellow",
        "green",
        "blue",
        "purple",
        "pink",
        "brown",
        "gray",
    }
)

MAX_PROJECT_NAME_LENGTH = 100
MAX_TASK_TEXT_LENGTH = 500


def format_validation_error(field_name: str, reason: str) -> str:
    """
    Generate consistent error message for validation failures.

    Args:
        field_name: Human-readable field name (e.g., "Project name")
        reason: Description of validation failure (e.g., "cannot be empty")

    Returns:
        Formatted error message string
    """
    return f"{field_name} {reason}"


def _validate_text(
    value: str | None, field_name: str, max_length: int
) -> tuple[bool, str]:
    if not isinstance(value, str) or not value.strip():
        return False, format_validation_error(field_name, "cannot be empty")
    if len(value) > max_length:
        return (
            False,
            format_validation_error(
                field_name, f"cannot exceed {max_length} characters"
            ),
        )
    return True, ""


def validate_project_name(name: str | None) -> tuple[bool, str]:
    """Project names are 1-100 characters and not blank."""
    return _validate_text(name, "Project name", MAX_PROJECT_NAME_LENGTH)


def validate_task_text(text: str | None) -> tuple[bool, str]:
    """Task text is 1-500 characters and not blank."""
    return _validate_text(text, "Task text", MAX_TASK_TEXT_LENGTH)


def validate_priority(priority) -> tuple[bool, str]:
    """Priority is an integer from 1 (highest) to 4 (lowest)."""
    if isinstance(priority, bool) or not isinstance(priority, int):
        return False, format_validation_error("Priority", "must be an integer")
    if not 1 <= priority <= 4:
        return False, format_validation_error("Priority", "must be between 1 and 4")
    return True, ""


def validate_color(color: str | None) -> tuple[bool, str]:
    """Color must be one of the local palette names."""
    if color not in LOCAL_COLORS:
        allowed = ", ".join(sorted(LOCAL_COLORS))
        return False, format_validation_error("Color", f"must be one of: {allowed}")
    return True, ""


def parse_due_date(value: str | None) -> tuple[datetime | None, str]:
    """Parse an ISO 8601 due date.

    Returns:
        ``(datetime, "")`` on success, ``(None, "")`` for an empty value,
        and ``(None, reason)`` when the value cannot be parsed.
    """
    if value is None or value == "":
        return None, ""
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")), ""
    except (AttributeError, TypeError, ValueError):
        return None, format_validation_error(
            "Due date", f"'{value}' is not a valid ISO 8601 date-time"
        )
