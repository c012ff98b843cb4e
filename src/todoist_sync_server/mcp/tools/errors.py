"""Error response builders shared by the MCP tool handlers.

Responses carry a corrective action so that an agent can recover from
the error without human intervention.
"""

import mcp.types as types

from ...exceptions import (
    ConfigurationError,
    MalformedResponseError,
    NotFoundError,
    RemoteCallError,
    SyncError,
)


def build_error_response(
    error_type: str, message: str, corrective_action: str
) -> types.CallToolResult:
    """Build a structured error response with corrective action.

    Args:
        error_type: Error category (configuration_error, remote_error,
            malformed_response, not_found, validation_error, server_error)
        message: Human-readable error description
        corrective_action: Specific action the agent can take to resolve the error

    Returns:
        CallToolResult with isError=True

    Examples:
        >>> build_error_response("not_found", "Task 'abc' not found", "Use task_list to find valid task ids.")
        CallToolResult(content=[TextContent(...)], isError=True)
    """
    error_text = f"Error ({error_type}): {message}\n\nAction: {corrective_action}"

    return types.CallToolResult(
        content=[types.TextContent(type="text", text=error_text)],
        isError=True,
    )


_NOT_FOUND_ACTIONS = {
    "project": "Use project_list to find valid project ids.",
    "task": "Use task_list to find valid task ids.",
}


def translate_sync_error(error: SyncError) -> types.CallToolResult:
    """Translate an error from the store, client or engine into a response."""
    match error:
        case NotFoundError(entity_type=entity_type):
            return build_error_response(
                "not_found",
                str(error),
                _NOT_FOUND_ACTIONS.get(
                    entity_type, "Check the id and retry."
                ),
            )
        case ConfigurationError():
            return build_error_response(
                "configuration_error",
                str(error),
                "Set a valid Todoist API token with sync_set_token "
                "(or TODOIST_API_TOKEN) and retry.",
            )
        case MalformedResponseError():
            return build_error_response(
                "malformed_response",
                str(error),
                "Todoist returned an unexpected payload. Check TODOIST_API_URL "
                "points at the REST API and retry later.",
            )
        case RemoteCallError():
            return build_error_response(
                "remote_error",
                str(error),
                "Check network connectivity to Todoist and retry.",
            )
        case _:
            return build_error_response(
                "server_error",
                str(error),
                "Retry later or inspect the server log.",
            )
