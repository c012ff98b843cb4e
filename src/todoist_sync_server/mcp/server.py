"""MCP Server for Todoist sync using stdio transport.

This module implements the Model Context Protocol server that lets AI
agents manage the local task store and run sync passes against Todoist.
Alongside the stdio transport it serves the real-time WebSocket endpoint
(``/ws/sync``) with uvicorn on the same event loop.

Transport: stdio (for Claude Desktop/Code integration)
Protocol: JSON-RPC 2.0 over MCP
"""

import argparse
import asyncio
import logging
import sys

import mcp.server.stdio
import mcp.types as types
import uvicorn
from mcp.server import NotificationOptions, Server
from mcp.server.models import InitializationOptions

from .. import __version__
from ..context import AppContext
from ..logger import DEFAULT_MCP_LOG_FILE, setup_logging
from ..realtime.app import create_realtime_app
from .lifespan import server_lifespan
from .tools import ALL_TOOLS, build_error_response, dispatch_tool

logger = logging.getLogger(__name__)

SERVER_NAME = "todoist-sync-server"


# ---------------------------------------------------------------------------
# MCP protocol handlers
# ---------------------------------------------------------------------------


def build_server(context: AppContext) -> Server:
    """Create the MCP server with tool handlers bound to *context*."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> list[types.Tool]:
        """List available sync and CRUD tools."""
        return ALL_TOOLS

    @server.call_tool()
    async def handle_call_tool(
        name: str, arguments: dict | None
    ) -> types.CallToolResult:
        """Handle tool execution.

        Args:
            name: The name of the tool to execute.
            arguments: Tool arguments (optional).

        Returns:
            CallToolResult with tool output content and optional isError flag.
        """
        try:
            return await dispatch_tool(name, arguments, context)
        except ValueError as e:
            return build_error_response(
                "unknown_tool",
                str(e),
                "Use list_tools to see available tools.",
            )

    return server


# ---------------------------------------------------------------------------
# Server lifecycle
# ---------------------------------------------------------------------------


def build_realtime_server(context: AppContext) -> uvicorn.Server:
    """Configure uvicorn to serve the real-time app for *context*."""
    config = uvicorn.Config(
        create_realtime_app(context),
        host=context.config.realtime_host,
        port=context.config.realtime_port,
        # Keep the logging configured by setup_logging()
        log_config=None,
        log_level="debug" if context.config.debug else "warning",
    )
    return uvicorn.Server(config)


async def _serve_realtime(web_server: uvicorn.Server) -> None:
    try:
        await web_server.serve()
    except SystemExit:
        # uvicorn exits when the port cannot be bound
        logger.error(
            "Real-time endpoint failed to start on %s:%d",
            web_server.config.host,
            web_server.config.port,
        )
        print(
            f"WARNING: Real-time endpoint could not bind "
            f"{web_server.config.host}:{web_server.config.port}",
            file=sys.stderr,
        )


async def main(config_overrides: dict | None = None):
    """Run the MCP server with stdio transport and the real-time endpoint.

    This function sets up logging for MCP mode (file only, never stdout),
    opens the store via the lifespan manager, starts uvicorn for
    ``/ws/sync`` when real-time sync is enabled, and then serves MCP over
    stdio until the client disconnects.

    Args:
        config_overrides: Optional dict with config values to override
            (token, api_url, database, host, port, realtime, log_file, debug)
    """
    overrides = config_overrides or {}

    # CRITICAL: This must be called BEFORE stdio_server context
    # to prevent any stdout contamination during protocol negotiation
    setup_logging(
        mode="mcp",
        debug=overrides.get("debug", False),
        log_file=overrides.get("log_file"),
    )

    async with server_lifespan(config_overrides=overrides) as context:
        server = build_server(context)

        web_server: uvicorn.Server | None = None
        web_task: asyncio.Task | None = None
        if context.config.realtime_enabled:
            web_server = build_realtime_server(context)
            web_task = asyncio.create_task(_serve_realtime(web_server))
            print(
                f"  Real-time endpoint: ws://{context.config.realtime_host}:"
                f"{context.config.realtime_port}/ws/sync",
                file=sys.stderr,
            )

        try:
            async with mcp.server.stdio.stdio_server() as (
                read_stream,
                write_stream,
            ):
                init_options = InitializationOptions(
                    server_name=SERVER_NAME,
                    server_version=__version__,
                    capabilities=server.get_capabilities(
                        notification_options=NotificationOptions(),
                        experimental_capabilities={},
                    ),
                )
                await server.run(read_stream, write_stream, init_options)
        finally:
            if web_server is not None and web_task is not None:
                web_server.should_exit = True
                await web_task


def run() -> None:
    """Entry point that handles errors gracefully and parses CLI arguments."""
    parser = argparse.ArgumentParser(
        description="Todoist Sync Server - MCP server keeping a local task store in sync with Todoist",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run with default config (from .env or .todoist_sync/config.yml)
  todoist-sync-server

  # Provide the Todoist token on the command line
  todoist-sync-server --token 0123456789abcdef

  # Use a different database and WebSocket port
  todoist-sync-server --database ~/tasks.db --port 4001

  # MCP only, no real-time WebSocket endpoint
  todoist-sync-server --no-realtime

Note: This server uses stdio transport for JSON-RPC communication with MCP clients.
All user-facing messages are written to stderr. Do not pipe stdin/stdout manually.
        """,
    )

    parser.add_argument(
        "--token",
        help="Todoist API token (takes precedence over TODOIST_API_TOKEN and config files)"
        " (visible in process list -- prefer TODOIST_API_TOKEN env var for security)",
    )
    parser.add_argument(
        "--api-url",
        help="Override Todoist REST base URL (default: https://api.todoist.com/api/v1)",
    )
    parser.add_argument(
        "--database",
        help="SQLite database path (default: .todoist_sync/tasks.db)",
    )
    parser.add_argument(
        "--host",
        help="Bind host for the real-time WebSocket endpoint (default: 127.0.0.1)",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="Port for the real-time WebSocket endpoint (default: 3001)",
    )
    parser.add_argument(
        "--no-realtime",
        action="store_true",
        help="Do not serve the real-time WebSocket endpoint",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--log-file",
        default=DEFAULT_MCP_LOG_FILE,
        help=f"Log file path (default: {DEFAULT_MCP_LOG_FILE})",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"todoist-sync-server version {__version__}",
    )

    args = parser.parse_args()

    # Build config overrides dict from CLI args
    config_overrides: dict = {}
    if args.token:
        config_overrides["token"] = args.token
    if args.api_url:
        config_overrides["api_url"] = args.api_url
    if args.database:
        config_overrides["database"] = args.database
    if args.host:
        config_overrides["host"] = args.host
    if args.port is not None:
        config_overrides["port"] = args.port
    if args.no_realtime:
        config_overrides["realtime"] = False
    if args.debug:
        config_overrides["debug"] = True
    if args.log_file:
        config_overrides["log_file"] = args.log_file

    # Log config overrides to stderr (before stdio transport starts)
    override_keys = [
        k for k in config_overrides if k not in ("token", "log_file")
    ]
    if override_keys:
        print(
            f"Config overrides from CLI: {', '.join(override_keys)}",
            file=sys.stderr,
        )

    try:
        asyncio.run(main(config_overrides=config_overrides or None))
    except RuntimeError:
        # Error already printed to stderr by lifespan manager
        sys.exit(1)
    except KeyboardInterrupt:
        print("\nInterrupted.", file=sys.stderr)
        sys.exit(0)


if __name__ == "__main__":
    run()
