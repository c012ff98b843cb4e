"""MCP server exposing sync and local CRUD tools."""
