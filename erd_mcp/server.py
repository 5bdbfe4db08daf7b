#!/usr/bin/env python3
"""
ERD Canvas MCP Server

Provides MCP tools for AI agents to build and edit the schema on the canvas.
All changes go through the editor service, so they show up in the frontend
via WebSocket updates and can be undone like any manual edit.
"""

import json
from typing import Optional

import httpx
from mcp.server.fastmcp import FastMCP

from erd_backend.config import Settings

_settings = Settings.from_env()
API_BASE = f"http://{_settings.host}:{_settings.port}/api"

# Create MCP server
mcp = FastMCP("erd-canvas")


class ApiError(Exception):
    """The editor service rejected a request."""


# --- HTTP Client Helper ---

def api_request(method: str, endpoint: str, **kwargs) -> dict:
    """Make a request to the editor service."""
    url = f"{API_BASE}{endpoint}"
    with httpx.Client(timeout=30.0) as client:
        response = client.request(method, url, json=kwargs.get("json"), params=kwargs.get("params"))

        if response.status_code >= 400:
            try:
                error = response.json().get("detail", "Unknown error")
            except ValueError:
                error = response.text
            raise ApiError(f"API error: {error}")

        return response.json()


def run_command(command_type: str, **fields) -> str:
    """Dispatch a schema command; fields left as None are omitted."""
    payload = {"type": command_type}
    payload.update({k: v for k, v in fields.items() if v is not None})
    result = api_request("POST", "/commands", json=payload)
    return json.dumps(result, indent=2)


# ============================================================================
# INSPECTION TOOLS
# ============================================================================

@mcp.tool()
def schema_get_current() -> str:
    """
    Get the full current schema state.

    Returns all tables (with columns), relationships and bookmarks, plus
    undo/redo availability. Call this before making changes so you know the
    table and column ids.
    """
    return json.dumps(api_request("GET", "/schema"), indent=2)


@mcp.tool()
def schema_validate() -> str:
    """
    Check the schema for structural problems.

    Reports tables without primary keys, duplicate names, self-references and
    similar issues, with a severity for each.
    """
    return json.dumps(api_request("GET", "/schema/validate"), indent=2)


# ============================================================================
# TABLE TOOLS
# ============================================================================

@mcp.tool()
def schema_add_table(
    name: str,
    x: float = 250,
    y: float = 250,
    comment: str = "",
    columns: Optional[list[dict]] = None,
) -> str:
    """
    Create a new table on the canvas.

    Args:
        name: Table name
        x: X coordinate on canvas
        y: Y coordinate on canvas
        comment: Optional table comment
        columns: Column objects like {"name": "email", "type": "VARCHAR(255)", "isPk": false}.
            Without columns the table gets a single `id` primary key.

    Returns the new state; the created table is the last one in the list.
    """
    return run_command(
        "add_table",
        name=name,
        comment=comment,
        position={"x": x, "y": y},
        columns=columns,
    )


@mcp.tool()
def schema_update_table(
    table_id: str,
    name: Optional[str] = None,
    comment: Optional[str] = None,
    color: Optional[str] = None,
) -> str:
    """
    Rename a table or change its comment or color.

    Only provided fields are updated; others remain unchanged.
    """
    return run_command("update_table", id=table_id, name=name, comment=comment, color=color)


@mcp.tool()
def schema_delete_table(table_id: str) -> str:
    """Delete a table and every relationship that touches it."""
    return run_command("delete_table", id=table_id)


# ============================================================================
# COLUMN TOOLS
# ============================================================================

@mcp.tool()
def schema_add_column(
    table_id: str,
    name: str,
    column_type: str = "VARCHAR(255)",
    is_pk: bool = False,
    comment: str = "",
) -> str:
    """
    Add a column to a table.

    Args:
        table_id: ID of the table
        name: Column name
        column_type: SQL type, e.g. INT, VARCHAR(255), TIMESTAMP
        is_pk: Whether the column is part of the primary key
        comment: Optional column comment
    """
    return run_command(
        "add_column",
        table_id=table_id,
        name=name,
        column_type=column_type,
        is_pk=is_pk,
        comment=comment,
    )


@mcp.tool()
def schema_update_column(
    table_id: str,
    column_id: str,
    name: Optional[str] = None,
    column_type: Optional[str] = None,
    is_pk: Optional[bool] = None,
    comment: Optional[str] = None,
) -> str:
    """Change a column's name, type, primary-key flag or comment."""
    return run_command(
        "update_column",
        table_id=table_id,
        column_id=column_id,
        name=name,
        column_type=column_type,
        is_pk=is_pk,
        comment=comment,
    )


@mcp.tool()
def schema_delete_column(table_id: str, column_id: str) -> str:
    """Delete a column; relationships that use it are removed too."""
    return run_command("delete_column", table_id=table_id, column_id=column_id)


# ============================================================================
# RELATIONSHIP & BOOKMARK TOOLS
# ============================================================================

@mcp.tool()
def schema_add_relationship(from_table: str, from_col: str, to_table: str, to_col: str) -> str:
    """
    Connect a column of one table to a column of another.

    Typically from a foreign key column to the referenced primary key. All
    four ids must exist, otherwise nothing is created.
    """
    return run_command(
        "add_relationship",
        from_table=from_table,
        from_col=from_col,
        to_table=to_table,
        to_col=to_col,
    )


@mcp.tool()
def schema_delete_relationship(relationship_id: str) -> str:
    return run_command("delete_relationship", id=relationship_id)


@mcp.tool()
def schema_add_bookmark(name: str = "New Bookmark", x: float = 100, y: float = 100,
                        width: float = 400, height: float = 300) -> str:
    """
    Add a bookmark, a named rectangular region that groups tables.

    Tables dragged into it become members and move with it.
    """
    return run_command("add_bookmark", name=name, x=x, y=y, width=width, height=height)


@mcp.tool()
def schema_delete_bookmark(bookmark_id: str) -> str:
    """Delete a bookmark. Its tables stay on the canvas."""
    return run_command("delete_bookmark", id=bookmark_id)


# ============================================================================
# LAYOUT, IMPORT & HISTORY TOOLS
# ============================================================================

@mcp.tool()
def schema_auto_layout(direction: str = "LR") -> str:
    """
    Arrange all tables following their relationships.

    Args:
        direction: TB (top to bottom), BT, LR (left to right) or RL
    """
    result = api_request("POST", "/layout/auto", json={"direction": direction})
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_append(fragment: dict) -> str:
    """
    Append tables from a schema fragment.

    Args:
        fragment: {"tables": [...], "relationships": [...]} in the canvas JSON
            format. Ids are regenerated, so they only need to be consistent
            within the fragment.
    """
    result = api_request("POST", "/schema/append", json=fragment)
    return json.dumps(result, indent=2)


@mcp.tool()
def schema_undo() -> str:
    """Undo the last change."""
    return json.dumps(api_request("POST", "/undo"), indent=2)


@mcp.tool()
def schema_redo() -> str:
    """Redo the last undone change."""
    return json.dumps(api_request("POST", "/redo"), indent=2)


# ============================================================================
# PROJECT TOOLS
# ============================================================================

@mcp.tool()
def project_load(project_id: str) -> str:
    """Load a stored project's schema onto the canvas."""
    return json.dumps(api_request("POST", f"/projects/{project_id}/load"), indent=2)


@mcp.tool()
def project_save(project_id: str, description: str = "") -> str:
    """Save the canvas to a project and record a new version."""
    result = api_request("POST", f"/projects/{project_id}/save", json={"description": description})
    return json.dumps(result, indent=2)


@mcp.tool()
def project_list_versions(project_id: str) -> str:
    return json.dumps(api_request("GET", f"/projects/{project_id}/versions"), indent=2)


@mcp.tool()
def project_restore_version(version_id: str) -> str:
    """Replace the canvas with a saved version. Can be undone."""
    return json.dumps(api_request("POST", f"/versions/{version_id}/restore"), indent=2)


# ============================================================================
# MAIN
# ============================================================================

def main():
    mcp.run()


if __name__ == "__main__":
    main()
