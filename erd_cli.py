#!/usr/bin/env python3
"""ERD canvas CLI - run the editor service and drive it from the shell."""

import argparse
import json
import logging
import sys
import urllib.error
import urllib.parse
import urllib.request

from erd_backend.config import Settings

SETTINGS = Settings.from_env()
API_BASE = f"http://{SETTINGS.host}:{SETTINGS.port}/api"


def _json_out(data):
    print(json.dumps(data))
    sys.exit(0)


def _api_request(method, endpoint, data=None, params=None):
    """Make a request to the editor service."""
    url = f"{API_BASE}{endpoint}"

    if params:
        filtered = {k: v for k, v in params.items() if v is not None}
        if filtered:
            url = f"{url}?{urllib.parse.urlencode(filtered)}"

    headers = {"Content-Type": "application/json"}
    body = json.dumps(data).encode() if data is not None else None

    req = urllib.request.Request(url, data=body, headers=headers, method=method)

    try:
        with urllib.request.urlopen(req, timeout=30) as response:
            return json.loads(response.read().decode())
    except urllib.error.HTTPError as e:
        error_body = e.read().decode()
        try:
            error_data = json.loads(error_body)
            _json_out({"status": "error", "error": f"API error: {error_data.get('detail', 'Unknown error')}"})
        except json.JSONDecodeError:
            _json_out({"status": "error", "error": f"API error ({e.code}): {error_body}"})
    except urllib.error.URLError as e:
        _json_out({"status": "error", "error": f"Connection failed: {e.reason}. Is `erd-canvas serve` running?"})


def _command(payload):
    """Dispatch one command, dropping options that were not given."""
    return _api_request("POST", "/commands", data={k: v for k, v in payload.items() if v is not None})


def _read_json_file(path):
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        _json_out({"status": "error", "error": f"Cannot read {path}: {e}"})


# ── Service ──────────────────────────────────────────────────────────────────

def cmd_serve(args):
    import uvicorn
    from erd_backend.main import create_app

    logging.basicConfig(
        level=SETTINGS.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    uvicorn.run(create_app(settings=SETTINGS), host=args.host, port=args.port, log_level=SETTINGS.log_level.lower())


# ── Schema ───────────────────────────────────────────────────────────────────

def cmd_get_current(args):
    _json_out(_api_request("GET", "/schema"))


def cmd_import(args):
    _json_out(_api_request("POST", "/schema/import", data=_read_json_file(args.file)))


def cmd_append(args):
    _json_out(_api_request("POST", "/schema/append", data=_read_json_file(args.file)))


# ── Tables ───────────────────────────────────────────────────────────────────

def cmd_add_table(args):
    _json_out(_command({
        "type": "add_table",
        "name": args.name,
        "comment": args.comment,
        "position": {"x": args.x, "y": args.y},
    }))


def cmd_update_table(args):
    _json_out(_command({
        "type": "update_table",
        "id": args.table_id,
        "name": args.name,
        "comment": args.comment,
        "color": args.color,
    }))


def cmd_delete_table(args):
    _json_out(_command({"type": "delete_table", "id": args.table_id}))


# ── Columns ──────────────────────────────────────────────────────────────────

def cmd_add_column(args):
    _json_out(_command({
        "type": "add_column",
        "table_id": args.table_id,
        "name": args.name,
        "column_type": args.column_type,
        "is_pk": args.pk,
        "comment": args.comment,
    }))


def cmd_update_column(args):
    _json_out(_command({
        "type": "update_column",
        "table_id": args.table_id,
        "column_id": args.column_id,
        "name": args.name,
        "column_type": args.column_type,
        "comment": args.comment,
    }))


def cmd_delete_column(args):
    _json_out(_command({"type": "delete_column", "table_id": args.table_id, "column_id": args.column_id}))


# ── Relationships & Bookmarks ────────────────────────────────────────────────

def cmd_add_relationship(args):
    _json_out(_command({
        "type": "add_relationship",
        "from_table": args.from_table,
        "from_col": args.from_col,
        "to_table": args.to_table,
        "to_col": args.to_col,
    }))


def cmd_delete_relationship(args):
    _json_out(_command({"type": "delete_relationship", "id": args.relationship_id}))


def cmd_add_bookmark(args):
    _json_out(_command({"type": "add_bookmark", "name": args.name, "x": args.x, "y": args.y}))


def cmd_delete_bookmark(args):
    _json_out(_command({"type": "delete_bookmark", "id": args.bookmark_id}))


# ── Layout & History ─────────────────────────────────────────────────────────

def cmd_auto_layout(args):
    _json_out(_api_request("POST", "/layout/auto", data={"direction": args.direction}))


def cmd_undo(args):
    _json_out(_api_request("POST", "/undo"))


def cmd_redo(args):
    _json_out(_api_request("POST", "/redo"))


# ── Projects ─────────────────────────────────────────────────────────────────

def cmd_load_project(args):
    _json_out(_api_request("POST", f"/projects/{args.project_id}/load"))


def cmd_save_project(args):
    _json_out(_api_request("POST", f"/projects/{args.project_id}/save", data={
        "description": args.description,
        "user": args.user,
    }))


def cmd_list_versions(args):
    _json_out(_api_request("GET", f"/projects/{args.project_id}/versions"))


def cmd_restore_version(args):
    _json_out(_api_request("POST", f"/versions/{args.version_id}/restore"))


# ── Analysis ─────────────────────────────────────────────────────────────────

def cmd_validate(args):
    if not args.file:
        _json_out(_api_request("GET", "/schema/validate"))

    from erd_core import SchemaFragmentError, parse_fragment, validate_schema, validation_summary

    try:
        document = parse_fragment(_read_json_file(args.file), require_tables=False)
    except SchemaFragmentError as e:
        _json_out({"success": False, "error": str(e)})

    issues = validate_schema(document)
    _json_out({
        "success": True,
        "issues": [issue.to_dict() for issue in issues],
        "summary": validation_summary(issues),
    })


def cmd_scene(args):
    _json_out(_api_request("GET", "/schema/scene", params={"hovered": args.hovered, "selected": args.selected}))


# ── Main ─────────────────────────────────────────────────────────────────────

def build_parser():
    parser = argparse.ArgumentParser(prog="erd-canvas", description="ERD canvas CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    # Service
    p = sub.add_parser("serve")
    p.add_argument("--host", default=SETTINGS.host)
    p.add_argument("--port", type=int, default=SETTINGS.port)

    # Schema
    sub.add_parser("get-current")

    p = sub.add_parser("import")
    p.add_argument("--file", required=True)

    p = sub.add_parser("append")
    p.add_argument("--file", required=True)

    # Tables
    p = sub.add_parser("add-table")
    p.add_argument("--name", default="new_table")
    p.add_argument("--comment", default="")
    p.add_argument("--x", type=float, default=250)
    p.add_argument("--y", type=float, default=250)

    p = sub.add_parser("update-table")
    p.add_argument("--table-id", required=True)
    p.add_argument("--name", default=None)
    p.add_argument("--comment", default=None)
    p.add_argument("--color", default=None)

    p = sub.add_parser("delete-table")
    p.add_argument("--table-id", required=True)

    # Columns
    p = sub.add_parser("add-column")
    p.add_argument("--table-id", required=True)
    p.add_argument("--name", default="new_col")
    p.add_argument("--column-type", default="VARCHAR(255)")
    p.add_argument("--pk", action="store_true")
    p.add_argument("--comment", default="")

    p = sub.add_parser("update-column")
    p.add_argument("--table-id", required=True)
    p.add_argument("--column-id", required=True)
    p.add_argument("--name", default=None)
    p.add_argument("--column-type", default=None)
    p.add_argument("--comment", default=None)

    p = sub.add_parser("delete-column")
    p.add_argument("--table-id", required=True)
    p.add_argument("--column-id", required=True)

    # Relationships
    p = sub.add_parser("add-relationship")
    p.add_argument("--from-table", required=True)
    p.add_argument("--from-col", required=True)
    p.add_argument("--to-table", required=True)
    p.add_argument("--to-col", required=True)

    p = sub.add_parser("delete-relationship")
    p.add_argument("--relationship-id", required=True)

    # Bookmarks
    p = sub.add_parser("add-bookmark")
    p.add_argument("--name", default="New Bookmark")
    p.add_argument("--x", type=float, default=100)
    p.add_argument("--y", type=float, default=100)

    p = sub.add_parser("delete-bookmark")
    p.add_argument("--bookmark-id", required=True)

    # Layout
    p = sub.add_parser("auto-layout")
    p.add_argument("--direction", default="LR", choices=["TB", "BT", "LR", "RL"])

    # History
    sub.add_parser("undo")
    sub.add_parser("redo")

    # Projects
    p = sub.add_parser("load-project")
    p.add_argument("--project-id", required=True)

    p = sub.add_parser("save-project")
    p.add_argument("--project-id", required=True)
    p.add_argument("--description", default="")
    p.add_argument("--user", default=None)

    p = sub.add_parser("list-versions")
    p.add_argument("--project-id", required=True)

    p = sub.add_parser("restore-version")
    p.add_argument("--version-id", required=True)

    # Analysis
    p = sub.add_parser("validate")
    p.add_argument("--file", default=None)

    p = sub.add_parser("scene")
    p.add_argument("--hovered", default=None)
    p.add_argument("--selected", default=None)

    return parser


COMMANDS = {
    "serve": cmd_serve,
    "get-current": cmd_get_current,
    "import": cmd_import,
    "append": cmd_append,
    "add-table": cmd_add_table,
    "update-table": cmd_update_table,
    "delete-table": cmd_delete_table,
    "add-column": cmd_add_column,
    "update-column": cmd_update_column,
    "delete-column": cmd_delete_column,
    "add-relationship": cmd_add_relationship,
    "delete-relationship": cmd_delete_relationship,
    "add-bookmark": cmd_add_bookmark,
    "delete-bookmark": cmd_delete_bookmark,
    "auto-layout": cmd_auto_layout,
    "undo": cmd_undo,
    "redo": cmd_redo,
    "load-project": cmd_load_project,
    "save-project": cmd_save_project,
    "list-versions": cmd_list_versions,
    "restore-version": cmd_restore_version,
    "validate": cmd_validate,
    "scene": cmd_scene,
}


def main(argv=None):
    args = build_parser().parse_args(argv)
    COMMANDS[args.command](args)


if __name__ == "__main__":
    main()
