"""
ERD Canvas Backend - FastAPI Application

The editor service around a SchemaStore. It provides:
- REST API for schema commands, undo/redo, import/append, layout and validation
- Project load/save and version history through the storage service
- WebSocket endpoint for real-time updates
- CORS configuration for local frontend development
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Body, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from pydantic import BaseModel

from erd_core import (
    AppendSchema,
    AutoLayout,
    ImportSchema,
    LayoutDirection,
    SchemaStore,
    build_scene,
    parse_command,
    parse_fragment,
    validate_schema,
    validation_summary,
)

from .config import Settings
from .persistence import PersistenceClient, PersistenceError
from .websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)


class AutoLayoutRequest(BaseModel):
    direction: LayoutDirection = LayoutDirection.LEFT_RIGHT


class SaveProjectRequest(BaseModel):
    description: str = ""
    user: Optional[str] = None


class DescribeVersionRequest(BaseModel):
    description: str


def create_app(
    store: Optional[SchemaStore] = None,
    persistence: Optional[PersistenceClient] = None,
    settings: Optional[Settings] = None,
) -> FastAPI:
    """
    Build the editor service.

    Args:
        store: Store to serve (a fresh empty one by default)
        persistence: Storage service client (built from settings by default)
        settings: Service settings (read from the environment by default)
    """
    settings = settings or Settings.from_env()
    if store is None:
        store = SchemaStore()
    owns_persistence = persistence is None
    if persistence is None:
        persistence = PersistenceClient(settings.persistence_url, timeout=settings.persistence_timeout)
    ws_manager = WebSocketManager()

    # --- Async change notification ---
    # Bridge between sync store callbacks and async WebSocket broadcasts

    def on_schema_change():
        event = getattr(app.state, "change_event", None)
        if event is not None:
            event.set()

    async def change_broadcaster(event: asyncio.Event):
        while True:
            await event.wait()
            event.clear()
            await ws_manager.notify_schema_updated(store.get_state())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.change_event = asyncio.Event()
        broadcaster_task = asyncio.create_task(change_broadcaster(app.state.change_event))

        yield

        broadcaster_task.cancel()
        try:
            await broadcaster_task
        except asyncio.CancelledError:
            pass
        app.state.change_event = None
        if owns_persistence:
            await persistence.aclose()

    app = FastAPI(
        title="ERD Canvas API",
        description="Backend API for the entity-relationship schema canvas",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.persistence = persistence
    app.state.ws_manager = ws_manager
    app.state.settings = settings
    store.on_change(on_schema_change)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- Health Check ---

    @app.get("/api/health")
    async def health_check():
        return {"status": "ok", "connections": ws_manager.connection_count}

    # --- Schema State ---

    @app.get("/api/schema")
    async def get_schema():
        """Get the current schema, history flags and clipboard."""
        return store.get_state()

    @app.get("/api/tables/{table_id}")
    async def get_table(table_id: str):
        table = store.document.get_table(table_id)
        if table:
            return {"success": True, "table": table.model_dump(by_alias=True)}
        raise HTTPException(status_code=404, detail="Table not found")

    # --- Commands ---

    @app.post("/api/commands")
    async def dispatch_command(payload: dict = Body(...)):
        """
        Dispatch any schema command.

        The body is a command object tagged by `type`, e.g.
        {"type": "add_table", "name": "users"}.
        """
        try:
            command = parse_command(payload)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Invalid command: {e}")

        before = store.document
        store.dispatch(command)
        return {
            "success": True,
            "changed": store.document is not before,
            "state": store.get_state(),
        }

    # --- Undo/Redo ---

    @app.post("/api/undo")
    async def undo():
        document = store.undo()
        if document:
            return {"success": True, "schema": document.to_json_dict()}
        return {"success": False, "message": "Nothing to undo"}

    @app.post("/api/redo")
    async def redo():
        document = store.redo()
        if document:
            return {"success": True, "schema": document.to_json_dict()}
        return {"success": False, "message": "Nothing to redo"}

    # --- Import / Append ---

    @app.post("/api/schema/import")
    async def import_schema(payload: Any = Body(...)):
        """Replace the whole schema. Missing lists default to empty."""
        try:
            document = parse_fragment(payload, require_tables=False)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        store.dispatch(ImportSchema(document=document))
        return {"success": True, "schema": store.document.to_json_dict()}

    @app.post("/api/schema/append")
    async def append_schema(payload: Any = Body(...)):
        """Append tables, relationships and bookmarks with fresh ids."""
        try:
            fragment = parse_fragment(payload, require_tables=True)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        before = store.document
        store.dispatch(AppendSchema(fragment=fragment))
        added = len(store.document.tables) - len(before.tables)
        return {"success": True, "tables_added": added, "schema": store.document.to_json_dict()}

    # --- Layout ---

    @app.post("/api/layout/auto")
    async def auto_layout(request: AutoLayoutRequest):
        """Arrange tables with the layered layout."""
        if not store.document.tables:
            raise HTTPException(status_code=400, detail="No tables to layout")
        store.dispatch(AutoLayout(direction=request.direction))
        return {"success": True, "direction": request.direction.value}

    # --- Analysis & Validation ---

    @app.get("/api/schema/validate")
    async def validate_current_schema():
        """
        Validate the current schema for structural issues.

        Returns a list of issues (errors, warnings, info) and a summary.
        """
        issues = validate_schema(store.document)
        return {
            "success": True,
            "issues": [issue.to_dict() for issue in issues],
            "summary": validation_summary(issues),
        }

    @app.get("/api/schema/scene")
    async def get_scene(
        hovered: Optional[str] = Query(default=None),
        selected: Optional[str] = Query(default=None),
    ):
        """Relationship paths and highlight state for the given hover/selection."""
        scene = build_scene(store.document, hovered, selected)
        return {"success": True, "scene": scene.to_dict()}

    # --- Projects & Versions ---

    @app.post("/api/projects/{project_id}/load")
    async def load_project(project_id: str):
        """Replace the schema with a project's stored schema."""
        try:
            document = await persistence.load_schema(project_id)
        except PersistenceError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=404, detail="Project not found")
            raise HTTPException(status_code=502, detail=str(e))
        store.dispatch(ImportSchema(document=document))
        store.mark_saved()
        return {"success": True, "schema": store.document.to_json_dict()}

    @app.post("/api/projects/{project_id}/save")
    async def save_project(project_id: str, request: Optional[SaveProjectRequest] = None):
        """Save the current schema and record a new version."""
        request = request or SaveProjectRequest()
        document = store.document
        try:
            version = await persistence.save_schema(
                project_id,
                document,
                user=request.user or settings.user,
                description=request.description,
            )
        except PersistenceError as e:
            raise HTTPException(status_code=502, detail=str(e))
        if store.document is document:
            store.mark_saved()
        return {"success": True, "version": version}

    @app.get("/api/projects/{project_id}/versions")
    async def list_versions(project_id: str):
        try:
            versions = await persistence.list_versions(project_id)
        except PersistenceError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"success": True, "versions": versions}

    @app.post("/api/versions/{version_id}/restore")
    async def restore_version(version_id: str):
        """Replace the schema with a saved version. Undoable."""
        try:
            document = await persistence.get_version(version_id)
        except PersistenceError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=404, detail="Version not found")
            raise HTTPException(status_code=502, detail=str(e))
        store.dispatch(ImportSchema(document=document))
        return {"success": True, "schema": store.document.to_json_dict()}

    @app.put("/api/versions/{version_id}")
    async def describe_version(version_id: str, request: DescribeVersionRequest):
        try:
            version = await persistence.describe_version(version_id, request.description)
        except PersistenceError as e:
            raise HTTPException(status_code=502, detail=str(e))
        return {"success": True, "version": version}

    # --- WebSocket ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """
        WebSocket endpoint for real-time updates.

        Clients connect here to receive schema_updated events.
        """
        await ws_manager.connect(websocket)
        try:
            while True:
                data = await websocket.receive_text()
                if data == "ping":
                    await ws_manager.send(websocket, {"type": "pong"})
        except WebSocketDisconnect:
            await ws_manager.disconnect(websocket)

    @app.get("/")
    async def index():
        return HTMLResponse("<h1>ERD Canvas API</h1><p>See <a href=\"/docs\">/docs</a> for the REST API.</p>")

    return app


app = create_app()


# --- Run with uvicorn ---

if __name__ == "__main__":
    import uvicorn
    settings = Settings.from_env()
    logging.basicConfig(level=settings.log_level)
    uvicorn.run(app, host=settings.host, port=settings.port)
