"""Tests for the editor service REST and WebSocket endpoints."""

import json

import httpx
import pytest
from fastapi.testclient import TestClient

from erd_backend.config import Settings
from erd_backend.main import create_app
from erd_backend.persistence import PersistenceClient
from erd_core import SchemaDocument, SchemaStore

STORED_SCHEMA = {
    "tables": [{"id": "stored", "name": "stored", "columns": [{"id": "s_id", "name": "id", "isPk": True}]}],
    "relationships": [],
    "bookmarks": [],
}


class FakeStorage:
    """Records requests and answers like the project storage service."""

    def __init__(self) -> None:
        self.requests: list[tuple[str, str, dict | None]] = []
        self.fail = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.method, request.url.path, body))
        if self.fail:
            return httpx.Response(500, json={"error": "database is locked"})

        path = request.url.path
        if path == "/api/projects/missing" or path == "/api/versions/missing":
            return httpx.Response(404, json={"error": "not found"})
        if request.method == "GET" and path == "/api/projects/p1":
            return httpx.Response(200, json={"id": "p1", "schema_data": STORED_SCHEMA})
        if request.method == "PUT" and path == "/api/projects/p1":
            return httpx.Response(200, json={"id": "p1"})
        if request.method == "POST" and path == "/api/projects/p1/versions":
            return httpx.Response(201, json={"id": "v2", "user": body["user"], "description": body["description"]})
        if request.method == "GET" and path == "/api/projects/p1/versions":
            return httpx.Response(200, json=[{"id": "v2"}, {"id": "v1"}])
        if request.method == "GET" and path == "/api/versions/v1":
            return httpx.Response(200, json={"id": "v1", "schema": STORED_SCHEMA})
        if request.method == "PUT" and path == "/api/versions/v1":
            return httpx.Response(200, json={"id": "v1", "description": body["description"]})
        return httpx.Response(404, json={"error": "unknown route"})


@pytest.fixture
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture
def api_store(sample_document: SchemaDocument) -> SchemaStore:
    return SchemaStore(sample_document)


@pytest.fixture
def client(api_store: SchemaStore, storage: FakeStorage):
    persistence = PersistenceClient("http://storage", transport=httpx.MockTransport(storage))
    app = create_app(store=api_store, persistence=persistence, settings=Settings(user="tester"))
    with TestClient(app) as test_client:
        yield test_client


def test_health(client: TestClient) -> None:
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok", "connections": 0}


def test_get_schema(client: TestClient) -> None:
    state = client.get("/api/schema").json()
    assert [t["id"] for t in state["schema"]["tables"]] == ["users", "posts"]
    assert state["can_undo"] is False
    assert state["is_dirty"] is False


def test_get_table(client: TestClient) -> None:
    table = client.get("/api/tables/users").json()["table"]
    assert table["columns"][0]["isPk"] is True
    assert client.get("/api/tables/nope").status_code == 404


def test_dispatch_command(client: TestClient, api_store: SchemaStore) -> None:
    response = client.post("/api/commands", json={"type": "add_table", "id": "t9", "name": "tags"})
    assert response.status_code == 200
    body = response.json()
    assert body["changed"] is True
    assert body["state"]["can_undo"] is True
    assert api_store.document.get_table("t9").name == "tags"


def test_noop_command_reports_unchanged(client: TestClient) -> None:
    body = client.post("/api/commands", json={"type": "delete_table", "id": "ghost"}).json()
    assert body["success"] is True
    assert body["changed"] is False


@pytest.mark.parametrize("payload", [{"type": "explode"}, {"type": "delete_table"}, {"name": "x"}])
def test_invalid_command(client: TestClient, payload: dict) -> None:
    response = client.post("/api/commands", json=payload)
    assert response.status_code == 400
    assert response.json()["detail"].startswith("Invalid command")


def test_undo_redo(client: TestClient) -> None:
    assert client.post("/api/undo").json() == {"success": False, "message": "Nothing to undo"}

    client.post("/api/commands", json={"type": "delete_table", "id": "posts"})
    undone = client.post("/api/undo").json()
    assert undone["success"] is True
    assert len(undone["schema"]["tables"]) == 2
    assert len(undone["schema"]["relationships"]) == 1

    redone = client.post("/api/redo").json()
    assert [t["id"] for t in redone["schema"]["tables"]] == ["users"]
    assert client.post("/api/redo").json()["message"] == "Nothing to redo"


def test_import_replaces_schema(client: TestClient) -> None:
    response = client.post("/api/schema/import", json={"tables": [{"id": "a", "name": "a"}]})
    assert response.status_code == 200
    schema = response.json()["schema"]
    assert [t["id"] for t in schema["tables"]] == ["a"]
    assert schema["relationships"] == []

    assert client.post("/api/undo").json()["success"] is True


def test_import_rejects_non_object(client: TestClient) -> None:
    response = client.post("/api/schema/import", json=[1, 2])
    assert response.status_code == 400


def test_append(client: TestClient) -> None:
    response = client.post("/api/schema/append", json=STORED_SCHEMA)
    body = response.json()
    assert body["tables_added"] == 1
    appended = body["schema"]["tables"][-1]
    assert appended["name"] == "stored"
    assert appended["id"] != "stored"


def test_append_requires_tables(client: TestClient) -> None:
    response = client.post("/api/schema/append", json={"relationships": []})
    assert response.status_code == 400
    assert "tables" in response.json()["detail"]


def test_auto_layout(client: TestClient, api_store: SchemaStore) -> None:
    response = client.post("/api/layout/auto", json={"direction": "TB"})
    assert response.json() == {"success": True, "direction": "TB"}
    assert api_store.can_undo


def test_auto_layout_without_tables(client: TestClient) -> None:
    client.post("/api/schema/import", json={})
    response = client.post("/api/layout/auto", json={})
    assert response.status_code == 400
    assert response.json()["detail"] == "No tables to layout"


def test_validate(client: TestClient) -> None:
    body = client.get("/api/schema/validate").json()
    assert body["issues"] == []
    assert body["summary"]["valid"] is True


def test_scene(client: TestClient) -> None:
    scene = client.get("/api/schema/scene", params={"hovered": "users"}).json()["scene"]
    assert scene["relationships"][0]["highlighted"] is True
    assert scene["relationships"][0]["path"].startswith("M ")


def test_load_project_marks_saved(client: TestClient, api_store: SchemaStore) -> None:
    client.post("/api/commands", json={"type": "add_table"})
    assert api_store.is_dirty

    body = client.post("/api/projects/p1/load").json()
    assert [t["id"] for t in body["schema"]["tables"]] == ["stored"]
    assert not api_store.is_dirty
    assert api_store.can_undo


def test_load_missing_project(client: TestClient) -> None:
    assert client.post("/api/projects/missing/load").status_code == 404


def test_save_project(client: TestClient, api_store: SchemaStore, storage: FakeStorage) -> None:
    client.post("/api/commands", json={"type": "add_table", "id": "t9"})
    response = client.post("/api/projects/p1/save", json={"description": "first cut"})

    assert response.status_code == 200
    assert response.json()["version"] == {"id": "v2", "user": "tester", "description": "first cut"}
    assert [(m, p) for m, p, _ in storage.requests] == [
        ("PUT", "/api/projects/p1"),
        ("POST", "/api/projects/p1/versions"),
    ]
    saved = storage.requests[0][2]["schema"]
    assert any(t["id"] == "t9" for t in saved["tables"])
    assert not api_store.is_dirty


def test_save_failure_keeps_dirty(client: TestClient, api_store: SchemaStore, storage: FakeStorage) -> None:
    client.post("/api/commands", json={"type": "add_table"})
    storage.fail = True
    response = client.post("/api/projects/p1/save")
    assert response.status_code == 502
    assert "database is locked" in response.json()["detail"]
    assert api_store.is_dirty


def test_versions(client: TestClient) -> None:
    body = client.get("/api/projects/p1/versions").json()
    assert [v["id"] for v in body["versions"]] == ["v2", "v1"]


def test_restore_version_is_undoable(client: TestClient) -> None:
    body = client.post("/api/versions/v1/restore").json()
    assert [t["id"] for t in body["schema"]["tables"]] == ["stored"]
    undone = client.post("/api/undo").json()
    assert [t["id"] for t in undone["schema"]["tables"]] == ["users", "posts"]
    assert client.post("/api/versions/missing/restore").status_code == 404


def test_describe_version(client: TestClient) -> None:
    response = client.put("/api/versions/v1", json={"description": "renamed"})
    assert response.json()["version"]["description"] == "renamed"


def test_websocket_ping_and_updates(client: TestClient) -> None:
    with client.websocket_connect("/ws") as websocket:
        websocket.send_text("ping")
        assert websocket.receive_json() == {"type": "pong"}

        client.post("/api/commands", json={"type": "add_table"})
        event = websocket.receive_json()
        assert event == {"type": "schema_updated", "can_undo": True, "can_redo": False, "is_dirty": True}


def test_invalid_history_snapshot_is_rejected(client: TestClient, api_store: SchemaStore) -> None:
    response = client.post("/api/commands", json={"type": "push_history", "snapshot": {"tables": "garbage"}})
    assert response.status_code == 400
    assert api_store.past == []
