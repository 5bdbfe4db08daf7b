"""Tests for the storage service client."""

import asyncio
import json

import httpx
import pytest

from erd_backend.persistence import PersistenceClient, PersistenceError
from erd_core import SchemaDocument


def run(coro):
    return asyncio.run(coro)


def make_client(handler) -> PersistenceClient:
    return PersistenceClient("http://storage/", transport=httpx.MockTransport(handler))


async def call(handler, method: str, *args):
    client = make_client(handler)
    try:
        return await getattr(client, method)(*args)
    finally:
        await client.aclose()


def test_base_url_is_normalized() -> None:
    assert PersistenceClient("http://storage/").base_url == "http://storage"


@pytest.mark.parametrize(
    "payload",
    [
        {"id": "p1", "schema_data": None},
        {"id": "p1", "schema_data": {}},
        {"id": "p1", "schema_data": {"tables": "nope"}},
        {"id": "p1"},
    ],
)
def test_load_empty_project(payload: dict) -> None:
    document = run(call(lambda request: httpx.Response(200, json=payload), "load_schema", "p1"))
    assert document == SchemaDocument()


def test_load_reads_schema_data() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/projects/p1"
        return httpx.Response(200, json={"schema_data": {"tables": [{"id": "a", "name": "a", "bookmarkId": None}]}})

    document = run(call(handler, "load_schema", "p1"))
    assert [t.id for t in document.tables] == ["a"]
    assert document.relationships == []


def test_version_reads_schema_key() -> None:
    handler = lambda request: httpx.Response(200, json={"id": "v1", "schema": {"tables": [{"id": "b"}]}})
    document = run(call(handler, "get_version", "v1"))
    assert document.tables[0].id == "b"


def test_save_puts_then_posts_version(sample_document: SchemaDocument) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, json.loads(request.content)))
        if request.method == "POST":
            return httpx.Response(201, json={"id": "v7"})
        return httpx.Response(200, json={"id": "p1"})

    version = run(call(handler, "save_schema", "p1", sample_document, "ana", "init"))
    assert version == {"id": "v7"}
    assert [(m, p) for m, p, _ in seen] == [("PUT", "/api/projects/p1"), ("POST", "/api/projects/p1/versions")]
    assert seen[0][2] == {"schema": sample_document.to_json_dict()}
    assert seen[1][2]["user"] == "ana"
    assert seen[1][2]["description"] == "init"


def test_failed_put_skips_version(sample_document: SchemaDocument) -> None:
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.method)
        return httpx.Response(500, json={"error": "disk full"})

    with pytest.raises(PersistenceError, match="disk full") as excinfo:
        run(call(handler, "save_schema", "p1", sample_document))
    assert excinfo.value.status_code == 500
    assert seen == ["PUT"]


def test_connection_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(PersistenceError, match="unreachable") as excinfo:
        run(call(handler, "list_versions", "p1"))
    assert excinfo.value.status_code is None


def test_non_json_error_body() -> None:
    handler = lambda request: httpx.Response(503, text="upstream down")
    with pytest.raises(PersistenceError, match="upstream down"):
        run(call(handler, "get_version", "v1"))


def test_list_versions_must_be_a_list() -> None:
    handler = lambda request: httpx.Response(200, json={"versions": []})
    with pytest.raises(PersistenceError):
        run(call(handler, "list_versions", "p1"))


def test_describe_version() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.method == "PUT"
        return httpx.Response(200, json={"id": "v1", **json.loads(request.content)})

    assert run(call(handler, "describe_version", "v1", "baseline")) == {"id": "v1", "description": "baseline"}
