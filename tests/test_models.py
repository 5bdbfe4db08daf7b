"""Tests for the schema document models and their JSON wire format."""

from erd_core import Bookmark, Column, SchemaDocument, Table
from erd_core.models import DEFAULT_COLOR, default_columns


def test_table_defaults() -> None:
    table = Table()
    assert table.name == "new_table"
    assert (table.position.x, table.position.y) == (250, 250)
    assert (table.width, table.height) == (240, 200)
    assert table.color == DEFAULT_COLOR
    assert table.bookmark_id is None
    assert table.columns == []


def test_default_columns_is_single_primary_key() -> None:
    columns = default_columns()
    assert len(columns) == 1
    assert columns[0].name == "id"
    assert columns[0].type == "VARCHAR(255)"
    assert columns[0].is_pk


def test_bookmark_defaults() -> None:
    bookmark = Bookmark()
    assert bookmark.name == "New Bookmark"
    assert (bookmark.x, bookmark.y, bookmark.width, bookmark.height) == (100, 100, 400, 300)


def test_json_uses_camel_case(sample_document: SchemaDocument) -> None:
    data = sample_document.to_json_dict()
    column = data["tables"][0]["columns"][0]
    assert column["isPk"] is True
    assert "bookmarkId" in data["tables"][0]
    assert data["relationships"][0]["fromTable"] == "posts"
    assert data["relationships"][0]["toCol"] == "u_id"


def test_accepts_both_spellings() -> None:
    assert Column.model_validate({"name": "a", "isPk": True}).is_pk
    assert Column.model_validate({"name": "a", "is_pk": True}).is_pk
    table = Table.model_validate({"bookmarkId": "b1"})
    assert table.bookmark_id == "b1"


def test_snapshot_restores_equal_document(sample_document: SchemaDocument) -> None:
    restored = SchemaDocument.from_json_dict(sample_document.to_json_dict())
    assert restored == sample_document


def test_missing_lists_default_to_empty() -> None:
    document = SchemaDocument.from_json_dict({"tables": None})
    assert document.tables == []
    assert document.relationships == []
    assert document.bookmarks == []


def test_null_sizes_fall_back_to_defaults() -> None:
    table = Table.model_validate({"name": "t", "width": None, "height": None, "position": None})
    assert (table.width, table.height) == (240, 200)
    assert (table.position.x, table.position.y) == (250, 250)


def test_lookups(sample_document: SchemaDocument) -> None:
    assert sample_document.get_table("users").name == "users"
    assert sample_document.get_table("missing") is None
    assert sample_document.get_relationship("r1").to_table == "users"
    assert sample_document.get_bookmark("b1") is None
    posts = sample_document.get_table("posts")
    assert posts.column_index("p_user") == 1
    assert posts.column_index("nope") == -1
    assert posts.center() == (520, 100)


def test_resolves(sample_document: SchemaDocument) -> None:
    relationship = sample_document.relationships[0]
    assert sample_document.resolves(relationship)
    broken = relationship.model_copy(update={"to_col": "gone"})
    assert not sample_document.resolves(broken)
