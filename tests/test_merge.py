"""Tests for fragment parsing and id remapping on append."""

import pytest

from erd_core import SchemaDocument, SchemaFragmentError, merge_into, normalize_fragment, parse_fragment
from erd_core.merge import duplicate_table


@pytest.fixture
def fragment() -> dict:
    return {
        "tables": [
            {
                "id": "t1",
                "name": "customers",
                "position": {"x": 100, "y": 100},
                "bookmarkId": "bm",
                "columns": [{"id": "c1", "name": "id", "isPk": True}],
            },
            {
                "id": "t2",
                "name": "orders",
                "position": {"x": 500, "y": 100},
                "bookmarkId": "elsewhere",
                "columns": [{"id": "c1", "name": "id", "isPk": True}, {"id": "c2", "name": "customer_id"}],
            },
        ],
        "relationships": [
            {"id": "r", "fromTable": "t2", "fromCol": "c2", "toTable": "t1", "toCol": "c1"},
            {"id": "dangling", "fromTable": "t2", "fromCol": "c2", "toTable": "t9", "toCol": "c1"},
        ],
        "bookmarks": [{"id": "bm", "name": "Sales", "x": 80, "y": 60, "width": 400, "height": 300}],
    }


@pytest.mark.parametrize(
    ("payload", "message"),
    [
        ([], "must be a JSON object"),
        ("tables", "must be a JSON object"),
        ({"relationships": []}, "missing the 'tables' list"),
        ({"tables": {"a": 1}}, "'tables' must be a list"),
        ({"tables": [], "bookmarks": "x"}, "'bookmarks' must be a list"),
        ({"tables": [{"columns": [{"isPk": "maybe"}]}]}, "Invalid schema fragment"),
    ],
)
def test_rejects_malformed_fragments(payload, message: str) -> None:
    with pytest.raises(SchemaFragmentError, match=message):
        parse_fragment(payload)


def test_fragment_error_is_value_error() -> None:
    with pytest.raises(ValueError):
        parse_fragment(None)


def test_import_path_defaults_missing_lists() -> None:
    document = parse_fragment({}, require_tables=False)
    assert document == SchemaDocument()


def test_fresh_ids_and_offset(fragment: dict) -> None:
    parsed = parse_fragment(fragment)
    normalized = normalize_fragment(parsed)

    old_table_ids = {"t1", "t2"}
    assert not old_table_ids & {t.id for t in normalized.tables}
    assert [t.name for t in normalized.tables] == ["customers", "orders"]
    customers, orders = normalized.tables
    assert (customers.position.x, customers.position.y) == (120, 120)
    assert (orders.position.x, orders.position.y) == (520, 120)
    assert customers.columns[0].id != "c1"
    assert customers.columns[0].id != orders.columns[0].id

    bookmark = normalized.bookmarks[0]
    assert bookmark.id != "bm"
    assert (bookmark.x, bookmark.y) == (100, 80)
    assert customers.bookmark_id == bookmark.id
    assert orders.bookmark_id is None


def test_relationships_remapped_and_dangling_dropped(fragment: dict) -> None:
    normalized = normalize_fragment(parse_fragment(fragment))
    customers, orders = normalized.tables

    assert len(normalized.relationships) == 1
    rel = normalized.relationships[0]
    assert rel.id != "r"
    assert (rel.from_table, rel.from_col) == (orders.id, orders.columns[1].id)
    assert (rel.to_table, rel.to_col) == (customers.id, customers.columns[0].id)
    assert normalized.resolves(rel)


def test_appending_twice_never_collides(sample_document: SchemaDocument, fragment: dict) -> None:
    parsed = parse_fragment(fragment)
    merged = merge_into(merge_into(sample_document, parsed), parsed)

    table_ids = [t.id for t in merged.tables]
    assert len(table_ids) == len(set(table_ids)) == 6
    rel_ids = [r.id for r in merged.relationships]
    assert len(rel_ids) == len(set(rel_ids)) == 3
    assert all(merged.resolves(r) for r in merged.relationships)
    assert len(sample_document.tables) == 2


def test_duplicate_table(sample_document: SchemaDocument) -> None:
    users = sample_document.get_table("users").model_copy(update={"bookmark_id": "b1"})
    copy = duplicate_table(users)
    assert copy.name == "users_copy"
    assert copy.id != users.id
    assert (copy.position.x, copy.position.y) == (20, 20)
    assert copy.bookmark_id is None
    assert [c.name for c in copy.columns] == ["id", "email"]
    assert {c.id for c in copy.columns}.isdisjoint({c.id for c in users.columns})


def test_repeated_incoming_ids_get_distinct_fresh_ids(sample_document: SchemaDocument) -> None:
    parsed = parse_fragment({
        "tables": [
            {"id": "t", "name": "first", "columns": [{"id": "c"}, {"id": "c"}]},
            {"id": "t", "name": "second", "columns": [{"id": "c"}]},
        ],
        "relationships": [{"fromTable": "t", "fromCol": "c", "toTable": "t", "toCol": "c"}],
        "bookmarks": [{"id": "b"}, {"id": "b"}],
    })
    merged = merge_into(sample_document, parsed)

    table_ids = [t.id for t in merged.tables]
    assert len(table_ids) == len(set(table_ids)) == 4
    column_ids = [c.id for t in merged.tables[2:] for c in t.columns]
    assert len(column_ids) == len(set(column_ids)) == 3
    bookmark_ids = [b.id for b in merged.bookmarks]
    assert len(bookmark_ids) == len(set(bookmark_ids)) == 2

    first = merged.tables[2]
    rel = merged.relationships[-1]
    assert rel.from_table == rel.to_table == first.id
    assert rel.from_col == rel.to_col == first.columns[0].id
