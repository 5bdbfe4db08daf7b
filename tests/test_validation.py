"""Tests for schema validation and dangling-reference pruning."""

from erd_core import Column, IssueSeverity, Relationship, SchemaDocument, Table, validate_schema, validation_summary
from erd_core.validation import prune_dangling


def messages(document: SchemaDocument, severity: IssueSeverity) -> list[str]:
    return [i.message for i in validate_schema(document) if i.severity == severity]


def test_empty_schema_is_info_only() -> None:
    issues = validate_schema(SchemaDocument())
    assert [(i.severity, i.message) for i in issues] == [(IssueSeverity.INFO, "Schema has no tables")]
    assert validation_summary(issues)["valid"] is True


def test_clean_schema(sample_document: SchemaDocument) -> None:
    assert validate_schema(sample_document) == []


def test_errors_and_warnings() -> None:
    document = SchemaDocument(
        tables=[
            Table(id="a", name="Users", columns=[Column(id="x", is_pk=True), Column(id="x")]),
            Table(id="b", name="users", bookmark_id="ghost", columns=[Column(id="y")]),
            Table(id="c", name="  ", columns=[Column(id="z", is_pk=True)]),
        ],
        relationships=[
            Relationship(id="r1", from_table="b", from_col="y", to_table="a", to_col="x"),
            Relationship(id="r2", from_table="b", from_col="y", to_table="a", to_col="x"),
            Relationship(id="r3", from_table="a", from_col="x", to_table="a", to_col="x"),
            Relationship(id="r4", from_table="a", from_col="x", to_table="gone", to_col="x"),
        ],
    )

    errors = messages(document, IssueSeverity.ERROR)
    assert any("Duplicate column id x" in m for m in errors)
    assert any("non-existent bookmark" in m for m in errors)
    assert any("missing table or column" in m for m in errors)

    warnings = messages(document, IssueSeverity.WARNING)
    assert "Duplicate table name: users" in warnings
    assert "Table users has no primary key" in warnings
    assert "Table has an empty name" in warnings
    assert "Duplicate relationship between the same columns" in warnings

    assert messages(document, IssueSeverity.INFO) == ["Self-referencing relationship"]

    summary = validation_summary(validate_schema(document))
    assert summary["valid"] is False
    assert summary["errors"] == 3
    assert summary["total"] == summary["errors"] + summary["warnings"] + summary["info"]


def test_issue_to_dict() -> None:
    document = SchemaDocument(tables=[Table(id="a", name="a", columns=[])])
    issue = validate_schema(document)[0]
    assert issue.to_dict() == {"type": "warning", "message": "Table a has no primary key", "table_id": "a"}


def test_prune_dangling(sample_document: SchemaDocument) -> None:
    document = sample_document.model_copy(deep=True)
    document.tables[0].bookmark_id = "ghost"
    document.relationships.append(
        Relationship(id="bad", from_table="users", from_col="u_id", to_table="posts", to_col="missing")
    )

    assert prune_dangling(document) == 2
    assert [r.id for r in document.relationships] == ["r1"]
    assert document.tables[0].bookmark_id is None
    assert prune_dangling(document) == 0
