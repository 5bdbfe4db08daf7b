"""
Merge/import normalization for schema fragments from external producers.

Fragments come from other documents, version restores, the reverse
engineering parser or a generator. Two entry points:

- parse_fragment: turn untrusted JSON into a SchemaDocument, or fail with a
  descriptive SchemaFragmentError before anything is mutated
- normalize_fragment: give every incoming table, column, relationship and
  bookmark a fresh id so the fragment can be appended to any document
"""

import logging
from typing import Any

from pydantic import ValidationError

from .models import Position, SchemaDocument, Table, Relationship, Bookmark, generate_id

logger = logging.getLogger(__name__)

# Applied to every appended table and bookmark
APPEND_OFFSET = 20


class SchemaFragmentError(ValueError):
    """Raised when an external schema fragment cannot be used."""


def parse_fragment(data: Any, require_tables: bool = True) -> SchemaDocument:
    """
    Validate an external schema fragment.

    Args:
        data: Decoded JSON payload
        require_tables: Reject payloads without a `tables` list (append path).
            The import path passes False and lets missing lists default to empty.

    Returns:
        The parsed SchemaDocument

    Raises:
        SchemaFragmentError: If the payload is not usable
    """
    if not isinstance(data, dict):
        raise SchemaFragmentError(
            f"Schema fragment must be a JSON object, got {type(data).__name__}"
        )

    if require_tables and "tables" not in data:
        raise SchemaFragmentError("Schema fragment is missing the 'tables' list")

    for key in ("tables", "relationships", "bookmarks"):
        value = data.get(key)
        if value is not None and not isinstance(value, list):
            raise SchemaFragmentError(f"Schema fragment field '{key}' must be a list")

    try:
        return SchemaDocument.model_validate(data)
    except ValidationError as e:
        raise SchemaFragmentError(f"Invalid schema fragment: {e}") from e


def normalize_fragment(fragment: SchemaDocument) -> SchemaDocument:
    """
    Produce a collision-free copy of a fragment.

    Every table, column, relationship and bookmark gets a fresh id. Tables
    and bookmarks are shifted by APPEND_OFFSET on each axis. Relationships
    with an endpoint that cannot be remapped are dropped; table memberships
    that cannot be remapped are cleared. When the fragment repeats an id,
    references resolve to its first occurrence.
    """
    # Old -> new maps used for reference remapping; the first occurrence of a
    # repeated incoming id wins. Every element still gets its own fresh id.
    table_ids: dict[str, str] = {}
    column_ids: dict[tuple[str, str], str] = {}
    bookmark_ids: dict[str, str] = {}

    bookmarks = []
    for b in fragment.bookmarks:
        new_id = generate_id()
        bookmark_ids.setdefault(b.id, new_id)
        bookmarks.append(Bookmark(
            **b.model_dump(exclude={"id", "x", "y"}),
            id=new_id,
            x=b.x + APPEND_OFFSET,
            y=b.y + APPEND_OFFSET,
        ))

    tables = []
    for table in fragment.tables:
        remapped = table.model_copy(deep=True)
        remapped.id = generate_id()
        table_ids.setdefault(table.id, remapped.id)
        for column in remapped.columns:
            new_id = generate_id()
            if table_ids[table.id] == remapped.id:
                column_ids.setdefault((table.id, column.id), new_id)
            column.id = new_id
        remapped.position = Position(
            x=table.position.x + APPEND_OFFSET,
            y=table.position.y + APPEND_OFFSET,
        )
        remapped.bookmark_id = bookmark_ids.get(table.bookmark_id) if table.bookmark_id else None
        tables.append(remapped)

    relationships = []
    dropped = 0
    for rel in fragment.relationships:
        from_table = table_ids.get(rel.from_table)
        to_table = table_ids.get(rel.to_table)
        from_col = column_ids.get((rel.from_table, rel.from_col))
        to_col = column_ids.get((rel.to_table, rel.to_col))
        if not (from_table and to_table and from_col and to_col):
            dropped += 1
            continue
        relationships.append(Relationship(
            id=generate_id(),
            from_table=from_table,
            from_col=from_col,
            to_table=to_table,
            to_col=to_col,
        ))

    if dropped:
        logger.debug("Dropped %d unresolvable relationships while normalizing fragment", dropped)

    return SchemaDocument(tables=tables, relationships=relationships, bookmarks=bookmarks)


def merge_into(document: SchemaDocument, fragment: SchemaDocument) -> SchemaDocument:
    """Return a new document with the normalized fragment appended."""
    normalized = normalize_fragment(fragment)
    merged = document.model_copy(deep=True)
    merged.tables.extend(normalized.tables)
    merged.relationships.extend(normalized.relationships)
    merged.bookmarks.extend(normalized.bookmarks)
    return merged


def duplicate_table(table: Table, suffix: str = "_copy", offset: float = APPEND_OFFSET) -> Table:
    """Copy a table with fresh ids, a suffixed name, an offset position and no bookmark."""
    copy = table.model_copy(deep=True)
    copy.id = generate_id()
    copy.name = f"{table.name}{suffix}"
    copy.position = Position(x=table.position.x + offset, y=table.position.y + offset)
    copy.bookmark_id = None
    for column in copy.columns:
        column.id = generate_id()
    return copy
