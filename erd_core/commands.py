"""
Schema commands - the tagged variants the store dispatches.

Every command is a pydantic model with a literal `type` tag, so a JSON
payload can be parsed into the right class with parse_command(). Each class
declares how the store treats it in history:

- STRUCTURAL: push the pre-mutation snapshot, clear redo, then apply
- CONTINUOUS: apply with no history push (drags, resizes); the controller
  pushes one snapshot when the gesture ends
- META: handled by the store itself (undo, redo, explicit push, copy)

apply_command() is pure: it never mutates its input and returns the very
same document object when the command is a no-op.
"""

import logging
from enum import Enum
from typing import Annotated, Callable, ClassVar, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from .layout import LayoutDirection, compute_table_positions
from .merge import duplicate_table, merge_into
from .models import (
    DEFAULT_COLOR,
    DEFAULT_COLUMN_TYPE,
    Bookmark,
    Column,
    Position,
    Relationship,
    SchemaDocument,
    Table,
    default_columns,
    generate_id,
)
from .validation import prune_dangling

logger = logging.getLogger(__name__)


class HistoryPolicy(str, Enum):
    """How the store records a command in history."""
    STRUCTURAL = "structural"
    CONTINUOUS = "continuous"
    META = "meta"


class BaseCommand(BaseModel):
    history: ClassVar[HistoryPolicy] = HistoryPolicy.STRUCTURAL

    def coalesce_key(self) -> Optional[tuple]:
        """Key under which fast repeated edits share one history entry."""
        return None


def _touched_fields(command: BaseModel, fields: tuple[str, ...]) -> frozenset[str]:
    return frozenset(f for f in fields if getattr(command, f) is not None)


# --- Table Commands ---

class AddTable(BaseCommand):
    """Add a table. Without columns it gets a single `id` primary key."""
    type: Literal["add_table"] = "add_table"
    id: str = Field(default_factory=generate_id)
    name: str = "new_table"
    comment: str = ""
    position: Position = Field(default_factory=lambda: Position(x=250, y=250))
    color: str = DEFAULT_COLOR
    columns: Optional[list[Column]] = None


class UpdateTable(BaseCommand):
    """Update table fields. Passing `columns` replaces the whole column list."""
    type: Literal["update_table"] = "update_table"
    id: str
    name: Optional[str] = None
    comment: Optional[str] = None
    color: Optional[str] = None
    columns: Optional[list[Column]] = None

    def coalesce_key(self) -> Optional[tuple]:
        if self.columns is not None:
            return None
        return (self.type, self.id, _touched_fields(self, ("name", "comment", "color")))


class DeleteTable(BaseCommand):
    """Delete a table and every relationship that touches it."""
    type: Literal["delete_table"] = "delete_table"
    id: str


class MoveTable(BaseCommand):
    type: Literal["move_table"] = "move_table"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.CONTINUOUS
    id: str
    position: Position


class ResizeTable(BaseCommand):
    type: Literal["resize_table"] = "resize_table"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.CONTINUOUS
    id: str
    width: float
    height: float


class AssignTableToBookmark(BaseCommand):
    """Set or clear a table's bookmark membership."""
    type: Literal["assign_table_to_bookmark"] = "assign_table_to_bookmark"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.CONTINUOUS
    table_id: str
    bookmark_id: Optional[str] = None


class CopyTable(BaseCommand):
    type: Literal["copy_table"] = "copy_table"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.META
    id: str


class PasteTable(BaseCommand):
    """Paste the clipboard table. The store fills `table` from its clipboard."""
    type: Literal["paste_table"] = "paste_table"
    table: Optional[Table] = None


# --- Column Commands ---

class AddColumn(BaseCommand):
    type: Literal["add_column"] = "add_column"
    table_id: str
    column_id: str = Field(default_factory=generate_id)
    name: str = "new_col"
    column_type: str = DEFAULT_COLUMN_TYPE
    is_pk: bool = False
    comment: str = ""


class UpdateColumn(BaseCommand):
    type: Literal["update_column"] = "update_column"
    table_id: str
    column_id: str
    name: Optional[str] = None
    column_type: Optional[str] = None
    is_pk: Optional[bool] = None
    comment: Optional[str] = None

    def coalesce_key(self) -> Optional[tuple]:
        fields = _touched_fields(self, ("name", "column_type", "is_pk", "comment"))
        return (self.type, self.table_id, self.column_id, fields)


class DeleteColumn(BaseCommand):
    """Delete a column and every relationship that uses it."""
    type: Literal["delete_column"] = "delete_column"
    table_id: str
    column_id: str


# --- Relationship Commands ---

class AddRelationship(BaseCommand):
    type: Literal["add_relationship"] = "add_relationship"
    id: str = Field(default_factory=generate_id)
    from_table: str
    from_col: str
    to_table: str
    to_col: str


class DeleteRelationship(BaseCommand):
    type: Literal["delete_relationship"] = "delete_relationship"
    id: str


# --- Bookmark Commands ---

class AddBookmark(BaseCommand):
    type: Literal["add_bookmark"] = "add_bookmark"
    id: str = Field(default_factory=generate_id)
    name: str = "New Bookmark"
    x: float = 100
    y: float = 100
    width: float = 400
    height: float = 300
    color: str = DEFAULT_COLOR


class UpdateBookmark(BaseCommand):
    type: Literal["update_bookmark"] = "update_bookmark"
    id: str
    name: Optional[str] = None
    color: Optional[str] = None

    def coalesce_key(self) -> Optional[tuple]:
        return (self.type, self.id, _touched_fields(self, ("name", "color")))


class MoveBookmark(BaseCommand):
    """Move a bookmark and its member tables by a delta."""
    type: Literal["move_bookmark"] = "move_bookmark"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.CONTINUOUS
    id: str
    dx: float
    dy: float


class ResizeBookmark(BaseCommand):
    type: Literal["resize_bookmark"] = "resize_bookmark"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.CONTINUOUS
    id: str
    width: float
    height: float


class DeleteBookmark(BaseCommand):
    """Delete a bookmark; member tables stay and lose their membership."""
    type: Literal["delete_bookmark"] = "delete_bookmark"
    id: str


# --- Document Commands ---

class AutoLayout(BaseCommand):
    type: Literal["auto_layout"] = "auto_layout"
    direction: LayoutDirection = LayoutDirection.LEFT_RIGHT


class ImportSchema(BaseCommand):
    """Replace the whole document."""
    type: Literal["import_schema"] = "import_schema"
    document: SchemaDocument


class AppendSchema(BaseCommand):
    """Append a fragment with remapped ids."""
    type: Literal["append_schema"] = "append_schema"
    fragment: SchemaDocument


# --- History Commands ---

class PushHistory(BaseCommand):
    """Push a caller-captured pre-operation snapshot verbatim."""
    type: Literal["push_history"] = "push_history"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.META
    snapshot: SchemaDocument


class Undo(BaseCommand):
    type: Literal["undo"] = "undo"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.META


class Redo(BaseCommand):
    type: Literal["redo"] = "redo"
    history: ClassVar[HistoryPolicy] = HistoryPolicy.META


Command = Annotated[
    Union[
        AddTable, UpdateTable, DeleteTable, MoveTable, ResizeTable,
        AssignTableToBookmark, CopyTable, PasteTable,
        AddColumn, UpdateColumn, DeleteColumn,
        AddRelationship, DeleteRelationship,
        AddBookmark, UpdateBookmark, MoveBookmark, ResizeBookmark, DeleteBookmark,
        AutoLayout, ImportSchema, AppendSchema,
        PushHistory, Undo, Redo,
    ],
    Field(discriminator="type"),
]

_command_adapter = TypeAdapter(Command)


def parse_command(data: dict) -> BaseCommand:
    """Parse a JSON command payload into its command class."""
    return _command_adapter.validate_python(data)


# --- Handlers ---
# Each handler mutates a private copy of the document and returns True if
# anything changed. Returning False makes apply_command a no-op.

def _add_table(doc: SchemaDocument, cmd: AddTable) -> bool:
    if doc.get_table(cmd.id) is not None:
        return False
    columns = cmd.columns if cmd.columns is not None else default_columns()
    doc.tables.append(Table(
        id=cmd.id,
        name=cmd.name,
        comment=cmd.comment,
        position=cmd.position,
        color=cmd.color,
        columns=[c.model_copy(deep=True) for c in columns],
    ))
    return True


def _update_table(doc: SchemaDocument, cmd: UpdateTable) -> bool:
    table = doc.get_table(cmd.id)
    if table is None:
        return False
    before = table.model_dump()
    if cmd.name is not None:
        table.name = cmd.name
    if cmd.comment is not None:
        table.comment = cmd.comment
    if cmd.color is not None:
        table.color = cmd.color
    if cmd.columns is not None:
        table.columns = [c.model_copy(deep=True) for c in cmd.columns]
        prune_dangling(doc)
    return table.model_dump() != before


def _delete_table(doc: SchemaDocument, cmd: DeleteTable) -> bool:
    if doc.get_table(cmd.id) is None:
        return False
    doc.tables = [t for t in doc.tables if t.id != cmd.id]
    doc.relationships = [r for r in doc.relationships if not r.touches(cmd.id)]
    return True


def _move_table(doc: SchemaDocument, cmd: MoveTable) -> bool:
    table = doc.get_table(cmd.id)
    if table is None or table.position == cmd.position:
        return False
    table.position = cmd.position.model_copy()
    return True


def _resize_table(doc: SchemaDocument, cmd: ResizeTable) -> bool:
    table = doc.get_table(cmd.id)
    if table is None or (table.width, table.height) == (cmd.width, cmd.height):
        return False
    table.width = cmd.width
    table.height = cmd.height
    return True


def _assign_table_to_bookmark(doc: SchemaDocument, cmd: AssignTableToBookmark) -> bool:
    table = doc.get_table(cmd.table_id)
    if table is None:
        return False
    if cmd.bookmark_id is not None and doc.get_bookmark(cmd.bookmark_id) is None:
        return False
    if table.bookmark_id == cmd.bookmark_id:
        return False
    table.bookmark_id = cmd.bookmark_id
    return True


def _paste_table(doc: SchemaDocument, cmd: PasteTable) -> bool:
    if cmd.table is None:
        return False
    doc.tables.append(duplicate_table(cmd.table))
    return True


def _add_column(doc: SchemaDocument, cmd: AddColumn) -> bool:
    table = doc.get_table(cmd.table_id)
    if table is None or table.get_column(cmd.column_id) is not None:
        return False
    table.columns.append(Column(
        id=cmd.column_id,
        name=cmd.name,
        type=cmd.column_type,
        is_pk=cmd.is_pk,
        comment=cmd.comment,
    ))
    return True


def _update_column(doc: SchemaDocument, cmd: UpdateColumn) -> bool:
    table = doc.get_table(cmd.table_id)
    column = table.get_column(cmd.column_id) if table else None
    if column is None:
        return False
    before = column.model_dump()
    if cmd.name is not None:
        column.name = cmd.name
    if cmd.column_type is not None:
        column.type = cmd.column_type
    if cmd.is_pk is not None:
        column.is_pk = cmd.is_pk
    if cmd.comment is not None:
        column.comment = cmd.comment
    return column.model_dump() != before


def _delete_column(doc: SchemaDocument, cmd: DeleteColumn) -> bool:
    table = doc.get_table(cmd.table_id)
    if table is None or table.get_column(cmd.column_id) is None:
        return False
    table.columns = [c for c in table.columns if c.id != cmd.column_id]
    doc.relationships = [
        r for r in doc.relationships
        if not (r.from_table == cmd.table_id and r.from_col == cmd.column_id)
        and not (r.to_table == cmd.table_id and r.to_col == cmd.column_id)
    ]
    return True


def _add_relationship(doc: SchemaDocument, cmd: AddRelationship) -> bool:
    relationship = Relationship(
        id=cmd.id,
        from_table=cmd.from_table,
        from_col=cmd.from_col,
        to_table=cmd.to_table,
        to_col=cmd.to_col,
    )
    if doc.get_relationship(cmd.id) is not None or not doc.resolves(relationship):
        return False
    doc.relationships.append(relationship)
    return True


def _delete_relationship(doc: SchemaDocument, cmd: DeleteRelationship) -> bool:
    if doc.get_relationship(cmd.id) is None:
        return False
    doc.relationships = [r for r in doc.relationships if r.id != cmd.id]
    return True


def _add_bookmark(doc: SchemaDocument, cmd: AddBookmark) -> bool:
    if doc.get_bookmark(cmd.id) is not None:
        return False
    doc.bookmarks.append(Bookmark(**cmd.model_dump(exclude={"type"})))
    return True


def _update_bookmark(doc: SchemaDocument, cmd: UpdateBookmark) -> bool:
    bookmark = doc.get_bookmark(cmd.id)
    if bookmark is None:
        return False
    before = bookmark.model_dump()
    if cmd.name is not None:
        bookmark.name = cmd.name
    if cmd.color is not None:
        bookmark.color = cmd.color
    return bookmark.model_dump() != before


def _move_bookmark(doc: SchemaDocument, cmd: MoveBookmark) -> bool:
    bookmark = doc.get_bookmark(cmd.id)
    if bookmark is None or (cmd.dx == 0 and cmd.dy == 0):
        return False
    bookmark.x += cmd.dx
    bookmark.y += cmd.dy
    for table in doc.tables:
        if table.bookmark_id == cmd.id:
            table.position = Position(x=table.position.x + cmd.dx, y=table.position.y + cmd.dy)
    return True


def _resize_bookmark(doc: SchemaDocument, cmd: ResizeBookmark) -> bool:
    bookmark = doc.get_bookmark(cmd.id)
    if bookmark is None or (bookmark.width, bookmark.height) == (cmd.width, cmd.height):
        return False
    bookmark.width = cmd.width
    bookmark.height = cmd.height
    return True


def _delete_bookmark(doc: SchemaDocument, cmd: DeleteBookmark) -> bool:
    if doc.get_bookmark(cmd.id) is None:
        return False
    doc.bookmarks = [b for b in doc.bookmarks if b.id != cmd.id]
    for table in doc.tables:
        if table.bookmark_id == cmd.id:
            table.bookmark_id = None
    return True


def _auto_layout(doc: SchemaDocument, cmd: AutoLayout) -> bool:
    if not doc.tables:
        return False
    positions = compute_table_positions(doc.tables, doc.relationships, cmd.direction)
    for table in doc.tables:
        table.position = positions[table.id]
    logger.info("Laid out %d tables (%s)", len(doc.tables), cmd.direction.value)
    return True


def _import_schema(doc: SchemaDocument, cmd: ImportSchema) -> bool:
    incoming = cmd.document.model_copy(deep=True)
    removed = prune_dangling(incoming)
    if removed:
        logger.warning("Dropped %d dangling references from imported schema", removed)
    doc.tables = incoming.tables
    doc.relationships = incoming.relationships
    doc.bookmarks = incoming.bookmarks
    return True


def _append_schema(doc: SchemaDocument, cmd: AppendSchema) -> bool:
    if not (cmd.fragment.tables or cmd.fragment.bookmarks):
        return False
    merged = merge_into(doc, cmd.fragment)
    doc.tables = merged.tables
    doc.relationships = merged.relationships
    doc.bookmarks = merged.bookmarks
    return True


_HANDLERS: dict[str, Callable[[SchemaDocument, BaseCommand], bool]] = {
    "add_table": _add_table,
    "update_table": _update_table,
    "delete_table": _delete_table,
    "move_table": _move_table,
    "resize_table": _resize_table,
    "assign_table_to_bookmark": _assign_table_to_bookmark,
    "paste_table": _paste_table,
    "add_column": _add_column,
    "update_column": _update_column,
    "delete_column": _delete_column,
    "add_relationship": _add_relationship,
    "delete_relationship": _delete_relationship,
    "add_bookmark": _add_bookmark,
    "update_bookmark": _update_bookmark,
    "move_bookmark": _move_bookmark,
    "resize_bookmark": _resize_bookmark,
    "delete_bookmark": _delete_bookmark,
    "auto_layout": _auto_layout,
    "import_schema": _import_schema,
    "append_schema": _append_schema,
}


def apply_command(document: SchemaDocument, command: BaseCommand) -> SchemaDocument:
    """
    Apply a document command.

    Returns a new document, or `document` itself when the command changes
    nothing (unknown id, identical values) or only concerns history/clipboard.
    """
    handler = _HANDLERS.get(command.type)
    if handler is None:
        return document

    updated = document.model_copy(deep=True)
    if not handler(updated, command):
        return document
    return updated
