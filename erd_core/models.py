"""
Core data models for schema documents.

These models define the canonical schema document:
- Tables with positioned, sized boxes holding an ordered list of columns
- Relationships connecting one column of a table to one column of another
- Bookmarks, the grouping rectangles that tables can belong to

Field Naming Convention:
- Python attributes are snake_case (`is_pk`, `bookmark_id`, `from_table`)
- JSON serialization outputs camelCase (`isPk`, `bookmarkId`, `fromTable`)
- Both spellings are accepted on input
"""

from typing import Any, Optional
import uuid

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Default geometry (world units)
DEFAULT_TABLE_WIDTH = 240
DEFAULT_TABLE_HEIGHT = 200
DEFAULT_TABLE_POSITION = (250, 250)
DEFAULT_BOOKMARK_WIDTH = 400
DEFAULT_BOOKMARK_HEIGHT = 300

DEFAULT_COLOR = "rgba(255, 255, 255, 0.05)"
DEFAULT_COLUMN_TYPE = "VARCHAR(255)"

# Snapshot of the three document lists, as produced by SchemaDocument.to_json_dict()
Snapshot = dict[str, list[dict]]


def generate_id() -> str:
    """Generate a globally unique id for tables, columns, relationships and bookmarks."""
    return str(uuid.uuid4())


class _WireModel(BaseModel):
    """Base for models serialized with camelCase aliases."""
    model_config = ConfigDict(populate_by_name=True)


class Position(BaseModel):
    """Top-left corner of a table in world space."""
    x: float = 0
    y: float = 0


class Column(_WireModel):
    """A column of a table."""
    id: str = Field(default_factory=generate_id)
    name: str = "new_col"
    type: str = DEFAULT_COLUMN_TYPE
    is_pk: bool = Field(default=False, alias="isPk")
    comment: str = ""


def default_columns() -> list[Column]:
    """Columns given to a freshly created table."""
    return [Column(name="id", type=DEFAULT_COLUMN_TYPE, is_pk=True)]


class Table(_WireModel):
    """A table on the canvas."""
    id: str = Field(default_factory=generate_id)
    name: str = "new_table"
    comment: str = ""
    position: Position = Field(
        default_factory=lambda: Position(x=DEFAULT_TABLE_POSITION[0], y=DEFAULT_TABLE_POSITION[1])
    )
    width: float = DEFAULT_TABLE_WIDTH
    height: float = DEFAULT_TABLE_HEIGHT
    color: str = DEFAULT_COLOR
    bookmark_id: Optional[str] = Field(default=None, alias="bookmarkId")
    columns: list[Column] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def fill_missing_sizes(cls, data: Any) -> Any:
        """Treat null/absent width, height and position as the defaults."""
        if isinstance(data, dict):
            for key in ("width", "height", "position"):
                if key in data and data[key] is None:
                    data = {k: v for k, v in data.items() if k != key}
        return data

    def center(self) -> tuple[float, float]:
        """Get the center point of the table."""
        return (self.position.x + self.width / 2, self.position.y + self.height / 2)

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (
            self.position.x,
            self.position.y,
            self.position.x + self.width,
            self.position.y + self.height,
        )

    def get_column(self, column_id: str) -> Optional[Column]:
        for column in self.columns:
            if column.id == column_id:
                return column
        return None

    def column_index(self, column_id: str) -> int:
        """Index of a column in display order, or -1."""
        for index, column in enumerate(self.columns):
            if column.id == column_id:
                return index
        return -1


class Relationship(_WireModel):
    """A relationship from one table column to another table column."""
    id: str = Field(default_factory=generate_id)
    from_table: str = Field(alias="fromTable")
    from_col: str = Field(alias="fromCol")
    to_table: str = Field(alias="toTable")
    to_col: str = Field(alias="toCol")

    def touches(self, table_id: str) -> bool:
        """True if the table is either endpoint."""
        return self.from_table == table_id or self.to_table == table_id


class Bookmark(BaseModel):
    """A visual grouping rectangle."""
    id: str = Field(default_factory=generate_id)
    name: str = "New Bookmark"
    x: float = 100
    y: float = 100
    width: float = DEFAULT_BOOKMARK_WIDTH
    height: float = DEFAULT_BOOKMARK_HEIGHT
    color: str = DEFAULT_COLOR

    def bounds(self) -> tuple[float, float, float, float]:
        """Get the bounding box (x, y, right, bottom)."""
        return (self.x, self.y, self.x + self.width, self.y + self.height)


class SchemaDocument(BaseModel):
    """
    The complete schema structure.
    This is the unit of persistence, import, export and history snapshots.
    """
    tables: list[Table] = Field(default_factory=list)
    relationships: list[Relationship] = Field(default_factory=list)
    bookmarks: list[Bookmark] = Field(default_factory=list)

    @model_validator(mode='before')
    @classmethod
    def default_missing_lists(cls, data: Any) -> Any:
        """Missing or null lists become empty lists."""
        if isinstance(data, dict):
            data = dict(data)
            for key in ("tables", "relationships", "bookmarks"):
                if data.get(key) is None:
                    data[key] = []
        return data

    def to_json_dict(self) -> Snapshot:
        """Convert to a JSON-serializable dict with camelCase field names."""
        return {
            "tables": [t.model_dump(by_alias=True) for t in self.tables],
            "relationships": [r.model_dump(by_alias=True) for r in self.relationships],
            "bookmarks": [b.model_dump() for b in self.bookmarks],
        }

    @classmethod
    def from_json_dict(cls, data: dict) -> "SchemaDocument":
        """Create a SchemaDocument from a JSON dict or snapshot."""
        return cls.model_validate(data)

    def get_table(self, table_id: str) -> Optional[Table]:
        """Get a table by ID."""
        for table in self.tables:
            if table.id == table_id:
                return table
        return None

    def get_relationship(self, relationship_id: str) -> Optional[Relationship]:
        """Get a relationship by ID."""
        for relationship in self.relationships:
            if relationship.id == relationship_id:
                return relationship
        return None

    def get_bookmark(self, bookmark_id: str) -> Optional[Bookmark]:
        """Get a bookmark by ID."""
        for bookmark in self.bookmarks:
            if bookmark.id == bookmark_id:
                return bookmark
        return None

    def resolves(self, relationship: Relationship) -> bool:
        """True if all four endpoints of the relationship exist."""
        source = self.get_table(relationship.from_table)
        target = self.get_table(relationship.to_table)
        if source is None or target is None:
            return False
        return (
            source.get_column(relationship.from_col) is not None
            and target.get_column(relationship.to_col) is not None
        )
