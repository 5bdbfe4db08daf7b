"""
ERD Canvas Core - Schema models, commands, history store, layout and canvas interaction.

This module provides the core functionality used by both the backend API
and the MCP tools, ensuring a single source of truth for all schema logic.
"""

from .models import (
    # Core models
    Position,
    Column,
    Table,
    Relationship,
    Bookmark,
    SchemaDocument,
    Snapshot,
    generate_id,
)

from .commands import (
    Command,
    BaseCommand,
    HistoryPolicy,
    AddTable,
    UpdateTable,
    DeleteTable,
    MoveTable,
    ResizeTable,
    AssignTableToBookmark,
    CopyTable,
    PasteTable,
    AddColumn,
    UpdateColumn,
    DeleteColumn,
    AddRelationship,
    DeleteRelationship,
    AddBookmark,
    UpdateBookmark,
    MoveBookmark,
    ResizeBookmark,
    DeleteBookmark,
    AutoLayout,
    ImportSchema,
    AppendSchema,
    PushHistory,
    Undo,
    Redo,
    apply_command,
    parse_command,
)

from .store import SchemaStore, MAX_HISTORY
from .merge import SchemaFragmentError, parse_fragment, normalize_fragment, merge_into
from .validation import validate_schema, validation_summary, ValidationIssue, IssueSeverity
from .layout import LayoutDirection, layered_layout, compute_table_positions
from .routing import Scene, build_scene, route_relationship
from .controller import CanvasController, GestureKind, HitKind, HitTarget

__all__ = [
    # Models
    "Position",
    "Column",
    "Table",
    "Relationship",
    "Bookmark",
    "SchemaDocument",
    "Snapshot",
    "generate_id",
    # Commands
    "Command",
    "BaseCommand",
    "HistoryPolicy",
    "AddTable",
    "UpdateTable",
    "DeleteTable",
    "MoveTable",
    "ResizeTable",
    "AssignTableToBookmark",
    "CopyTable",
    "PasteTable",
    "AddColumn",
    "UpdateColumn",
    "DeleteColumn",
    "AddRelationship",
    "DeleteRelationship",
    "AddBookmark",
    "UpdateBookmark",
    "MoveBookmark",
    "ResizeBookmark",
    "DeleteBookmark",
    "AutoLayout",
    "ImportSchema",
    "AppendSchema",
    "PushHistory",
    "Undo",
    "Redo",
    "apply_command",
    "parse_command",
    # Store
    "SchemaStore",
    "MAX_HISTORY",
    # Merge
    "SchemaFragmentError",
    "parse_fragment",
    "normalize_fragment",
    "merge_into",
    # Validation
    "validate_schema",
    "validation_summary",
    "ValidationIssue",
    "IssueSeverity",
    # Layout
    "LayoutDirection",
    "layered_layout",
    "compute_table_positions",
    # Rendering & interaction
    "Scene",
    "build_scene",
    "route_relationship",
    "CanvasController",
    "GestureKind",
    "HitKind",
    "HitTarget",
]
