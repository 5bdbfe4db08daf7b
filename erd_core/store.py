"""
Schema Store - the authoritative schema document, clipboard and history.

This module implements:
- A single dispatch entry point for every document mutation
- Bounded linear undo/redo history using snapshots
- Coalescing of fast repeated scalar edits (typing a name) into one entry
- A one-table clipboard independent of history
- Change callbacks for real-time sync
"""

import logging
import time
from typing import Callable, Optional

from .commands import (
    BaseCommand,
    CopyTable,
    HistoryPolicy,
    PasteTable,
    PushHistory,
    Redo,
    Undo,
    apply_command,
)
from .models import SchemaDocument, Snapshot, Table

logger = logging.getLogger(__name__)

MAX_HISTORY = 50
COALESCE_WINDOW_SECONDS = 1.0


class SchemaStore:
    """
    Owns the schema document and its undo/redo history.

    The history system works via snapshots:
    - A structural command saves a snapshot of the document before applying
    - A continuous command (drag, resize) applies without saving; the caller
      pushes the snapshot it captured at gesture start via PushHistory
    - Undo restores the previous snapshot; redo re-applies one from the
      future stack
    """

    def __init__(
        self,
        document: Optional[SchemaDocument] = None,
        max_history: int = MAX_HISTORY,
        coalesce_window: float = COALESCE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._document = document or SchemaDocument()
        self._past: list[Snapshot] = []    # Past states (snapshots)
        self._future: list[Snapshot] = []  # Future states (for redo), nearest first
        self._clipboard: Optional[Table] = None
        self._max_history = max_history
        self._coalesce_window = coalesce_window
        self._clock = clock
        self._coalesce_key: Optional[tuple] = None
        self._coalesce_at = 0.0
        self._dirty = False  # True if changes exist since the last save
        self._on_change_callbacks: list[Callable] = []

    # --- Properties ---

    @property
    def document(self) -> SchemaDocument:
        """Get the current document."""
        return self._document

    @property
    def past(self) -> list[Snapshot]:
        return list(self._past)

    @property
    def future(self) -> list[Snapshot]:
        return list(self._future)

    @property
    def clipboard(self) -> Optional[Table]:
        return self._clipboard

    @property
    def is_dirty(self) -> bool:
        """Check if there are unsaved changes."""
        return self._dirty

    @property
    def can_undo(self) -> bool:
        """Check if undo is available."""
        return len(self._past) > 0

    @property
    def can_redo(self) -> bool:
        """Check if redo is available."""
        return len(self._future) > 0

    def snapshot(self) -> Snapshot:
        """Value copy of the current document."""
        return self._document.to_json_dict()

    def mark_saved(self):
        self._dirty = False

    # --- Change Callbacks ---

    def on_change(self, callback: Callable):
        """Register a callback for document changes."""
        self._on_change_callbacks.append(callback)

    def _notify_change(self):
        """Notify all registered callbacks of a change."""
        for callback in self._on_change_callbacks:
            callback()

    # --- History Management ---

    def _push_past(self, snapshot: Snapshot):
        """Save a snapshot to history and invalidate redo."""
        self._future.clear()
        self._past.append(snapshot)
        # Trim history if too long
        if len(self._past) > self._max_history:
            del self._past[:len(self._past) - self._max_history]

    def end_edit(self):
        """Close the current coalescing run so the next edit gets its own entry."""
        self._coalesce_key = None

    def _should_coalesce(self, key: Optional[tuple]) -> bool:
        return (
            key is not None
            and key == self._coalesce_key
            and self._clock() - self._coalesce_at <= self._coalesce_window
        )

    def _set_document(self, document: SchemaDocument):
        self._document = document
        self._dirty = True
        self._notify_change()

    # --- Dispatch ---

    def dispatch(self, command: BaseCommand) -> SchemaDocument:
        """
        Apply a command and record it in history according to its policy.

        Commands that reference ids which do not exist leave the document and
        history untouched.
        """
        if isinstance(command, Undo):
            self.undo()
            return self._document
        if isinstance(command, Redo):
            self.redo()
            return self._document
        if isinstance(command, PushHistory):
            self.push_history(command.snapshot.to_json_dict())
            return self._document
        if isinstance(command, CopyTable):
            self.copy_table(command.id)
            return self._document

        if isinstance(command, PasteTable) and command.table is None:
            if self._clipboard is None:
                return self._document
            command = PasteTable(table=self._clipboard)

        key = command.coalesce_key()
        updated = apply_command(self._document, command)
        if updated is self._document:
            return self._document

        if command.history == HistoryPolicy.STRUCTURAL:
            if not self._should_coalesce(key):
                self._push_past(self.snapshot())
                self._coalesce_at = self._clock()
            self._coalesce_key = key
        else:
            self._coalesce_key = None

        self._set_document(updated)
        return self._document

    def push_history(self, snapshot: Snapshot):
        """
        Push a caller-captured pre-operation snapshot.

        Raises:
            ValueError: If the snapshot is not a valid schema document.
                History is left untouched.
        """
        document = SchemaDocument.from_json_dict(snapshot)
        self._coalesce_key = None
        self._push_past(document.to_json_dict())
        self._notify_change()

    # --- Undo/Redo ---

    def undo(self) -> Optional[SchemaDocument]:
        """Undo the last action."""
        if not self.can_undo:
            return None

        # Restore first; both stacks stay as they were if this raises
        document = SchemaDocument.from_json_dict(self._past[-1])
        self._coalesce_key = None
        self._future.insert(0, self.snapshot())
        self._past.pop()
        logger.debug("Undo (%d left)", len(self._past))
        self._set_document(document)
        return self._document

    def redo(self) -> Optional[SchemaDocument]:
        """Redo the last undone action."""
        if not self.can_redo:
            return None

        document = SchemaDocument.from_json_dict(self._future[0])
        self._coalesce_key = None
        self._past.append(self.snapshot())
        self._future.pop(0)
        logger.debug("Redo (%d left)", len(self._future))
        self._set_document(document)
        return self._document

    # --- Clipboard ---

    def copy_table(self, table_id: str) -> bool:
        """Copy a table into the clipboard. Does not touch history."""
        table = self._document.get_table(table_id)
        if table is None:
            return False
        self._clipboard = table.model_copy(deep=True)
        return True

    # --- State ---

    def get_state(self) -> dict:
        """Get the full current state for API responses."""
        return {
            "schema": self._document.to_json_dict(),
            "is_dirty": self._dirty,
            "can_undo": self.can_undo,
            "can_redo": self.can_redo,
            "history": {"past": len(self._past), "future": len(self._future)},
            "clipboard": self._clipboard.model_dump(by_alias=True) if self._clipboard else None,
        }
