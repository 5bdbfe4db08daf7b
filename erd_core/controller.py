"""
Canvas interaction controller.

Turns raw pointer, wheel and keyboard events into store commands. All
transient interaction state (the active gesture, the snapshot captured when
it began, offsets, pan/zoom, hover and selection) lives here and never
enters the document.

Gestures:
- drag a table body: snapped continuous moves, one history entry on release,
  then bookmark membership is re-evaluated from the table's center
- drag a bookmark header: incremental group moves of the bookmark and its
  member tables, one history entry on release
- drag a resize handle: continuous resizes, one history entry on release
- drag from a column connector to a connector of another table: creates a
  relationship; released anywhere else, the connection is cancelled
- drag empty canvas: pans the view
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional

from .commands import (
    AddBookmark,
    AddRelationship,
    AddTable,
    AssignTableToBookmark,
    CopyTable,
    DeleteBookmark,
    DeleteRelationship,
    DeleteTable,
    MoveBookmark,
    MoveTable,
    PasteTable,
    PushHistory,
    Redo,
    ResizeBookmark,
    ResizeTable,
    Undo,
)
from .geometry import (
    BOOKMARK_HEADER_HEIGHT,
    BUTTON_ZOOM_STEP,
    COLUMN_ROW_HEIGHT,
    CONNECTOR_HIT_RADIUS,
    MIN_BOOKMARK_SIZE,
    MIN_TABLE_HEIGHT,
    MIN_TABLE_WIDTH,
    RESIZE_HANDLE_SIZE,
    TABLE_HEADER_HEIGHT,
    Point,
    clamp_zoom,
    rect_contains,
    rect_from_size,
    screen_to_world,
    snap_point,
    wheel_zoom,
    world_to_screen,
)
from .models import Position, Snapshot, Table
from .routing import RELATIONSHIP_HIT_TOLERANCE, Scene, build_scene, column_row_top, route_relationship
from .store import SchemaStore

logger = logging.getLogger(__name__)

LEFT_BUTTON = 0
RIGHT_BUTTON = 2


class GestureKind(str, Enum):
    """The pointer gesture in progress."""
    NONE = "none"
    DRAG_TABLE = "drag_table"
    DRAG_BOOKMARK = "drag_bookmark"
    RESIZE_TABLE = "resize_table"
    RESIZE_BOOKMARK = "resize_bookmark"
    CONNECT = "connect"
    PAN = "pan"


class HitKind(str, Enum):
    """What lies under a point, in hit-test priority order."""
    CONNECTOR = "connector"
    TABLE_RESIZE = "table_resize"
    TABLE = "table"
    RELATIONSHIP = "relationship"
    BOOKMARK_RESIZE = "bookmark_resize"
    BOOKMARK_HEADER = "bookmark_header"
    BOOKMARK = "bookmark"
    CANVAS = "canvas"


TABLE_HITS = (HitKind.CONNECTOR, HitKind.TABLE_RESIZE, HitKind.TABLE)
BOOKMARK_HITS = (HitKind.BOOKMARK_RESIZE, HitKind.BOOKMARK_HEADER, HitKind.BOOKMARK)


@dataclass(frozen=True)
class HitTarget:
    kind: HitKind
    id: Optional[str] = None
    column_id: Optional[str] = None


CANVAS_HIT = HitTarget(HitKind.CANVAS)


@dataclass
class Connection:
    """A relationship being drawn from a source column."""
    source_table_id: str
    source_column_id: str
    start: Point


@dataclass
class InteractionState:
    """Bookkeeping for the active gesture. Reset as a whole when it ends."""
    gesture: GestureKind = GestureKind.NONE
    target_id: Optional[str] = None
    start_snapshot: Optional[Snapshot] = None
    moved: bool = False
    drag_offset: Point = (0.0, 0.0)
    start_world: Point = (0.0, 0.0)
    start_size: tuple[float, float] = (0.0, 0.0)
    last_world: Point = (0.0, 0.0)
    pan_anchor: Point = (0.0, 0.0)
    connection: Optional[Connection] = None


@dataclass
class Viewport:
    pan: Point = (0.0, 0.0)
    zoom: float = 1.0
    origin: Point = (0.0, 0.0)


@dataclass
class ContextMenuOption:
    label: str
    action: Callable[[], None] = field(repr=False)
    danger: bool = False


def table_extent(table: Table) -> tuple[float, float, float, float]:
    """Rendered rectangle of a table; always tall enough for its rows."""
    height = max(table.height, TABLE_HEADER_HEIGHT + len(table.columns) * COLUMN_ROW_HEIGHT)
    return rect_from_size(table.position.x, table.position.y, table.width, height)


class CanvasController:
    """
    Owns transient canvas state and translates input events into commands.

    Screen points are pointer coordinates relative to the page; `origin` is
    the canvas element's top-left corner in that space.
    """

    def __init__(self, store: SchemaStore, origin: Point = (0.0, 0.0)):
        self.store = store
        self.viewport = Viewport(origin=origin)
        self.hovered_table_id: Optional[str] = None
        self.selected_relationship_id: Optional[str] = None
        self.pointer_world: Point = (0.0, 0.0)
        self._state = InteractionState()

    # --- Properties ---

    @property
    def state(self) -> InteractionState:
        """Deep copy of the current interaction state."""
        return copy.deepcopy(self._state)

    @property
    def gesture(self) -> GestureKind:
        return self._state.gesture

    @property
    def zoom(self) -> float:
        return self.viewport.zoom

    @property
    def pan(self) -> Point:
        return self.viewport.pan

    @property
    def connection_preview(self) -> Optional[tuple[Point, Point]]:
        """Start and end of the live connection line, if one is being drawn."""
        if self._state.connection is None:
            return None
        return (self._state.connection.start, self.pointer_world)

    # --- Coordinates ---

    def to_world(self, screen: Point) -> Point:
        return screen_to_world(screen, self.viewport.pan, self.viewport.zoom, self.viewport.origin)

    def to_screen(self, world: Point) -> Point:
        return world_to_screen(world, self.viewport.pan, self.viewport.zoom, self.viewport.origin)

    # --- Hit Testing ---

    def hit_test(self, world: Point) -> HitTarget:
        """Find what lies under a world point. Topmost tables win."""
        document = self.store.document
        wx, wy = world

        for table in reversed(document.tables):
            left, top, right, bottom = table_extent(table)
            for index, column in enumerate(table.columns):
                row_top = column_row_top(table, index)
                if row_top <= wy <= row_top + COLUMN_ROW_HEIGHT and (
                    abs(wx - left) <= CONNECTOR_HIT_RADIUS or abs(wx - right) <= CONNECTOR_HIT_RADIUS
                ):
                    return HitTarget(HitKind.CONNECTOR, table.id, column.id)
            if right - RESIZE_HANDLE_SIZE <= wx <= right and bottom - RESIZE_HANDLE_SIZE <= wy <= bottom:
                return HitTarget(HitKind.TABLE_RESIZE, table.id)
            if rect_contains((left, top, right, bottom), world):
                return HitTarget(HitKind.TABLE, table.id)

        for rel in document.relationships:
            route = route_relationship(document, rel)
            if route is not None and route.distance_to(world) <= RELATIONSHIP_HIT_TOLERANCE:
                return HitTarget(HitKind.RELATIONSHIP, rel.id)

        for bookmark in reversed(document.bookmarks):
            left, top, right, bottom = bookmark.bounds()
            if not rect_contains((left, top, right, bottom), world):
                continue
            if wx >= right - RESIZE_HANDLE_SIZE and wy >= bottom - RESIZE_HANDLE_SIZE:
                return HitTarget(HitKind.BOOKMARK_RESIZE, bookmark.id)
            if wy <= top + BOOKMARK_HEADER_HEIGHT:
                return HitTarget(HitKind.BOOKMARK_HEADER, bookmark.id)
            return HitTarget(HitKind.BOOKMARK, bookmark.id)

        return CANVAS_HIT

    # --- Pointer Events ---

    def pointer_down(self, screen: Point, button: int = LEFT_BUTTON,
                     target: Optional[HitTarget] = None) -> HitTarget:
        """
        Start a gesture. Right clicks are left to context_menu().

        Args:
            screen: Pointer position in screen space
            button: Mouse button (0 left, 2 right)
            target: What the renderer reports under the pointer; hit-tested
                from the document when omitted
        """
        if button == RIGHT_BUTTON:
            return target or CANVAS_HIT

        world = self.to_world(screen)
        self.pointer_world = world
        hit = target or self.hit_test(world)
        document = self.store.document

        if hit.kind == HitKind.CONNECTOR:
            self._state = InteractionState(
                gesture=GestureKind.CONNECT,
                last_world=world,
                connection=Connection(hit.id, hit.column_id, world),
            )
        elif hit.kind == HitKind.TABLE_RESIZE:
            table = document.get_table(hit.id)
            if table is not None:
                self._begin(GestureKind.RESIZE_TABLE, hit.id, world,
                            start_size=(table.width, table.height))
        elif hit.kind == HitKind.TABLE:
            table = document.get_table(hit.id)
            if table is not None:
                self._begin(GestureKind.DRAG_TABLE, hit.id, world,
                            drag_offset=(world[0] - table.position.x, world[1] - table.position.y))
        elif hit.kind == HitKind.RELATIONSHIP:
            self.selected_relationship_id = hit.id
        elif hit.kind == HitKind.BOOKMARK_RESIZE:
            bookmark = document.get_bookmark(hit.id)
            if bookmark is not None:
                self._begin(GestureKind.RESIZE_BOOKMARK, hit.id, world,
                            start_size=(bookmark.width, bookmark.height))
        elif hit.kind == HitKind.BOOKMARK_HEADER:
            if document.get_bookmark(hit.id) is not None:
                self._begin(GestureKind.DRAG_BOOKMARK, hit.id, world)
        elif hit.kind == HitKind.CANVAS:
            self.selected_relationship_id = None
            self._state = InteractionState(
                gesture=GestureKind.PAN,
                pan_anchor=(screen[0] - self.viewport.pan[0], screen[1] - self.viewport.pan[1]),
            )
        return hit

    def _begin(self, gesture: GestureKind, target_id: str, world: Point, **extra):
        self._state = InteractionState(
            gesture=gesture,
            target_id=target_id,
            start_snapshot=self.store.snapshot(),
            start_world=world,
            last_world=world,
            **extra,
        )

    def pointer_move(self, screen: Point) -> None:
        state = self._state
        if state.gesture == GestureKind.PAN:
            self.viewport.pan = (screen[0] - state.pan_anchor[0], screen[1] - state.pan_anchor[1])
            return

        world = self.to_world(screen)
        self.pointer_world = world

        if state.gesture == GestureKind.DRAG_TABLE:
            x, y = snap_point((world[0] - state.drag_offset[0], world[1] - state.drag_offset[1]))
            self._apply(MoveTable(id=state.target_id, position=Position(x=x, y=y)))
        elif state.gesture == GestureKind.DRAG_BOOKMARK:
            dx = world[0] - state.last_world[0]
            dy = world[1] - state.last_world[1]
            if dx != 0 or dy != 0:
                self._apply(MoveBookmark(id=state.target_id, dx=dx, dy=dy))
        elif state.gesture == GestureKind.RESIZE_TABLE:
            width, height = self._resized(MIN_TABLE_WIDTH, MIN_TABLE_HEIGHT, world)
            self._apply(ResizeTable(id=state.target_id, width=width, height=height))
        elif state.gesture == GestureKind.RESIZE_BOOKMARK:
            width, height = self._resized(MIN_BOOKMARK_SIZE, MIN_BOOKMARK_SIZE, world)
            self._apply(ResizeBookmark(id=state.target_id, width=width, height=height))
        elif state.gesture == GestureKind.NONE:
            hit = self.hit_test(world)
            self.hovered_table_id = hit.id if hit.kind in TABLE_HITS else None

        state.last_world = world

    def _resized(self, min_width: float, min_height: float, world: Point) -> tuple[float, float]:
        state = self._state
        return (
            max(min_width, state.start_size[0] + world[0] - state.start_world[0]),
            max(min_height, state.start_size[1] + world[1] - state.start_world[1]),
        )

    def _apply(self, command) -> None:
        """Dispatch a continuous command and remember whether it changed anything."""
        before = self.store.document
        if self.store.dispatch(command) is not before:
            self._state.moved = True

    def pointer_up(self, screen: Point, target: Optional[HitTarget] = None) -> None:
        """Finish the active gesture."""
        state = self._state
        if state.gesture == GestureKind.CONNECT and state.connection is not None:
            world = self.to_world(screen)
            hit = target or self.hit_test(world)
            self._complete_connection(state.connection, hit)
        self._finish()

    def pointer_leave(self) -> None:
        """The pointer left the canvas: finish gestures, cancel any connection."""
        self._finish()

    def _complete_connection(self, connection: Connection, hit: HitTarget) -> None:
        if hit.kind != HitKind.CONNECTOR or hit.id == connection.source_table_id:
            logger.debug("Connection from %s cancelled", connection.source_table_id)
            return
        self.store.dispatch(AddRelationship(
            from_table=connection.source_table_id,
            from_col=connection.source_column_id,
            to_table=hit.id,
            to_col=hit.column_id,
        ))

    def _finish(self) -> None:
        state = self._state
        if state.moved and state.start_snapshot is not None:
            self.store.dispatch(PushHistory(snapshot=state.start_snapshot))
            if state.gesture == GestureKind.DRAG_TABLE:
                self._update_membership(state.target_id)
        self._state = InteractionState()

    def _update_membership(self, table_id: str) -> None:
        """Assign the table to the first bookmark containing its center, or clear it."""
        document = self.store.document
        table = document.get_table(table_id)
        if table is None:
            return
        center = table.center()
        target = next((b for b in document.bookmarks if rect_contains(b.bounds(), center)), None)
        if target is not None:
            if table.bookmark_id != target.id:
                self.store.dispatch(AssignTableToBookmark(table_id=table_id, bookmark_id=target.id))
        elif table.bookmark_id is not None:
            self.store.dispatch(AssignTableToBookmark(table_id=table_id, bookmark_id=None))

    # --- Zoom & Pan ---

    def wheel(self, delta_y: float) -> float:
        """One wheel tick. Returns the new zoom factor."""
        self.viewport.zoom = wheel_zoom(self.viewport.zoom, delta_y)
        return self.viewport.zoom

    def zoom_in(self) -> float:
        self.viewport.zoom = clamp_zoom(self.viewport.zoom * BUTTON_ZOOM_STEP)
        return self.viewport.zoom

    def zoom_out(self) -> float:
        self.viewport.zoom = clamp_zoom(self.viewport.zoom / BUTTON_ZOOM_STEP)
        return self.viewport.zoom

    def reset_view(self) -> None:
        self.viewport.zoom = 1.0
        self.viewport.pan = (0.0, 0.0)

    def focus_on_table(self, table_id: str, viewport_width: float, viewport_height: float) -> bool:
        """Pan so the table's center sits in the middle of the visible area."""
        table = self.store.document.get_table(table_id)
        if table is None:
            return False
        zoom = self.viewport.zoom
        self.viewport.pan = (
            viewport_width / 2 - table.position.x * zoom - table.width / 2 * zoom,
            viewport_height / 2 - table.position.y * zoom - table.height / 2 * zoom,
        )
        return True

    # --- Hover & Selection ---

    def set_hover(self, table_id: Optional[str]) -> None:
        self.hovered_table_id = table_id

    def select_relationship(self, relationship_id: Optional[str]) -> None:
        self.selected_relationship_id = relationship_id

    def scene(self) -> Scene:
        return build_scene(self.store.document, self.hovered_table_id, self.selected_relationship_id)

    # --- Keyboard ---

    def key_down(self, key: str, ctrl: bool = False, meta: bool = False, shift: bool = False) -> bool:
        """
        Handle a shortcut. Returns True if the key was consumed.

        Delete/Backspace removes the selected relationship; Ctrl/Cmd with Z
        undoes, with Y or Shift+Z redoes, with C copies the hovered table and
        with V pastes.
        """
        modifier = ctrl or meta
        letter = key.lower()

        if key in ("Delete", "Backspace") and self.selected_relationship_id:
            self.store.dispatch(DeleteRelationship(id=self.selected_relationship_id))
            self.selected_relationship_id = None
            return True
        if not modifier:
            return False
        if letter == "z" and not shift:
            self.store.dispatch(Undo())
            return True
        if letter == "y" or (letter == "z" and shift):
            self.store.dispatch(Redo())
            return True
        if letter == "c" and self.hovered_table_id:
            self.store.dispatch(CopyTable(id=self.hovered_table_id))
            return True
        if letter == "v":
            self.store.dispatch(PasteTable())
            return True
        return False

    # --- Context Menu ---

    def _duplicate_table(self, table_id: str):
        table = self.store.document.get_table(table_id)
        if table is not None:
            self.store.dispatch(PasteTable(table=table))

    def context_menu(self, screen: Point) -> list[ContextMenuOption]:
        """Actions for whatever lies under a right click."""
        world = self.to_world(screen)
        hit = self.hit_test(world)
        dispatch = self.store.dispatch

        if hit.kind in TABLE_HITS:
            table_id = hit.id
            return [
                ContextMenuOption("Copy table", lambda: dispatch(CopyTable(id=table_id))),
                ContextMenuOption("Duplicate table", lambda: self._duplicate_table(table_id)),
                ContextMenuOption("Delete table", lambda: dispatch(DeleteTable(id=table_id)), danger=True),
            ]
        if hit.kind == HitKind.RELATIONSHIP:
            rel_id = hit.id
            return [
                ContextMenuOption("Delete relationship",
                                  lambda: dispatch(DeleteRelationship(id=rel_id)), danger=True),
            ]
        if hit.kind in BOOKMARK_HITS:
            bookmark_id = hit.id
            return [
                ContextMenuOption("Delete bookmark",
                                  lambda: dispatch(DeleteBookmark(id=bookmark_id)), danger=True),
            ]

        x, y = snap_point(world)
        return [
            ContextMenuOption("New table", lambda: dispatch(AddTable(position=Position(x=x, y=y)))),
            ContextMenuOption("New bookmark", lambda: dispatch(AddBookmark(x=x, y=y))),
            ContextMenuOption("Paste table", lambda: dispatch(PasteTable())),
            ContextMenuOption("Reset view", self.reset_view),
        ]
