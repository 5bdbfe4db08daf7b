"""
Relationship routing and highlighting.

Pure presentation logic recomputed on every render from the document plus
the controller's hover/selection state:
- where each relationship curve leaves and enters its tables
- the cubic curve between the two column anchors
- which relationships/tables are selected, highlighted or dimmed
"""

import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

from .geometry import COLUMN_ROW_HEIGHT, TABLE_HEADER_HEIGHT, Point

if TYPE_CHECKING:
    from .models import Relationship, SchemaDocument, Table


MIN_CONTROL_OFFSET = 50
CONTROL_OFFSET_RATIO = 0.5

# Hit tolerance around a curve, half the invisible 15-unit click stroke
RELATIONSHIP_HIT_TOLERANCE = 7.5
CURVE_SAMPLES = 48

DIMMED_RELATIONSHIP_OPACITY = 0.1
DIMMED_TABLE_OPACITY = 0.3


@dataclass
class ColumnAnchor:
    """Row of a column: left edge x, row center y, and table width."""
    x: float
    y: float
    width: float


@dataclass
class RelationshipRoute:
    """Cubic curve with horizontal tangents at both ends."""
    relationship_id: str
    start: Point
    control1: Point
    control2: Point
    end: Point

    @property
    def path_data(self) -> str:
        """SVG path string."""
        (x1, y1), (c1x, _), (c2x, _), (x2, y2) = self.start, self.control1, self.control2, self.end
        return f"M {x1} {y1} C {c1x} {y1}, {c2x} {y2}, {x2} {y2}"

    def point_at(self, t: float) -> Point:
        u = 1 - t
        a, b, c, d = u * u * u, 3 * u * u * t, 3 * u * t * t, t * t * t
        return (
            a * self.start[0] + b * self.control1[0] + c * self.control2[0] + d * self.end[0],
            a * self.start[1] + b * self.control1[1] + c * self.control2[1] + d * self.end[1],
        )

    def distance_to(self, point: Point, samples: int = CURVE_SAMPLES) -> float:
        """Approximate distance from a point to the curve (polyline sampling)."""
        best = math.inf
        prev = self.point_at(0.0)
        for i in range(1, samples + 1):
            cur = self.point_at(i / samples)
            best = min(best, _segment_distance(point, prev, cur))
            prev = cur
        return best


@dataclass
class RelationshipState:
    selected: bool = False
    highlighted: bool = False
    dimmed: bool = False

    @property
    def opacity(self) -> float:
        return DIMMED_RELATIONSHIP_OPACITY if self.dimmed else 1.0


@dataclass
class TableState:
    hovered: bool = False
    related: bool = False
    dimmed: bool = False

    @property
    def opacity(self) -> float:
        return DIMMED_TABLE_OPACITY if self.dimmed else 1.0


@dataclass
class Scene:
    """Everything the renderer needs for one frame."""
    routes: list[RelationshipRoute] = field(default_factory=list)
    relationship_states: dict[str, RelationshipState] = field(default_factory=dict)
    table_states: dict[str, TableState] = field(default_factory=dict)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "relationships": [
                {
                    "id": route.relationship_id,
                    "path": route.path_data,
                    "selected": self.relationship_states[route.relationship_id].selected,
                    "highlighted": self.relationship_states[route.relationship_id].highlighted,
                    "dimmed": self.relationship_states[route.relationship_id].dimmed,
                    "opacity": self.relationship_states[route.relationship_id].opacity,
                }
                for route in self.routes
            ],
            "tables": {
                table_id: {
                    "hovered": s.hovered,
                    "related": s.related,
                    "dimmed": s.dimmed,
                    "opacity": s.opacity,
                }
                for table_id, s in self.table_states.items()
            },
        }


def _segment_distance(p: Point, a: Point, b: Point) -> float:
    dx, dy = b[0] - a[0], b[1] - a[1]
    length_sq = dx * dx + dy * dy
    if length_sq == 0:
        return math.dist(p, a)
    t = max(0.0, min(1.0, ((p[0] - a[0]) * dx + (p[1] - a[1]) * dy) / length_sq))
    return math.dist(p, (a[0] + t * dx, a[1] + t * dy))


def column_row_top(table: "Table", index: int) -> float:
    return table.position.y + TABLE_HEADER_HEIGHT + index * COLUMN_ROW_HEIGHT


def column_anchor(table: "Table", column_id: str) -> Optional[ColumnAnchor]:
    """Anchor of a column row, or None if the column is not in the table."""
    index = table.column_index(column_id)
    if index < 0:
        return None
    return ColumnAnchor(
        x=table.position.x,
        y=column_row_top(table, index) + COLUMN_ROW_HEIGHT / 2,
        width=table.width,
    )


def route_relationship(document: "SchemaDocument", rel: "Relationship") -> Optional[RelationshipRoute]:
    """
    Compute the curve for a relationship.

    The curve leaves the right edge of whichever table sits further left and
    enters the left edge of the other, so it never runs behind a table.
    """
    source = document.get_table(rel.from_table)
    target = document.get_table(rel.to_table)
    if source is None or target is None:
        return None
    start = column_anchor(source, rel.from_col)
    end = column_anchor(target, rel.to_col)
    if start is None or end is None:
        return None

    if start.x + start.width / 2 < end.x + end.width / 2:
        x1 = start.x + start.width
        x2 = end.x
        offset = max(abs(x2 - x1) * CONTROL_OFFSET_RATIO, MIN_CONTROL_OFFSET)
        c1x, c2x = x1 + offset, x2 - offset
    else:
        x1 = start.x
        x2 = end.x + end.width
        offset = max(abs(x2 - x1) * CONTROL_OFFSET_RATIO, MIN_CONTROL_OFFSET)
        c1x, c2x = x1 - offset, x2 + offset

    return RelationshipRoute(
        relationship_id=rel.id,
        start=(x1, start.y),
        control1=(c1x, start.y),
        control2=(c2x, end.y),
        end=(x2, end.y),
    )


def relationship_state(
    rel: "Relationship",
    hovered_table_id: Optional[str] = None,
    selected_relationship_id: Optional[str] = None,
) -> RelationshipState:
    selected = rel.id == selected_relationship_id
    highlighted = hovered_table_id is not None and rel.touches(hovered_table_id)
    dimmed = hovered_table_id is not None and not (selected or highlighted)
    return RelationshipState(selected=selected, highlighted=highlighted, dimmed=dimmed)


def related_table_ids(document: "SchemaDocument", table_id: str) -> set[str]:
    """Tables connected to the given table by any relationship, either direction."""
    related: set[str] = set()
    for rel in document.relationships:
        if rel.from_table == table_id:
            related.add(rel.to_table)
        if rel.to_table == table_id:
            related.add(rel.from_table)
    return related


def table_state(
    table_id: str,
    hovered_table_id: Optional[str],
    related: set[str],
) -> TableState:
    hovered = table_id == hovered_table_id
    is_related = hovered_table_id is not None and table_id in related
    dimmed = hovered_table_id is not None and not (hovered or is_related)
    return TableState(hovered=hovered, related=is_related, dimmed=dimmed)


def build_scene(
    document: "SchemaDocument",
    hovered_table_id: Optional[str] = None,
    selected_relationship_id: Optional[str] = None,
) -> Scene:
    """Routes and visual states for every relationship and table."""
    scene = Scene()
    for rel in document.relationships:
        route = route_relationship(document, rel)
        if route is None:
            continue
        scene.routes.append(route)
        scene.relationship_states[rel.id] = relationship_state(
            rel, hovered_table_id, selected_relationship_id
        )

    related = related_table_ids(document, hovered_table_id) if hovered_table_id else set()
    for table in document.tables:
        scene.table_states[table.id] = table_state(table.id, hovered_table_id, related)
    return scene
