"""
Geometry helpers - coordinate transforms, snapping and hit-zone metrics.

World space is where the document lives (table positions, bookmark
rectangles). Screen space is the pointer's space: world coordinates scaled
by the zoom factor, shifted by the pan offset and by the canvas origin.

All functions here are pure.
"""

import math

Point = tuple[float, float]

# Grid quantum for dragged table positions
SNAP_SIZE = 20

# Zoom limits and per-tick factors
MIN_ZOOM = 0.1
MAX_ZOOM = 3.0
WHEEL_ZOOM_OUT = 0.9
WHEEL_ZOOM_IN = 1.1
BUTTON_ZOOM_STEP = 1.2

# Rendered table metrics (world units)
TABLE_HEADER_HEIGHT = 45
COLUMN_ROW_HEIGHT = 34
CONNECTOR_HIT_RADIUS = 8
RESIZE_HANDLE_SIZE = 16

# Bookmark header band that starts a group drag
BOOKMARK_HEADER_HEIGHT = 40

MIN_TABLE_WIDTH = 120
MIN_TABLE_HEIGHT = 80
MIN_BOOKMARK_SIZE = 100


def screen_to_world(
    point: Point,
    pan: Point = (0.0, 0.0),
    zoom: float = 1.0,
    origin: Point = (0.0, 0.0),
) -> Point:
    """Map a screen point to world space: (screen - origin - pan) / zoom."""
    return (
        (point[0] - origin[0] - pan[0]) / zoom,
        (point[1] - origin[1] - pan[1]) / zoom,
    )


def world_to_screen(
    point: Point,
    pan: Point = (0.0, 0.0),
    zoom: float = 1.0,
    origin: Point = (0.0, 0.0),
) -> Point:
    """Inverse of screen_to_world."""
    return (
        point[0] * zoom + pan[0] + origin[0],
        point[1] * zoom + pan[1] + origin[1],
    )


def clamp_zoom(zoom: float) -> float:
    return max(MIN_ZOOM, min(MAX_ZOOM, zoom))


def wheel_zoom(zoom: float, delta_y: float) -> float:
    """Apply one wheel tick: scrolling down (positive delta) zooms out."""
    factor = WHEEL_ZOOM_OUT if delta_y > 0 else WHEEL_ZOOM_IN
    return clamp_zoom(zoom * factor)


def snap(value: float, grid_size: int = SNAP_SIZE) -> float:
    """Round a coordinate to the nearest grid multiple."""
    if grid_size <= 0:
        return value
    # Halves round up
    return math.floor(value / grid_size + 0.5) * grid_size


def snap_point(point: Point, grid_size: int = SNAP_SIZE) -> Point:
    """Snap each axis independently."""
    return (snap(point[0], grid_size), snap(point[1], grid_size))


def rect_contains(
    rect: tuple[float, float, float, float],
    point: Point,
) -> bool:
    """Inclusive containment test for a (x, y, right, bottom) rectangle."""
    left, top, right, bottom = rect
    return left <= point[0] <= right and top <= point[1] <= bottom


def rect_from_size(x: float, y: float, width: float, height: float) -> tuple[float, float, float, float]:
    return (x, y, x + width, y + height)
