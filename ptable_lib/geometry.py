# --- ptable_lib/geometry.py ---
"""
ptable_lib/geometry.py: Geometry primitives for positioned text.

Coordinates follow the device convention used by the glyph source: x grows to
the right and y grows downward, so a box's top is always <= its bottom.
"""
from dataclasses import dataclass
from enum import Enum


# --- VECTORS & POINTS ---
@dataclass(frozen=True)
class Vec2F:
    """A simple 2D vector with float coordinates."""

    x: float = 0.0
    y: float = 0.0

    def __sub__(self, other: "Vec2F") -> "Vec2F":
        return Vec2F(self.x - other.x, self.y - other.y)

    def __mul__(self, ratio: float) -> "Vec2F":
        return Vec2F(self.x * ratio, self.y * ratio)

    def dot_product(self, other: "Vec2F") -> float:
        return self.x * other.x + self.y * other.y

    def norm_square(self) -> float:
        return self.x * self.x + self.y * self.y


@dataclass(frozen=True)
class Point:
    """A simple 2D point with float coordinates."""

    x: float = 0.0
    y: float = 0.0

    def __sub__(self, other: "Point") -> Vec2F:
        return Vec2F(self.x - other.x, self.y - other.y)


class Orientation(str, Enum):
    """Reading direction of a glyph or of a run of text."""

    NORTH = "NORTH"
    EAST = "EAST"
    SOUTH = "SOUTH"
    WEST = "WEST"


_DIRECTIONS = {
    Orientation.NORTH: Vec2F(0.0, -1.0),
    Orientation.EAST: Vec2F(1.0, 0.0),
    Orientation.SOUTH: Vec2F(0.0, 1.0),
    Orientation.WEST: Vec2F(-1.0, 0.0),
}

_CLOCKWISE = {
    Orientation.NORTH: Orientation.EAST,
    Orientation.EAST: Orientation.SOUTH,
    Orientation.SOUTH: Orientation.WEST,
    Orientation.WEST: Orientation.NORTH,
}


def get_direction_vector(orientation: Orientation) -> Vec2F:
    """Returns the unit direction vector for a particular orientation."""
    return _DIRECTIONS[Orientation(orientation)]


def rotate_clockwise_90(orientation: Orientation) -> Orientation:
    """Returns the orientation rotated by 90 degrees clockwise."""
    return _CLOCKWISE[Orientation(orientation)]


# --- BOUNDING BOXES ---
@dataclass(frozen=True)
class BoundingBox:
    """An axis-aligned box. Edges are inclusive for every predicate below."""

    left: float = 0.0
    top: float = 0.0
    right: float = 0.0
    bottom: float = 0.0

    def __post_init__(self):
        if self.left > self.right:
            raise ValueError(f"Invalid box: left {self.left} > right {self.right}")
        if self.top > self.bottom:
            raise ValueError(f"Invalid box: top {self.top} > bottom {self.bottom}")


def create_box(left: float, top: float, right: float, bottom: float) -> BoundingBox:
    """Creates a BoundingBox, raising ValueError if left > right or top > bottom."""
    return BoundingBox(left, top, right, bottom)


def box_around(center: Point, width: float, height: float) -> BoundingBox:
    """Creates a BoundingBox of the given size centered on a point."""
    half_width, half_height = width * 0.5, height * 0.5
    return create_box(
        center.x - half_width,
        center.y - half_height,
        center.x + half_width,
        center.y + half_height,
    )


def get_width(box: BoundingBox) -> float:
    return box.right - box.left


def get_height(box: BoundingBox) -> float:
    return box.bottom - box.top


def get_center(box: BoundingBox) -> Point:
    return Point((box.left + box.right) / 2.0, (box.top + box.bottom) / 2.0)


def contains_point(box: BoundingBox, point: Point) -> bool:
    """Returns whether a box contains a point."""
    return box.left <= point.x <= box.right and box.top <= point.y <= box.bottom


def contains_box(container: BoundingBox, inside: BoundingBox) -> bool:
    """Returns whether a box contains all four corners of another box."""
    return (
        container.left <= inside.left
        and container.top <= inside.top
        and container.right >= inside.right
        and container.bottom >= inside.bottom
    )


def intersects(a: BoundingBox, b: BoundingBox) -> bool:
    """Returns whether two boxes intersect. Boxes sharing an edge intersect."""
    if a.right < b.left or a.left > b.right:
        return False
    if a.bottom < b.top or a.top > b.bottom:
        return False
    return True


def union(a: BoundingBox, b: BoundingBox) -> BoundingBox:
    """Returns the smallest box containing both a and b."""
    return create_box(
        min(a.left, b.left),
        min(a.top, b.top),
        max(a.right, b.right),
        max(a.bottom, b.bottom),
    )


# --- SPANS ---
@dataclass(frozen=True)
class Span:
    """
    A closed interval [min, max] on one axis.

      +----------+
     min        max
    """

    min: float = 0.0
    max: float = 0.0

    def __post_init__(self):
        if self.min > self.max:
            raise ValueError(f"Invalid span: min {self.min} > max {self.max}")

    def size(self) -> float:
        return self.max - self.min

    def center(self) -> float:
        return (self.max + self.min) / 2.0

    def contains(self, other: "Span") -> bool:
        """
        +----------+ self
           +--+      other
        """
        return self.min <= other.min and other.max <= self.max

    def contains_center_of(self, other: "Span") -> bool:
        """
        +----------+   self
           +----|----+ other
        """
        return self.min <= other.center() <= self.max


def span_union(a: Span, b: Span) -> Span:
    return Span(min(a.min, b.min), max(a.max, b.max))


def span_intersection(a: Span, b: Span) -> Span:
    """Returns the overlapping part of two spans, or [0, 0] when they are disjoint."""
    lower, upper = max(a.min, b.min), min(a.max, b.max)
    if upper < lower:
        return Span(0.0, 0.0)
    return Span(lower, upper)


def span_intersects(a: Span, b: Span) -> bool:
    return a.max >= b.min and a.min <= b.max


def overlap_ratio(a: Span, b: Span) -> float:
    """
    Returns the size of the intersection over the size of the union.

    +----------+ a
       +--+      b       -> 2 / 10
    +------+      a
             +--+ b      -> 0
    """
    union_size = span_union(a, b).size()
    if union_size == 0.0:
        return 0.0
    return span_intersection(a, b).size() / union_size


def get_span(box: BoundingBox, orientation: Orientation) -> Span:
    """Returns the extent of a box projected on an orientation's direction."""
    direction = get_direction_vector(orientation)
    distances = [
        Vec2F(x, y).dot_product(direction)
        for x, y in (
            (box.left, box.top),
            (box.right, box.top),
            (box.left, box.bottom),
            (box.right, box.bottom),
        )
    ]
    return Span(min(distances), max(distances))
