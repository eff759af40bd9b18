"""Geometric value types: points, contours and quadrilaterals.

Derived quantities (perimeter, area, bounding box, convexity) are recomputed on
every access so they stay correct if a caller edits the point list.
"""

import math
from dataclasses import dataclass, field
from typing import List, NamedTuple, Sequence, Tuple

import numpy as np


class Point(NamedTuple):
    """A 2D floating-point coordinate."""

    x: float
    y: float

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


def as_points(points) -> List[Point]:
    """Convert an (N, 2) array or a sequence of pairs into a list of Points."""
    return [Point(float(p[0]), float(p[1])) for p in points]


@dataclass
class Contour:
    """Boundary points of one connected foreground region.

    ``ordered`` records whether the points follow the perimeter (Moore tracing)
    or are in visitation order (flood-fill collection). Perimeter and shoelace
    area are only meaningful for ordered contours; use ``bounding_perimeter``
    and ``bounding_area`` otherwise.
    """

    points: List[Point] = field(default_factory=list)
    ordered: bool = True

    def __len__(self) -> int:
        return len(self.points)

    def to_array(self) -> np.ndarray:
        """Points as an (N, 2) float64 array."""
        if not self.points:
            return np.zeros((0, 2), dtype=np.float64)
        return np.asarray(self.points, dtype=np.float64)

    @property
    def perimeter(self) -> float:
        """Sum of consecutive point distances, wrapping back to the first point."""
        if len(self.points) < 2:
            return 0.0
        pts = self.to_array()
        return float(np.sum(np.hypot(*(np.roll(pts, -1, axis=0) - pts).T)))

    @property
    def area(self) -> float:
        return polygon_area(self.to_array())

    @property
    def bounding_rect(self) -> Tuple[float, float, float, float]:
        """Axis-aligned bounding box as (x, y, width, height)."""
        if not self.points:
            return (0.0, 0.0, 0.0, 0.0)
        pts = self.to_array()
        x_min, y_min = pts.min(axis=0)
        x_max, y_max = pts.max(axis=0)
        return (float(x_min), float(y_min), float(x_max - x_min), float(y_max - y_min))

    @property
    def bounding_perimeter(self) -> float:
        _, _, w, h = self.bounding_rect
        return 2.0 * (w + h)

    @property
    def bounding_area(self) -> float:
        _, _, w, h = self.bounding_rect
        return w * h

    @property
    def is_convex(self) -> bool:
        return is_convex_polygon(self.to_array())


def polygon_area(pts: np.ndarray) -> float:
    """Absolute shoelace area of a closed polygon given as an (N, 2) array."""
    if len(pts) < 3:
        return 0.0
    x, y = pts[:, 0], pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(np.roll(x, -1), y)) / 2.0)


def is_convex_polygon(pts: np.ndarray, tolerance: float = 1e-4) -> bool:
    """True when all non-negligible turn cross products share one sign."""
    if len(pts) < 3:
        return False

    edges = np.roll(pts, -1, axis=0) - pts
    nxt = np.roll(edges, -1, axis=0)
    cross = edges[:, 0] * nxt[:, 1] - edges[:, 1] * nxt[:, 0]
    cross = cross[np.abs(cross) > tolerance]

    return bool(np.all(cross > 0) or np.all(cross < 0))


@dataclass(frozen=True)
class Quadrilateral:
    """Four corners with canonical roles.

    Build from an unordered set with ``Quadrilateral.from_points``.
    """

    top_left: Point
    top_right: Point
    bottom_right: Point
    bottom_left: Point

    @classmethod
    def from_points(cls, points: Sequence) -> "Quadrilateral":
        """Assign corner roles to exactly four points.

        Top-left and bottom-right are the smallest and largest ``x + y``;
        top-right and bottom-left are the largest and smallest ``x - y``.

        Raises:
            ValueError: If ``points`` does not hold exactly four points.
        """
        pts = as_points(points)
        if len(pts) != 4:
            raise ValueError(f"A quadrilateral needs exactly 4 points, got {len(pts)}")

        sums = [p.x + p.y for p in pts]
        diffs = [p.x - p.y for p in pts]

        return cls(
            top_left=pts[int(np.argmin(sums))],
            top_right=pts[int(np.argmax(diffs))],
            bottom_right=pts[int(np.argmax(sums))],
            bottom_left=pts[int(np.argmin(diffs))],
        )

    @property
    def corners(self) -> Tuple[Point, Point, Point, Point]:
        """Corners in TL, TR, BR, BL order."""
        return (self.top_left, self.top_right, self.bottom_right, self.bottom_left)

    @property
    def width(self) -> float:
        """Average of the top and bottom edge lengths."""
        top = self.top_left.distance_to(self.top_right)
        bottom = self.bottom_left.distance_to(self.bottom_right)
        return (top + bottom) / 2.0

    @property
    def height(self) -> float:
        """Average of the left and right edge lengths."""
        left = self.top_left.distance_to(self.bottom_left)
        right = self.top_right.distance_to(self.bottom_right)
        return (left + right) / 2.0

    @property
    def area(self) -> float:
        return polygon_area(self.to_array().astype(np.float64))

    @property
    def center(self) -> Point:
        xs = [p.x for p in self.corners]
        ys = [p.y for p in self.corners]
        return Point(sum(xs) / 4.0, sum(ys) / 4.0)

    @property
    def side_lengths(self) -> List[float]:
        """Edge lengths in the order top, right, bottom, left."""
        c = self.corners
        return [c[i].distance_to(c[(i + 1) % 4]) for i in range(4)]

    def to_array(self) -> np.ndarray:
        """Corners as a (4, 2) float32 array in TL, TR, BR, BL order."""
        return np.array(self.corners, dtype=np.float32)

    def scaled(self, sx: float, sy: float) -> "Quadrilateral":
        """Same corner roles with coordinates multiplied by (sx, sy)."""
        return Quadrilateral(*(Point(p.x * sx, p.y * sy) for p in self.corners))
