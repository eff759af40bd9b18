"""Douglas-Peucker polygon simplification for open and closed curves."""

import logging
import math
from typing import List, Sequence

import numpy as np

from docscan.geometry.shapes import Point, as_points

logger = logging.getLogger(__name__)


def perpendicular_distance(point: Point, start: Point, end: Point) -> float:
    """Distance from ``point`` to the infinite line through ``start`` and ``end``.

    Falls back to the distance to ``start`` when the chord is degenerate.
    """
    dx = end.x - start.x
    dy = end.y - start.y
    length_sq = dx * dx + dy * dy

    if length_sq < 1e-4:
        return point.distance_to(start)

    return abs(dy * point.x - dx * point.y + end.x * start.y - end.y * start.x) / math.sqrt(length_sq)


def simplify_open(points: Sequence, epsilon: float) -> List[Point]:
    """Simplify an open polyline, always keeping both endpoints.

    A point survives when its deviation from the chord of its enclosing span
    exceeds ``epsilon``. Iterative with an explicit stack of spans.
    """
    pts = as_points(points)
    if len(pts) < 3:
        return pts

    keep = [False] * len(pts)
    keep[0] = keep[-1] = True
    stack = [(0, len(pts) - 1)]

    while stack:
        first, last = stack.pop()
        max_dist = 0.0
        index = first

        for i in range(first + 1, last):
            dist = perpendicular_distance(pts[i], pts[first], pts[last])
            if dist > max_dist:
                max_dist = dist
                index = i

        if max_dist > epsilon:
            keep[index] = True
            stack.append((first, index))
            stack.append((index, last))

    return [p for p, k in zip(pts, keep) if k]


def _farthest_pair(pts: np.ndarray):
    """Indices (i, j), i < j, of the first pair at maximum mutual distance."""
    best = (0, 0)
    best_dist = -1.0

    for i in range(len(pts) - 1):
        d = np.hypot(*(pts[i + 1:] - pts[i]).T)
        j = int(np.argmax(d))
        if d[j] > best_dist:
            best_dist = float(d[j])
            best = (i, i + 1 + j)

    return best


def simplify_closed(points: Sequence, epsilon: float) -> List[Point]:
    """Simplify a closed ring.

    The ring is split into two arcs at its two mutually farthest points. Each
    arc is simplified as an open polyline and the results are spliced back
    together without repeating the shared endpoints.

    Args:
        points: Ring vertices in perimeter order, not repeating the first point.
        epsilon: Maximum allowed deviation in pixels.

    Returns:
        Simplified ring vertices. Rings with fewer than 4 points are returned
        as a copy.
    """
    pts = as_points(points)
    if len(pts) < 4:
        return list(pts)

    i, j = _farthest_pair(np.asarray(pts, dtype=np.float64))

    first_arc = pts[i:j + 1]
    second_arc = pts[j:] + pts[:i + 1]

    first = simplify_open(first_arc, epsilon)
    second = simplify_open(second_arc, epsilon)

    return first + second[1:-1]


def approximate_polygon(points: Sequence, epsilon_ratio: float, perimeter: float) -> List[Point]:
    """Closed simplification with epsilon given as a fraction of ``perimeter``."""
    epsilon = epsilon_ratio * perimeter
    result = simplify_closed(points, epsilon)
    logger.debug(f"Simplified {len(points)} points to {len(result)} (epsilon={epsilon:.2f})")
    return result
