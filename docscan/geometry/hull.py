"""Convex hull by Graham scan."""

import math
from typing import List, Sequence

from docscan.geometry.shapes import Point, as_points


def _cross(o: Point, a: Point, b: Point) -> float:
    """Z component of (a - o) x (b - a)."""
    return (a.x - o.x) * (b.y - a.y) - (a.y - o.y) * (b.x - a.x)


def convex_hull(points: Sequence) -> List[Point]:
    """Compute the convex hull of a point set.

    The pivot is the lowest point (smallest y, then smallest x). The remaining
    points are sorted by polar angle around it, closer points first on ties,
    and swept with a stack that pops on every non-left turn. Collinear points
    on the hull boundary are therefore dropped.

    Args:
        points: Sequence of (x, y) pairs or Points.

    Returns:
        Hull vertices in counter-clockwise order (in image coordinates, where y
        grows downward, this appears clockwise on screen). Inputs with fewer
        than 3 points are returned unchanged.
    """
    pts = as_points(points)
    if len(pts) < 3:
        return pts

    pivot = min(pts, key=lambda p: (p.y, p.x))
    rest = [p for p in pts if p != pivot]

    rest.sort(key=lambda p: (math.atan2(p.y - pivot.y, p.x - pivot.x), pivot.distance_to(p)))

    hull = [pivot]
    for p in rest:
        while len(hull) >= 2 and _cross(hull[-2], hull[-1], p) <= 0:
            hull.pop()
        hull.append(p)

    return hull
