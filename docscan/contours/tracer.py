"""Boundary tracing on binary masks.

Two strategies share the ``mask -> List[Contour]`` contract:

- ``TraceMethod.ORDERED``: Moore-neighbor boundary following. Points follow
  the perimeter, so perimeter and shoelace area are meaningful.
- ``TraceMethod.UNORDERED``: breadth-first flood fill that collects every
  border pixel of a region in visitation order. Tolerates broken rings but
  gives no geometric ordering; use the contour's bounding-box measures.

A border pixel is a foreground pixel on the image edge or with at least one
background 8-neighbor. Contours with fewer than 3 points are discarded.
"""

import logging
from collections import deque
from enum import Enum
from typing import Callable, Dict, List, Tuple

import numpy as np
from scipy import ndimage

from docscan.geometry.shapes import Contour, Point

logger = logging.getLogger(__name__)

# Clockwise (in image coordinates) starting from West, as (dx, dy)
_DIRECTIONS: Tuple[Tuple[int, int], ...] = (
    (-1, 0),   # W
    (-1, -1),  # NW
    (0, -1),   # N
    (1, -1),   # NE
    (1, 0),    # E
    (1, 1),    # SE
    (0, 1),    # S
    (-1, 1),   # SW
)

_MIN_CONTOUR_POINTS = 3


class TraceMethod(str, Enum):
    ORDERED = "ordered"
    UNORDERED = "unordered"


def border_pixels(mask: np.ndarray) -> np.ndarray:
    """Boolean map of foreground pixels that touch background or the image edge."""
    foreground = mask > 0
    eroded = ndimage.minimum_filter(foreground.astype(np.uint8), size=3, mode="constant", cval=0)
    return foreground & (eroded == 0)


def _trace_moore(
    foreground: List[List[bool]],
    start: Tuple[int, int],
    width: int,
    height: int,
) -> List[Point]:
    """Follow one boundary clockwise from ``start`` (x, y)."""

    def is_foreground(x: int, y: int) -> bool:
        return 0 <= x < width and 0 <= y < height and foreground[y][x]

    sx, sy = start

    # Look-back direction: first background neighbor clockwise from West
    search = 0
    for d, (dx, dy) in enumerate(_DIRECTIONS):
        if not is_foreground(sx + dx, sy + dy):
            search = d
            break

    points: List[Point] = []
    x, y = sx, sy

    for _ in range(width * height):
        points.append(Point(float(x), float(y)))

        move = -1
        for i in range(8):
            d = (search + i) % 8
            dx, dy = _DIRECTIONS[d]
            if is_foreground(x + dx, y + dy):
                move = d
                break

        if move < 0:
            break

        x += _DIRECTIONS[move][0]
        y += _DIRECTIONS[move][1]

        if (x, y) == (sx, sy) and len(points) >= 3:
            break

        # Resume two positions counter-clockwise of the arrival direction
        search = (move + 6) % 8

    return points


def trace_ordered(mask: np.ndarray) -> List[Contour]:
    """Moore-neighbor tracing of the outer boundary of every region.

    Regions are 8-connected. Each is traced once, starting from its first
    border pixel in row-major order, whose west and north neighbors are
    background, so the walk begins on the outer ring. Tracing stops when it
    returns to the start with at least 3 points, hits a dead end, or exceeds
    ``width * height`` steps. Boundaries of holes are not traced.

    Pixel-thin or branching regions may be walked twice along a spur before
    closing; the unordered strategy is the safer default for detection.
    """
    height, width = mask.shape
    border = border_pixels(mask)
    foreground = (mask > 0).tolist()
    regions, count = ndimage.label(mask > 0, structure=np.ones((3, 3), dtype=bool))
    traced = np.zeros(count + 1, dtype=bool)

    contours: List[Contour] = []

    for y, x in zip(*np.nonzero(border)):
        region = regions[y, x]
        if traced[region]:
            continue
        traced[region] = True

        points = _trace_moore(foreground, (int(x), int(y)), width, height)

        if len(points) >= _MIN_CONTOUR_POINTS:
            contours.append(Contour(points=points, ordered=True))

    return contours


def trace_unordered(mask: np.ndarray) -> List[Contour]:
    """Flood-fill boundary collection, one contour per 8-connected region."""
    height, width = mask.shape
    border = border_pixels(mask)
    foreground = (mask > 0).tolist()
    is_border = border.tolist()
    visited = [[False] * width for _ in range(height)]

    contours: List[Contour] = []

    for y0, x0 in zip(*np.nonzero(border)):
        y0, x0 = int(y0), int(x0)
        if visited[y0][x0]:
            continue

        points: List[Point] = []
        queue = deque([(x0, y0)])
        visited[y0][x0] = True

        while queue:
            x, y = queue.popleft()
            if is_border[y][x]:
                points.append(Point(float(x), float(y)))

            for dx, dy in _DIRECTIONS:
                nx, ny = x + dx, y + dy
                if 0 <= nx < width and 0 <= ny < height and foreground[ny][nx] and not visited[ny][nx]:
                    visited[ny][nx] = True
                    queue.append((nx, ny))

        if len(points) >= _MIN_CONTOUR_POINTS:
            contours.append(Contour(points=points, ordered=False))

    return contours


_TRACERS: Dict[TraceMethod, Callable[[np.ndarray], List[Contour]]] = {
    TraceMethod.ORDERED: trace_ordered,
    TraceMethod.UNORDERED: trace_unordered,
}


def find_contours(mask: np.ndarray, method="unordered") -> List[Contour]:
    """Extract region boundaries from a binary mask.

    Args:
        mask: 2D uint8 mask, foreground > 0.
        method: A TraceMethod or its string value.

    Returns:
        Contours with at least 3 points each. Each contour's ``ordered`` flag
        reports which strategy produced it.
    """
    if mask.ndim != 2:
        raise ValueError(f"Expected a 2D mask, got shape {mask.shape}")

    method = TraceMethod(method)
    contours = _TRACERS[method](mask)
    logger.debug(f"Traced {len(contours)} contours ({method.value})")
    return contours
