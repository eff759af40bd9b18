"""Quadrilateral candidates: validity, scoring and selection.

Each contour is reduced to a convex hull, simplified with closed-curve
Douglas-Peucker and, when more than four vertices remain, searched for the
largest valid four-point subset. Surviving candidates are scored on area,
aspect ratio, corner regularity and edge consistency; the best score wins.
"""

import logging
import math
from dataclasses import dataclass
from itertools import combinations
from typing import List, Optional, Sequence, Tuple

import numpy as np

from docscan.geometry.hull import convex_hull
from docscan.geometry.shapes import Contour, Point, Quadrilateral
from docscan.geometry.simplify import simplify_closed

logger = logging.getLogger(__name__)

# Width / height ratios of common paper and photo formats, both orientations
STANDARD_ASPECT_RATIOS = (0.707, 0.773, 0.75, 0.667, 1.0, 1.414, 1.294, 1.333, 1.5)

MIN_CORNER_ANGLE = 30.0
MAX_CORNER_ANGLE = 150.0

# Exhaustive subset search caps
_EXHAUSTIVE_MAX_POINTS = 8
_REDUCED_POINTS = 6


@dataclass
class AngleInfo:
    """Orientation of a detected quadrilateral, in degrees."""

    rotation_angle: float
    horizontal_skew: float
    vertical_skew: float
    is_upside_down: bool
    confidence: float


@dataclass
class QuadCandidate:
    quad: Quadrilateral
    score: float
    area_ratio: float
    touches_border: bool


def _angle_between(v1: Tuple[float, float], v2: Tuple[float, float]) -> float:
    mag1 = math.hypot(*v1)
    mag2 = math.hypot(*v2)
    if mag1 < 1e-4 or mag2 < 1e-4:
        return 90.0

    cos_a = (v1[0] * v2[0] + v1[1] * v2[1]) / (mag1 * mag2)
    return math.degrees(math.acos(max(-1.0, min(1.0, cos_a))))


def corner_angles(quad: Quadrilateral) -> List[float]:
    """Interior angle at each corner, TL, TR, BR, BL order."""
    c = quad.corners
    angles = []
    for i in range(4):
        prev_pt, pt, next_pt = c[i - 1], c[i], c[(i + 1) % 4]
        angles.append(_angle_between(
            (prev_pt.x - pt.x, prev_pt.y - pt.y),
            (next_pt.x - pt.x, next_pt.y - pt.y),
        ))
    return angles


def is_valid_quadrilateral(quad: Quadrilateral) -> bool:
    """Convex, with four distinct corners and every angle within [30, 150] degrees."""
    c = quad.corners
    if len(set(c)) < 4:
        return False

    sign = 0
    for i in range(4):
        p1, p2, p3 = c[i], c[(i + 1) % 4], c[(i + 2) % 4]
        cross = (p2.x - p1.x) * (p3.y - p2.y) - (p2.y - p1.y) * (p3.x - p2.x)
        if abs(cross) <= 0.01:
            continue
        current = 1 if cross > 0 else -1
        if sign == 0:
            sign = current
        elif current != sign:
            return False

    return all(MIN_CORNER_ANGLE <= a <= MAX_CORNER_ANGLE for a in corner_angles(quad))


def find_best_four_points(points: Sequence[Point]) -> Optional[Quadrilateral]:
    """Largest-area valid quadrilateral formed by four of ``points``.

    Up to 8 points every 4-subset is tried. Beyond that only the 6 points
    farthest from the centroid are considered.
    """
    pts = list(points)
    if len(pts) < 4:
        return None

    if len(pts) > _EXHAUSTIVE_MAX_POINTS:
        cx = sum(p.x for p in pts) / len(pts)
        cy = sum(p.y for p in pts) / len(pts)
        centroid = Point(cx, cy)
        pts = sorted(pts, key=lambda p: -p.distance_to(centroid))[:_REDUCED_POINTS]

    best: Optional[Quadrilateral] = None
    best_area = 0.0

    for subset in combinations(pts, 4):
        quad = Quadrilateral.from_points(subset)
        if not is_valid_quadrilateral(quad):
            continue
        area = quad.area
        if area > best_area:
            best_area = area
            best = quad

    return best


def touches_border(quad: Quadrilateral, image_width: int, image_height: int, margin_ratio: float = 0.05) -> bool:
    """Whether the quad's bounding box is within ``margin_ratio`` of a frame edge.

    The margin is taken per axis: a fraction of the width horizontally and of
    the height vertically.
    """
    xs = [p.x for p in quad.corners]
    ys = [p.y for p in quad.corners]
    margin_x = image_width * margin_ratio
    margin_y = image_height * margin_ratio

    return (
        min(xs) < margin_x
        or min(ys) < margin_y
        or max(xs) > image_width - margin_x
        or max(ys) > image_height - margin_y
    )


def score_quadrilateral(
    quad: Quadrilateral,
    image_width: int,
    image_height: int,
    border_margin_ratio: float = 0.05,
) -> float:
    """Heuristic document-likeness score, 0 or more, higher is better.

    Terms:
        area: up to 100; scaled down below 10% of the frame and above 85%.
        aspect: up to 30, closeness to a standard document ratio.
        angles: up to 40, minus half the total deviation from 90 degrees.
        edges: up to 20, inverse coefficient of variation of side lengths.

    The total is halved when the quad comes near the frame edge.
    """
    image_area = float(image_width * image_height)
    area_ratio = quad.area / image_area if image_area > 0 else 0.0

    if area_ratio < 0.1:
        area_score = area_ratio * 50.0
    elif area_ratio > 0.85:
        area_score = (1.0 - area_ratio) * 200.0
    else:
        area_score = area_ratio * 100.0

    aspect_score = 0.0
    if quad.height > 1e-4:
        aspect = quad.width / quad.height
        closest = min(abs(aspect - r) for r in STANDARD_ASPECT_RATIOS)
        aspect_score = max(0.0, 1.0 - closest) * 30.0

    deviation = sum(abs(90.0 - a) for a in corner_angles(quad))
    angle_score = max(0.0, 40.0 - deviation * 0.5)

    sides = np.array(quad.side_lengths)
    mean_side = float(sides.mean())
    edge_score = 0.0
    if mean_side > 1e-4:
        edge_score = (1.0 - min(1.0, float(sides.std()) / mean_side)) * 20.0

    score = area_score + aspect_score + angle_score + edge_score

    if touches_border(quad, image_width, image_height, border_margin_ratio):
        score *= 0.5

    return max(0.0, score)


def _contour_measures(contour: Contour) -> Tuple[float, float]:
    """(area, perimeter) appropriate to the contour's ordering."""
    if contour.ordered:
        return contour.area, contour.perimeter
    return contour.bounding_area, contour.bounding_perimeter


def candidates_from_contour(
    contour: Contour,
    image_width: int,
    image_height: int,
    min_area_ratio: float = 0.1,
    max_area_ratio: float = 0.95,
    epsilon_ratio: float = 0.02,
    border_margin_ratio: float = 0.05,
) -> Optional[QuadCandidate]:
    """Reduce one contour to its best quadrilateral candidate, if any."""
    image_area = float(image_width * image_height)
    area, perimeter = _contour_measures(contour)
    ratio = area / image_area

    if ratio < min_area_ratio or ratio > max_area_ratio:
        return None

    hull = convex_hull(contour.points)
    if len(hull) < 4:
        return None

    approx = simplify_closed(hull, epsilon_ratio * perimeter)

    if len(approx) == 4:
        quad = Quadrilateral.from_points(approx)
        if not is_valid_quadrilateral(quad):
            return None
    elif len(approx) > 4:
        quad = find_best_four_points(approx)
        if quad is None:
            return None
    else:
        return None

    score = score_quadrilateral(quad, image_width, image_height, border_margin_ratio)
    return QuadCandidate(
        quad=quad,
        score=score,
        area_ratio=quad.area / image_area,
        touches_border=touches_border(quad, image_width, image_height, border_margin_ratio),
    )


def find_best_quadrilateral(
    contours: Sequence[Contour],
    image_width: int,
    image_height: int,
    min_area_ratio: float = 0.1,
    max_area_ratio: float = 0.95,
    epsilon_ratio: float = 0.02,
    border_margin_ratio: float = 0.05,
) -> Optional[QuadCandidate]:
    """Highest-scoring candidate across all contours, or None if none scores > 0."""
    best: Optional[QuadCandidate] = None

    for contour in contours:
        candidate = candidates_from_contour(
            contour,
            image_width,
            image_height,
            min_area_ratio=min_area_ratio,
            max_area_ratio=max_area_ratio,
            epsilon_ratio=epsilon_ratio,
            border_margin_ratio=border_margin_ratio,
        )
        if candidate is None:
            continue

        logger.debug(
            f"Candidate: score={candidate.score:.1f}, area_ratio={candidate.area_ratio:.3f}, "
            f"border={candidate.touches_border}"
        )

        if candidate.score > 0 and (best is None or candidate.score > best.score):
            best = candidate

    return best


def _edge_angle(start: Point, end: Point) -> float:
    return math.atan2(end.y - start.y, end.x - start.x)


def compute_angle_info(quad: Quadrilateral) -> AngleInfo:
    """Rotation and skew of the quad's edges relative to the image axes."""
    top = math.degrees(_edge_angle(quad.top_left, quad.top_right))
    bottom = math.degrees(_edge_angle(quad.bottom_left, quad.bottom_right))
    left = math.degrees(_edge_angle(quad.top_left, quad.bottom_left))
    right = math.degrees(_edge_angle(quad.top_right, quad.bottom_right))

    horizontal_skew = top - bottom
    vertical_skew = right - left

    return AngleInfo(
        rotation_angle=top,
        horizontal_skew=horizontal_skew,
        vertical_skew=vertical_skew,
        is_upside_down=abs(top) > 90.0,
        confidence=max(0.0, 1.0 - (abs(horizontal_skew) + abs(vertical_skew)) / 90.0),
    )


def _wrap_angle(radians: float) -> float:
    return (radians + math.pi) % (2 * math.pi) - math.pi


def compute_confidence(quad: Quadrilateral, image_width: int, image_height: int) -> float:
    """Detection confidence in [0, 1].

    Blends closeness of the area ratio to 50% (weight 0.3), corner angle
    regularity (0.4) and parallelism of opposite edges (0.3).
    """
    image_area = float(image_width * image_height)
    area_ratio = quad.area / image_area if image_area > 0 else 0.0
    area_score = max(0.0, 1.0 - 2.0 * abs(area_ratio - 0.5))

    deviation = sum(abs(90.0 - a) for a in corner_angles(quad))
    shape_score = max(0.0, 1.0 - deviation / 180.0)

    horizontal = _wrap_angle(
        _edge_angle(quad.top_left, quad.top_right) - _edge_angle(quad.bottom_left, quad.bottom_right)
    )
    vertical = _wrap_angle(
        _edge_angle(quad.top_left, quad.bottom_left) - _edge_angle(quad.top_right, quad.bottom_right)
    )
    parallel_score = (
        (1.0 - min(1.0, abs(horizontal) * 2.0)) + (1.0 - min(1.0, abs(vertical) * 2.0))
    ) / 2.0

    confidence = 0.3 * area_score + 0.4 * shape_score + 0.3 * parallel_score
    return min(1.0, max(0.0, confidence))
