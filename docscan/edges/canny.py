"""Canny edge extraction.

The four stages are exposed separately so they can be inspected and tested on
their own:

1. ``sobel`` - 3x3 Sobel gradients, magnitude saturated to 8 bits.
2. ``non_maximum_suppression`` - thin ridges along the quantized gradient.
3. ``double_threshold`` - classify into STRONG, WEAK or nothing.
4. ``hysteresis`` - keep WEAK pixels only when 8-connected to a STRONG one.

Gradients are computed for interior pixels only; the one-pixel frame of every
gradient and edge field is zero.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

import numpy as np
from scipy import ndimage

from docscan.edges.threshold import otsu_threshold

logger = logging.getLogger(__name__)

STRONG = 255
WEAK = 75

# Median-based auto thresholds spread this far either side of the median
_MEDIAN_SIGMA = 0.33


@dataclass
class CannyStages:
    """Intermediate fields of one Canny run, for debugging."""

    magnitude: np.ndarray
    direction: np.ndarray
    suppressed: np.ndarray
    classified: np.ndarray
    edges: np.ndarray
    low_threshold: int
    high_threshold: int


def sobel(field: np.ndarray, compute_direction: bool = True) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Sobel gradient magnitude and direction.

    Args:
        field: 2D uint8 intensity field.
        compute_direction: Skip the arctangent when only magnitude is needed.

    Returns:
        Tuple of (magnitude as uint8, direction in radians as float32 or None).
        Magnitude is ``sqrt(gx**2 + gy**2)`` clamped to 255 and truncated.
    """
    if field.ndim != 2:
        raise ValueError(f"Expected a 2D intensity field, got shape {field.shape}")

    height, width = field.shape
    magnitude = np.zeros((height, width), dtype=np.uint8)
    direction = np.zeros((height, width), dtype=np.float32) if compute_direction else None

    if height < 3 or width < 3:
        return magnitude, direction

    f = field.astype(np.float64)

    # Neighborhood views around every interior pixel
    tl, tc, tr = f[:-2, :-2], f[:-2, 1:-1], f[:-2, 2:]
    ml, mr = f[1:-1, :-2], f[1:-1, 2:]
    bl, bc, br = f[2:, :-2], f[2:, 1:-1], f[2:, 2:]

    gx = (tr + 2 * mr + br) - (tl + 2 * ml + bl)
    gy = (bl + 2 * bc + br) - (tl + 2 * tc + tr)

    mag = np.minimum(np.sqrt(gx * gx + gy * gy), 255.0)
    magnitude[1:-1, 1:-1] = mag.astype(np.uint8)

    if compute_direction:
        direction[1:-1, 1:-1] = np.arctan2(gy, gx).astype(np.float32)

    return magnitude, direction


def non_maximum_suppression(magnitude: np.ndarray, direction: np.ndarray) -> np.ndarray:
    """Suppress pixels that are not a local maximum across the edge.

    Gradient direction is folded into [0, 180) degrees and quantized into four
    bins. A pixel survives when its magnitude is >= both neighbors of its bin:

    - [0, 22.5) and [157.5, 180]: west and east
    - [22.5, 67.5): north-east and south-west
    - [67.5, 112.5): north and south
    - [112.5, 157.5): north-west and south-east
    """
    height, width = magnitude.shape
    result = np.zeros((height, width), dtype=np.uint8)

    if height < 3 or width < 3:
        return result

    mag = magnitude.astype(np.int32)
    center = mag[1:-1, 1:-1]

    angle = np.degrees(direction[1:-1, 1:-1].astype(np.float64))
    angle = np.where(angle < 0, angle + 180.0, angle)

    # (dy, dx) offsets of the two neighbors compared for each bin
    bins = [
        ((angle < 22.5) | (angle >= 157.5), (0, -1), (0, 1)),
        ((angle >= 22.5) & (angle < 67.5), (-1, 1), (1, -1)),
        ((angle >= 67.5) & (angle < 112.5), (-1, 0), (1, 0)),
        ((angle >= 112.5) & (angle < 157.5), (-1, -1), (1, 1)),
    ]

    keep = np.zeros(center.shape, dtype=bool)
    for selector, (dy1, dx1), (dy2, dx2) in bins:
        n1 = mag[1 + dy1:height - 1 + dy1, 1 + dx1:width - 1 + dx1]
        n2 = mag[1 + dy2:height - 1 + dy2, 1 + dx2:width - 1 + dx2]
        keep |= selector & (center >= n1) & (center >= n2)

    result[1:-1, 1:-1] = np.where(keep, center, 0).astype(np.uint8)
    return result


def double_threshold(field: np.ndarray, low: int, high: int) -> np.ndarray:
    """Classify each pixel as STRONG (>= high), WEAK (>= low) or 0."""
    result = np.zeros(field.shape, dtype=np.uint8)
    result[field >= low] = WEAK
    result[field >= high] = STRONG
    return result


def hysteresis(classified: np.ndarray) -> np.ndarray:
    """Keep STRONG pixels and every WEAK pixel 8-connected to one.

    Equivalent to a breadth-first expansion seeded with all STRONG pixels:
    a WEAK pixel is reached exactly when it shares an 8-connected STRONG/WEAK
    component with at least one STRONG pixel.
    """
    candidates = classified > 0
    labels, count = ndimage.label(candidates, structure=np.ones((3, 3), dtype=bool))

    if count == 0:
        return np.zeros(classified.shape, dtype=np.uint8)

    strong_labels = np.unique(labels[classified == STRONG])
    strong_labels = strong_labels[strong_labels > 0]

    edges = np.isin(labels, strong_labels)
    return np.where(edges, 255, 0).astype(np.uint8)


def canny_debug(field: np.ndarray, low: int = 50, high: int = 150) -> CannyStages:
    """Run every Canny stage and keep the intermediate fields."""
    magnitude, direction = sobel(field, compute_direction=True)
    suppressed = non_maximum_suppression(magnitude, direction)
    classified = double_threshold(suppressed, low, high)
    edges = hysteresis(classified)

    return CannyStages(
        magnitude=magnitude,
        direction=direction,
        suppressed=suppressed,
        classified=classified,
        edges=edges,
        low_threshold=low,
        high_threshold=high,
    )


def canny(field: np.ndarray, low: int = 50, high: int = 150) -> np.ndarray:
    """Canny edge mask of a 2D uint8 field.

    Args:
        field: 2D uint8 intensity field, usually blurred beforehand.
        low: WEAK threshold on the suppressed gradient magnitude.
        high: STRONG threshold on the suppressed gradient magnitude.

    Returns:
        uint8 edge mask with values in {0, 255}.
    """
    return canny_debug(field, low, high).edges


def auto_canny_thresholds(field: np.ndarray, method: str = "otsu") -> Tuple[int, int]:
    """Derive (low, high) Canny thresholds from image content.

    ``"otsu"`` runs Otsu's method over the gradient magnitudes and uses half
    and one and a half times the result, with a floor of 5 and a ceiling of
    255. ``"median"`` spreads 33% either side of the median intensity.
    """
    if method == "otsu":
        magnitude, _ = sobel(field, compute_direction=False)
        t = otsu_threshold(magnitude)
        low = max(5, t // 2)
        high = min(255, max(5, (t * 3) // 2))
    elif method == "median":
        median = float(np.sort(field, axis=None)[field.size // 2])
        low = int(max(0.0, (1.0 - _MEDIAN_SIGMA) * median))
        high = int(min(255.0, (1.0 + _MEDIAN_SIGMA) * median))
    else:
        raise ValueError(f"Unknown auto-threshold method: {method}")

    logger.debug(f"Auto Canny thresholds ({method}): low={low}, high={high}")
    return low, high


def canny_auto(field: np.ndarray, method: str = "otsu") -> np.ndarray:
    """Canny with thresholds picked by ``auto_canny_thresholds``."""
    low, high = auto_canny_thresholds(field, method)
    return canny(field, low, high)
