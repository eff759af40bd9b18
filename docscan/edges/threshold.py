"""Binarization of intensity fields.

Global thresholding uses Otsu's method over the 256-bin histogram. Local
thresholds (Sauvola, Niblack, adaptive mean) read window statistics from
integral images, so each pixel costs O(1) regardless of window size. Windows
are clamped to the image, so border pixels see smaller windows.

Every function returns a new uint8 mask holding only 0 and 255; foreground is
``pixel > threshold``.
"""

import logging
from enum import Enum
from typing import Callable, Dict, Tuple

import numpy as np

logger = logging.getLogger(__name__)


class ThresholdMethod(str, Enum):
    """Available binarization strategies."""

    OTSU = "otsu"
    SAUVOLA = "sauvola"
    NIBLACK = "niblack"
    MEAN = "mean"


def _check_field(field: np.ndarray) -> None:
    if field.ndim != 2:
        raise ValueError(f"Expected a 2D intensity field, got shape {field.shape}")


def otsu_threshold(field: np.ndarray) -> int:
    """Otsu's threshold for a uint8 field.

    Maximizes the between-class variance ``wB * wF * (mB - mF)**2`` over all
    split points. On ties the first (lowest) threshold wins.

    Args:
        field: 2D uint8 array.

    Returns:
        Threshold in [0, 255]. Pixels strictly above it are foreground.
    """
    _check_field(field)
    hist = np.bincount(field.ravel(), minlength=256).astype(np.float64)
    return otsu_from_histogram(hist)


def otsu_from_histogram(hist: np.ndarray) -> int:
    """Otsu's threshold for a 256-bin histogram."""
    hist = np.asarray(hist, dtype=np.float64)
    levels = np.arange(len(hist), dtype=np.float64)

    total = hist.sum()
    if total == 0:
        return 0

    w_b = np.cumsum(hist)
    w_f = total - w_b
    sum_b = np.cumsum(hist * levels)
    sum_all = sum_b[-1]

    valid = (w_b > 0) & (w_f > 0)
    if not np.any(valid):
        return 0

    m_b = np.divide(sum_b, w_b, out=np.zeros_like(sum_b), where=w_b > 0)
    m_f = np.divide(sum_all - sum_b, w_f, out=np.zeros_like(sum_b), where=w_f > 0)

    variance = np.where(valid, w_b * w_f * (m_b - m_f) ** 2, 0.0)
    best = float(variance.max())
    if best <= 0.0:
        return 0

    # argmax returns the first occurrence, so ties keep the lower threshold
    return int(np.argmax(variance))


def binary_threshold(field: np.ndarray, threshold: int) -> np.ndarray:
    """Fixed global threshold: foreground where ``pixel > threshold``."""
    _check_field(field)
    return np.where(field > threshold, 255, 0).astype(np.uint8)


def _odd_window(window_size: int) -> int:
    if window_size < 1:
        raise ValueError(f"window_size must be positive, got {window_size}")
    return window_size if window_size % 2 == 1 else window_size + 1


def _window_stats(field: np.ndarray, window_size: int) -> Tuple[np.ndarray, np.ndarray]:
    """Local mean and standard deviation from integral images.

    Integral tables carry a leading row and column of zeros so a window sum is
    ``I[y2, x2] - I[y1, x2] - I[y2, x1] + I[y1, x1]``.
    """
    height, width = field.shape
    half = _odd_window(window_size) // 2

    values = field.astype(np.int64)
    integral = np.zeros((height + 1, width + 1), dtype=np.int64)
    integral_sq = np.zeros((height + 1, width + 1), dtype=np.int64)
    integral[1:, 1:] = values.cumsum(axis=0).cumsum(axis=1)
    integral_sq[1:, 1:] = (values * values).cumsum(axis=0).cumsum(axis=1)

    ys = np.arange(height)
    xs = np.arange(width)
    y1 = np.clip(ys - half, 0, height)[:, None]
    y2 = np.clip(ys + half + 1, 0, height)[:, None]
    x1 = np.clip(xs - half, 0, width)[None, :]
    x2 = np.clip(xs + half + 1, 0, width)[None, :]

    count = ((y2 - y1) * (x2 - x1)).astype(np.float64)

    def window_sum(table: np.ndarray) -> np.ndarray:
        return (table[y2, x2] - table[y1, x2] - table[y2, x1] + table[y1, x1]).astype(np.float64)

    mean = window_sum(integral) / count
    variance = window_sum(integral_sq) / count - mean * mean
    std = np.sqrt(np.maximum(variance, 0.0))

    return mean, std


def sauvola_threshold(
    field: np.ndarray,
    window_size: int = 15,
    k: float = 0.5,
    r: float = 128.0,
) -> np.ndarray:
    """Sauvola local threshold ``mean * (1 + k * (std / r - 1))``.

    Even window sizes are bumped to the next odd size.

    With zero local variance the threshold collapses to ``mean * (1 - k)``,
    which sits below the pixel value for any non-zero intensity. A constant
    field of value V > 0 is therefore entirely foreground (255) and a
    constant zero field entirely background. On uniformly bright, low-contrast
    scenes this produces a degenerate mask; use Otsu or skip thresholding for
    such scenes.
    """
    _check_field(field)
    mean, std = _window_stats(field, window_size)
    thresh = mean * (1.0 + k * (std / r - 1.0))
    return np.where(field > thresh, 255, 0).astype(np.uint8)


def niblack_threshold(field: np.ndarray, window_size: int = 15, k: float = -0.2) -> np.ndarray:
    """Niblack local threshold ``mean + k * std``.

    On a constant field the threshold equals the pixel value, so the whole
    mask is background (0).
    """
    _check_field(field)
    mean, std = _window_stats(field, window_size)
    thresh = mean + k * std
    return np.where(field > thresh, 255, 0).astype(np.uint8)


def adaptive_mean_threshold(field: np.ndarray, window_size: int = 11, c: float = 5.0) -> np.ndarray:
    """Local threshold ``mean - c``."""
    _check_field(field)
    mean, _ = _window_stats(field, window_size)
    return np.where(field > mean - c, 255, 0).astype(np.uint8)


def _otsu_mask(field: np.ndarray, **_) -> np.ndarray:
    t = otsu_threshold(field)
    logger.debug(f"Otsu threshold: {t}")
    return binary_threshold(field, t)


_METHODS: Dict[ThresholdMethod, Callable[..., np.ndarray]] = {
    ThresholdMethod.OTSU: _otsu_mask,
    ThresholdMethod.SAUVOLA: sauvola_threshold,
    ThresholdMethod.NIBLACK: niblack_threshold,
    ThresholdMethod.MEAN: adaptive_mean_threshold,
}


def threshold(field: np.ndarray, method="otsu", **params) -> np.ndarray:
    """Binarize ``field`` with the named method.

    Args:
        field: 2D uint8 intensity field.
        method: A ThresholdMethod or its string value.
        **params: Forwarded to the method, e.g. ``window_size`` or ``k``.

    Returns:
        uint8 mask with values in {0, 255}.

    Raises:
        ValueError: If the method name is unknown.
    """
    method = ThresholdMethod(method)
    return _METHODS[method](field, **params)
