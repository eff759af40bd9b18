"""Morphological filters on binary masks.

Square structuring elements; out-of-bounds samples repeat the nearest in-bounds
pixel instead of padding with zeros, so foreground touching the image edge is
not eroded away.
"""

import numpy as np
from scipy import ndimage


def _window(kernel_size: int) -> int:
    if kernel_size < 1:
        raise ValueError(f"kernel_size must be positive, got {kernel_size}")
    return 2 * (kernel_size // 2) + 1


def dilate(mask: np.ndarray, kernel_size: int = 5) -> np.ndarray:
    """Maximum filter over a square window."""
    return ndimage.maximum_filter(mask, size=_window(kernel_size), mode="nearest")


def erode(mask: np.ndarray, kernel_size: int = 5) -> np.ndarray:
    """Minimum filter over a square window."""
    return ndimage.minimum_filter(mask, size=_window(kernel_size), mode="nearest")


def close_mask(mask: np.ndarray, kernel_size: int = 5) -> np.ndarray:
    """Dilate then erode, bridging gaps narrower than the kernel."""
    return erode(dilate(mask, kernel_size), kernel_size)


def open_mask(mask: np.ndarray, kernel_size: int = 5) -> np.ndarray:
    """Erode then dilate, removing specks smaller than the kernel."""
    return dilate(erode(mask, kernel_size), kernel_size)
