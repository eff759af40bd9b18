"""Thresholding, edge extraction and morphology on intensity fields."""

from docscan.edges.canny import (
    CannyStages,
    auto_canny_thresholds,
    canny,
    canny_auto,
    canny_debug,
    double_threshold,
    hysteresis,
    non_maximum_suppression,
    sobel,
)
from docscan.edges.morphology import close_mask, dilate, erode, open_mask
from docscan.edges.threshold import (
    ThresholdMethod,
    adaptive_mean_threshold,
    binary_threshold,
    niblack_threshold,
    otsu_threshold,
    sauvola_threshold,
    threshold,
)

__all__ = [
    "CannyStages",
    "auto_canny_thresholds",
    "canny",
    "canny_auto",
    "canny_debug",
    "double_threshold",
    "hysteresis",
    "non_maximum_suppression",
    "sobel",
    "close_mask",
    "dilate",
    "erode",
    "open_mask",
    "ThresholdMethod",
    "adaptive_mean_threshold",
    "binary_threshold",
    "niblack_threshold",
    "otsu_threshold",
    "sauvola_threshold",
    "threshold",
]
