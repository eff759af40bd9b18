"""Document boundary detection and perspective correction."""

from docscan.page_detection.detector import (
    DetectionOptions,
    DetectionOutcome,
    detect_document,
    quad_mask,
)
from docscan.page_detection.perspective import (
    Homography,
    RectificationResult,
    RectifyOptions,
    compute_output_size,
    rectify_document,
    solve_homography,
    warp_perspective,
)
from docscan.page_detection.quad import (
    AngleInfo,
    compute_angle_info,
    compute_confidence,
    find_best_quadrilateral,
    is_valid_quadrilateral,
    score_quadrilateral,
)

__all__ = [
    "DetectionOptions",
    "DetectionOutcome",
    "detect_document",
    "quad_mask",
    "Homography",
    "RectificationResult",
    "RectifyOptions",
    "compute_output_size",
    "rectify_document",
    "solve_homography",
    "warp_perspective",
    "AngleInfo",
    "compute_angle_info",
    "compute_confidence",
    "find_best_quadrilateral",
    "is_valid_quadrilateral",
    "score_quadrilateral",
]
