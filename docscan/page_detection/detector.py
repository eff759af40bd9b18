"""Detect the boundary of a single document in a photograph.

The image is downscaled to the processing scale, converted to an intensity
field, optionally contrast-enhanced and binarized, then run through Canny and
a morphological close. Region boundaries are traced from the edge mask and
each is reduced to its best quadrilateral candidate; the highest-scoring
candidate is scaled back to full resolution.

Detection never raises for expected "not found" conditions. The result is a
DetectionOutcome that is either a success carrying the quadrilateral, or a
failure carrying a FailureReason.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Tuple

import cv2
import numpy as np

from docscan.contours.tracer import TraceMethod, find_contours
from docscan.edges.canny import auto_canny_thresholds, canny
from docscan.edges.morphology import close_mask
from docscan.edges.threshold import ThresholdMethod, threshold
from docscan.errors import FailureReason
from docscan.geometry.shapes import Quadrilateral
from docscan.page_detection.quad import (
    AngleInfo,
    compute_angle_info,
    compute_confidence,
    find_best_quadrilateral,
)
from docscan.preprocessing.normalizer import (
    enhance_contrast,
    gaussian_blur,
    resize_by_scale,
    to_grayscale,
)

logger = logging.getLogger(__name__)


@dataclass
class DetectionOptions:
    """All detection tunables in one place."""

    # Preprocessing
    processing_scale: float = 0.5
    blur_kernel: int = 5
    enhance_contrast: bool = False
    contrast_method: str = "clahe"  # "clahe" or "equalize"

    # Edges
    canny_low: int = 50
    canny_high: int = 150
    auto_canny: bool = False
    auto_canny_method: str = "otsu"  # "otsu" or "median"
    use_adaptive_threshold: bool = False
    adaptive_method: str = "sauvola"  # "sauvola", "niblack", "mean" or "otsu"
    adaptive_window: int = 15
    morph_kernel: int = 5

    # Contours and candidates
    trace_method: str = "unordered"  # "unordered" or "ordered"
    min_area_ratio: float = 0.1
    max_area_ratio: float = 0.95
    approx_epsilon: float = 0.02
    border_margin_ratio: float = 0.05


@dataclass
class DetectionOutcome:
    """Tagged detection result.

    Exactly one of two shapes: ``success`` with quad, confidence, angle info
    and mask set, or not ``success`` with ``failure`` set. Build instances
    with ``successful`` and ``failed``.
    """

    success: bool
    image_size: Tuple[int, int]  # (width, height) of the input image
    quad: Optional[Quadrilateral] = None
    confidence: float = 0.0
    angle_info: Optional[AngleInfo] = None
    mask: Optional[np.ndarray] = None
    area_ratio: float = 0.0
    score: float = 0.0
    failure: Optional[FailureReason] = None
    message: str = ""
    edge_mask: Optional[np.ndarray] = field(default=None, repr=False)

    @classmethod
    def successful(
        cls,
        quad: Quadrilateral,
        confidence: float,
        angle_info: AngleInfo,
        mask: np.ndarray,
        image_size: Tuple[int, int],
        area_ratio: float,
        score: float,
        edge_mask: Optional[np.ndarray] = None,
    ) -> "DetectionOutcome":
        return cls(
            success=True,
            image_size=image_size,
            quad=quad,
            confidence=confidence,
            angle_info=angle_info,
            mask=mask,
            area_ratio=area_ratio,
            score=score,
            edge_mask=edge_mask,
        )

    @classmethod
    def failed(
        cls,
        reason: FailureReason,
        message: str,
        image_size: Tuple[int, int] = (0, 0),
        edge_mask: Optional[np.ndarray] = None,
    ) -> "DetectionOutcome":
        logger.info(f"Detection failed ({reason.value}): {message}")
        return cls(
            success=False,
            image_size=image_size,
            failure=reason,
            message=message,
            edge_mask=edge_mask,
        )

    @property
    def corners(self) -> Optional[np.ndarray]:
        """Corners as a (4, 2) float32 array in TL, TR, BR, BL order."""
        return self.quad.to_array() if self.quad is not None else None


def quad_mask(quad: Quadrilateral, width: int, height: int) -> np.ndarray:
    """Filled uint8 mask of the quadrilateral, 255 inside and 0 outside."""
    mask = np.zeros((height, width), dtype=np.uint8)
    polygon = np.rint(quad.to_array()).astype(np.int32)
    cv2.fillPoly(mask, [polygon], 255)
    return mask


def _validate_image(image) -> Optional[str]:
    if not isinstance(image, np.ndarray):
        return f"Expected a numpy array, got {type(image).__name__}"
    if image.size == 0:
        return "Empty image"
    if image.ndim == 2:
        return None
    if image.ndim == 3 and image.shape[2] in (1, 3, 4):
        return None
    return f"Unsupported image shape: {image.shape}"


_CONTRAST_METHODS = ("clahe", "equalize")
_AUTO_CANNY_METHODS = ("otsu", "median")


def _validate_options(options: DetectionOptions) -> Optional[str]:
    if not 0 < options.processing_scale <= 1.0:
        return f"processing_scale must be in (0, 1], got {options.processing_scale}"
    if options.enhance_contrast and options.contrast_method not in _CONTRAST_METHODS:
        return f"Unknown contrast_method: {options.contrast_method}"
    if options.auto_canny and options.auto_canny_method not in _AUTO_CANNY_METHODS:
        return f"Unknown auto_canny_method: {options.auto_canny_method}"
    if options.use_adaptive_threshold and options.adaptive_method not in [m.value for m in ThresholdMethod]:
        return f"Unknown adaptive_method: {options.adaptive_method}"
    if options.trace_method not in [m.value for m in TraceMethod]:
        return f"Unknown trace_method: {options.trace_method}"
    return None


def edge_mask_for(intensity: np.ndarray, options: DetectionOptions) -> np.ndarray:
    """Closed edge mask of a processing-scale intensity field."""
    if options.enhance_contrast:
        intensity = enhance_contrast(intensity, options.contrast_method)

    intensity = gaussian_blur(intensity, options.blur_kernel)

    if options.use_adaptive_threshold:
        intensity = threshold(intensity, options.adaptive_method, **_threshold_params(options))

    if options.auto_canny:
        low, high = auto_canny_thresholds(intensity, options.auto_canny_method)
    else:
        low, high = options.canny_low, options.canny_high

    edges = canny(intensity, low, high)
    return close_mask(edges, options.morph_kernel)


def _threshold_params(options: DetectionOptions) -> dict:
    if options.adaptive_method == "otsu":
        return {}
    return {"window_size": options.adaptive_window}


def detect_document(image: np.ndarray, options: Optional[DetectionOptions] = None) -> DetectionOutcome:
    """Locate the document quadrilateral in an image.

    Args:
        image: uint8 or float32 [0, 1] image, grayscale (H, W) or RGB(A) (H, W, C).
        options: Detection tunables. Defaults to DetectionOptions().

    Returns:
        DetectionOutcome with corners in full-resolution image coordinates, or
        a failure reason: ``invalid_input``, ``no_edges_found``,
        ``no_contours_found`` or ``no_valid_quadrilateral``.
    """
    options = options or DetectionOptions()

    problem = _validate_image(image)
    if problem is not None:
        return DetectionOutcome.failed(FailureReason.INVALID_INPUT, problem)

    height, width = image.shape[:2]
    image_size = (width, height)

    problem = _validate_options(options)
    if problem is not None:
        return DetectionOutcome.failed(FailureReason.INVALID_INPUT, problem, image_size)

    gray = to_grayscale(image)
    working, scale_x, scale_y = resize_by_scale(gray, options.processing_scale)
    proc_h, proc_w = working.shape

    edges = edge_mask_for(working, options)
    edge_count = int(np.count_nonzero(edges))
    logger.debug(f"Edge pixels: {edge_count} at {proc_w}x{proc_h}")

    if edge_count == 0:
        return DetectionOutcome.failed(
            FailureReason.NO_EDGES_FOUND,
            "No edges found; thresholds too strict or scene too low-contrast",
            image_size,
            edges,
        )

    contours = find_contours(edges, options.trace_method)
    if not contours:
        return DetectionOutcome.failed(
            FailureReason.NO_CONTOURS_FOUND, "No contours traced from the edge mask", image_size, edges
        )

    best = find_best_quadrilateral(
        contours,
        proc_w,
        proc_h,
        min_area_ratio=options.min_area_ratio,
        max_area_ratio=options.max_area_ratio,
        epsilon_ratio=options.approx_epsilon,
        border_margin_ratio=options.border_margin_ratio,
    )
    if best is None:
        return DetectionOutcome.failed(
            FailureReason.NO_VALID_QUADRILATERAL,
            f"None of {len(contours)} contours produced a valid document quadrilateral",
            image_size,
            edges,
        )

    quad = best.quad.scaled(1.0 / scale_x, 1.0 / scale_y)
    confidence = compute_confidence(quad, width, height)
    angle_info = compute_angle_info(quad)

    logger.info(
        f"Document detected: area_ratio={best.area_ratio:.3f}, score={best.score:.1f}, "
        f"confidence={confidence:.3f}, rotation={angle_info.rotation_angle:.1f}°"
    )

    return DetectionOutcome.successful(
        quad=quad,
        confidence=confidence,
        angle_info=angle_info,
        mask=quad_mask(quad, width, height),
        image_size=image_size,
        area_ratio=best.area_ratio,
        score=best.score,
        edge_mask=edges,
    )
