"""Numbered debug images and the detection overlay."""

import logging
from pathlib import Path
from typing import Optional, Union

import cv2
import numpy as np

from docscan.preprocessing.loader import save_image
from docscan.preprocessing.normalizer import to_uint8

logger = logging.getLogger(__name__)


def save_debug_image(
    image: np.ndarray,
    output_path: Union[str, Path],
    description: Optional[str] = None,
    quality: int = 95
) -> Path:
    """Write one pipeline stage as a JPEG next to its siblings.

    Args:
        image: uint8 or float32 [0,1] array, grayscale or RGB(A).
        output_path: Target path, prefixed with the step number (``02_edges.jpg``).
            Any other extension is replaced with ``.jpg``.
        description: Logged alongside the path.
        quality: JPEG quality (0-100).

    Returns:
        The path actually written.
    """
    output_path = Path(output_path).with_suffix('.jpg')

    frame = to_uint8(image)
    if frame.ndim == 3 and frame.shape[2] == 4:
        frame = frame[:, :, :3]

    save_image(frame, output_path, quality=quality)
    logger.debug(f"Debug image {output_path.name}: {description or 'no description'}")

    return output_path


def draw_detection(image: np.ndarray, outcome, line_thickness: int = 3) -> np.ndarray:
    """Draw a detection outcome over the image.

    Successful detections get the quadrilateral outline, corner dots and a
    confidence label; failures get the failure reason.

    Args:
        image: uint8 or float32 [0,1] image, grayscale or RGB.
        outcome: DetectionOutcome from ``detect_document``.
        line_thickness: Outline thickness in pixels.

    Returns:
        uint8 RGB image with the overlay.
    """
    canvas = to_uint8(image)
    if canvas.ndim == 2:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_GRAY2RGB)
    elif canvas.shape[2] == 4:
        canvas = cv2.cvtColor(canvas, cv2.COLOR_RGBA2RGB)
    canvas = np.ascontiguousarray(canvas)

    font = cv2.FONT_HERSHEY_SIMPLEX
    scale = max(0.5, min(canvas.shape[:2]) / 800.0)

    if not outcome.success:
        cv2.putText(canvas, f"failed: {outcome.failure.value}", (20, 40), font, scale, (255, 0, 0), 2)
        return canvas

    corners = np.rint(outcome.corners).astype(np.int32)
    cv2.polylines(canvas, [corners], True, (0, 255, 0), line_thickness)

    radius = max(4, line_thickness * 3)
    for corner in corners:
        cv2.circle(canvas, (int(corner[0]), int(corner[1])), radius, (255, 0, 0), -1)

    text = f"conf:{outcome.confidence:.2f} rot:{outcome.angle_info.rotation_angle:.1f}"
    cv2.putText(canvas, text, (20, 40), font, scale, (0, 255, 0), 2)

    return canvas
