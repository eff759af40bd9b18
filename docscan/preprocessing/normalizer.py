"""Scalar field operations: grayscale conversion, resampling, blur and contrast."""

import logging
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class NormalizationResult:
    """Result of working-resolution normalization."""

    def __init__(self, image: np.ndarray, scale_factor: float) -> None:
        self.image = image
        self.scale_factor = scale_factor


def to_uint8(image: np.ndarray) -> np.ndarray:
    """Convert float [0, 1] images to uint8; uint8 input is returned as a copy."""
    if image.dtype == np.uint8:
        return image.copy()
    if np.issubdtype(image.dtype, np.floating):
        return np.clip(np.rint(image * 255.0), 0, 255).astype(np.uint8)
    return np.clip(image, 0, 255).astype(np.uint8)


def to_grayscale(image: np.ndarray) -> np.ndarray:
    """Convert an RGB, RGBA or single-channel image to a uint8 intensity field.

    Args:
        image: Array of shape (H, W), (H, W, 1), (H, W, 3) or (H, W, 4), uint8
            or float32 in [0, 1].

    Returns:
        2D uint8 array.

    Raises:
        ValueError: If the array has an unsupported shape.
    """
    img = to_uint8(image)

    if img.ndim == 2:
        return img
    if img.ndim == 3 and img.shape[2] == 1:
        return img[:, :, 0].copy()
    if img.ndim == 3 and img.shape[2] == 3:
        return cv2.cvtColor(img, cv2.COLOR_RGB2GRAY)
    if img.ndim == 3 and img.shape[2] == 4:
        return cv2.cvtColor(img, cv2.COLOR_RGBA2GRAY)

    raise ValueError(f"Unsupported image shape: {image.shape}")


def resize_by_scale(image: np.ndarray, scale: float) -> Tuple[np.ndarray, float, float]:
    """Resample by a uniform scale factor.

    Returns:
        Tuple of (resized image, actual x scale, actual y scale). The actual
        scales account for rounding of the output dimensions.
    """
    if scale <= 0:
        raise ValueError(f"scale must be positive, got {scale}")

    height, width = image.shape[:2]
    if scale == 1.0:
        return image.copy(), 1.0, 1.0

    new_width = max(1, int(round(width * scale)))
    new_height = max(1, int(round(height * scale)))
    interpolation = cv2.INTER_AREA if scale < 1.0 else cv2.INTER_LINEAR

    resized = cv2.resize(image, (new_width, new_height), interpolation=interpolation)
    logger.debug(f"Resized {width}x{height} -> {new_width}x{new_height}")

    return resized, new_width / width, new_height / height


def gaussian_blur(field: np.ndarray, kernel_size: int = 5) -> np.ndarray:
    """Gaussian blur with a square kernel; even sizes are bumped to odd."""
    if kernel_size <= 1:
        return field.copy()
    if kernel_size % 2 == 0:
        kernel_size += 1
    return cv2.GaussianBlur(field, (kernel_size, kernel_size), 0)


def enhance_contrast(
    field: np.ndarray,
    method: str = "clahe",
    clip_limit: float = 2.0,
    grid_size: int = 8,
) -> np.ndarray:
    """Contrast normalization of a uint8 intensity field.

    Args:
        field: 2D uint8 array.
        method: "clahe" for contrast-limited adaptive equalization, or
            "equalize" for global histogram equalization.
        clip_limit: CLAHE clip limit.
        grid_size: CLAHE tile grid size.
    """
    if method == "clahe":
        clahe = cv2.createCLAHE(clipLimit=clip_limit, tileGridSize=(grid_size, grid_size))
        return clahe.apply(field)
    if method == "equalize":
        return cv2.equalizeHist(field)
    raise ValueError(f"Unknown contrast method: {method}")


def normalize(image: np.ndarray, max_working_resolution: int = 4000) -> NormalizationResult:
    """Downscale so the longest edge fits ``max_working_resolution``.

    Args:
        image: Input image, uint8 RGB.
        max_working_resolution: Maximum dimension (width or height).

    Returns:
        NormalizationResult with the working image and its scale factor.
    """
    height, width = image.shape[:2]
    original_max_dim = max(height, width)

    if original_max_dim <= max_working_resolution:
        logger.info(f"Image {width}x{height} within working resolution, no resize needed")
        return NormalizationResult(image=image, scale_factor=1.0)

    scale_factor = max_working_resolution / original_max_dim
    resized, _, _ = resize_by_scale(image, scale_factor)

    logger.info(
        f"Resized image from {width}x{height} to {resized.shape[1]}x{resized.shape[0]} "
        f"(scale: {scale_factor:.3f})"
    )

    return NormalizationResult(image=resized, scale_factor=scale_factor)
