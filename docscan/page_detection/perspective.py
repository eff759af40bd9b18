"""Perspective correction via homographic transform.

Solves the 3x3 homography from four corner correspondences with a Direct
Linear Transform and warps the image by inverse mapping every destination
pixel into the source.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

import numpy as np

from docscan.edges.threshold import sauvola_threshold
from docscan.errors import FailureReason
from docscan.geometry.shapes import Point, Quadrilateral
from docscan.preprocessing.normalizer import to_grayscale, to_uint8

logger = logging.getLogger(__name__)

_EPSILON = 1e-4

BACKGROUND = 255

# Sauvola sensitivity for binarized output; lower than the detection default
_BINARY_OUTPUT_K = 0.3
_BINARY_OUTPUT_WINDOW = 15


class Homography:
    """A 3x3 projective transform acting on (x, y) image coordinates."""

    def __init__(self, matrix: np.ndarray) -> None:
        matrix = np.asarray(matrix, dtype=np.float64)
        if matrix.shape != (3, 3):
            raise ValueError(f"Homography matrix must be 3x3, got {matrix.shape}")
        self.matrix = matrix

    @classmethod
    def identity(cls) -> "Homography":
        return cls(np.eye(3))

    def __matmul__(self, other: "Homography") -> "Homography":
        return Homography(self.matrix @ other.matrix)

    def __repr__(self) -> str:
        return f"Homography({self.matrix.tolist()})"

    def transform(self, point) -> Point:
        """Map one point. Returns it unchanged when the projective divisor vanishes."""
        x, y = float(point[0]), float(point[1])
        m = self.matrix
        w = m[2, 0] * x + m[2, 1] * y + m[2, 2]

        if abs(w) < _EPSILON:
            return Point(x, y)

        return Point(
            (m[0, 0] * x + m[0, 1] * y + m[0, 2]) / w,
            (m[1, 0] * x + m[1, 1] * y + m[1, 2]) / w,
        )

    def transform_points(self, points: np.ndarray) -> np.ndarray:
        """Map an (N, 2) array of points, same degenerate-divisor rule as ``transform``."""
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
        return _apply(self.matrix, pts[:, 0], pts[:, 1])

    def inverse(self) -> Optional["Homography"]:
        """Inverse by the cofactor formula, or None when |det| < 1e-4."""
        m = self.matrix
        a, b, c = m[0]
        d, e, f = m[1]
        g, h, i = m[2]

        det = a * (e * i - f * h) - b * (d * i - f * g) + c * (d * h - e * g)
        if abs(det) < _EPSILON:
            return None

        adjugate = np.array([
            [e * i - f * h, c * h - b * i, b * f - c * e],
            [f * g - d * i, a * i - c * g, c * d - a * f],
            [d * h - e * g, b * g - a * h, a * e - b * d],
        ])
        return Homography(adjugate / det)


def _apply(matrix: np.ndarray, xs: np.ndarray, ys: np.ndarray) -> np.ndarray:
    w = matrix[2, 0] * xs + matrix[2, 1] * ys + matrix[2, 2]
    u = matrix[0, 0] * xs + matrix[0, 1] * ys + matrix[0, 2]
    v = matrix[1, 0] * xs + matrix[1, 1] * ys + matrix[1, 2]

    degenerate = np.abs(w) < _EPSILON
    safe_w = np.where(degenerate, 1.0, w)

    out_x = np.where(degenerate, xs, u / safe_w)
    out_y = np.where(degenerate, ys, v / safe_w)
    return np.stack([out_x, out_y], axis=-1)


def _solve_linear(a: np.ndarray, b: np.ndarray) -> Optional[np.ndarray]:
    """Gaussian elimination with partial pivoting; None on a degenerate pivot."""
    a = a.astype(np.float64).copy()
    b = b.astype(np.float64).copy()
    n = len(b)

    for col in range(n):
        pivot = col + int(np.argmax(np.abs(a[col:, col])))
        if abs(a[pivot, col]) < _EPSILON:
            return None

        if pivot != col:
            a[[col, pivot]] = a[[pivot, col]]
            b[[col, pivot]] = b[[pivot, col]]

        factors = a[col + 1:, col] / a[col, col]
        a[col + 1:, col:] -= np.outer(factors, a[col, col:])
        b[col + 1:] -= factors * b[col]

    x = np.zeros(n)
    for row in range(n - 1, -1, -1):
        x[row] = (b[row] - a[row, row + 1:] @ x[row + 1:]) / a[row, row]

    return x


def solve_homography(src: Sequence, dst: Sequence) -> Optional[Homography]:
    """Homography mapping four source points onto four destination points.

    Builds the 8x8 DLT system with the bottom-right entry fixed to 1.

    Args:
        src: Four (x, y) source points.
        dst: Four (x, y) destination points, in corresponding order.

    Returns:
        The Homography, or None when the points are collinear or coincident
        enough that elimination meets a pivot below 1e-4.

    Raises:
        ValueError: If either side does not hold exactly four points.
    """
    src = np.asarray(src, dtype=np.float64).reshape(-1, 2)
    dst = np.asarray(dst, dtype=np.float64).reshape(-1, 2)
    if len(src) != 4 or len(dst) != 4:
        raise ValueError(f"Need exactly 4 correspondences, got {len(src)} and {len(dst)}")

    a = np.zeros((8, 8))
    b = np.zeros(8)

    for i, ((x, y), (u, v)) in enumerate(zip(src, dst)):
        a[2 * i] = [x, y, 1, 0, 0, 0, -u * x, -u * y]
        a[2 * i + 1] = [0, 0, 0, x, y, 1, -v * x, -v * y]
        b[2 * i] = u
        b[2 * i + 1] = v

    h = _solve_linear(a, b)
    if h is None:
        logger.debug("Degenerate correspondences, no homography")
        return None

    return Homography(np.append(h, 1.0).reshape(3, 3))


def warp_perspective(
    image: np.ndarray,
    homography: Homography,
    output_width: int,
    output_height: int,
) -> Optional[np.ndarray]:
    """Warp ``image`` into an ``output_width`` x ``output_height`` canvas.

    Each destination pixel is mapped back through the inverse homography.
    Bilinear sampling is used when the source point lies inside the image with
    a one-pixel margin on the far sides, nearest-neighbor on that last row or
    column, and white everywhere outside the source.

    Args:
        image: uint8 array (H, W) or (H, W, C).
        homography: Source-to-destination transform.
        output_width: Canvas width in pixels.
        output_height: Canvas height in pixels.

    Returns:
        Warped uint8 image with the input's channel layout, or None when the
        homography cannot be inverted.
    """
    if output_width <= 0 or output_height <= 0:
        raise ValueError(f"Output size must be positive, got {output_width}x{output_height}")

    inverse = homography.inverse()
    if inverse is None:
        return None

    src = image if image.ndim == 3 else image[:, :, None]
    src_h, src_w = src.shape[:2]
    channels = src.shape[2]

    ys, xs = np.mgrid[0:output_height, 0:output_width].astype(np.float64)
    mapped = _apply(inverse.matrix, xs.ravel(), ys.ravel())
    sx = mapped[:, 0].reshape(output_height, output_width)
    sy = mapped[:, 1].reshape(output_height, output_width)

    out = np.full((output_height, output_width, channels), BACKGROUND, dtype=np.uint8)

    bilinear = (sx >= 0) & (sx < src_w - 1) & (sy >= 0) & (sy < src_h - 1)
    inside = (sx >= 0) & (sx < src_w) & (sy >= 0) & (sy < src_h)
    nearest = inside & ~bilinear

    if np.any(bilinear):
        bx, by = sx[bilinear], sy[bilinear]
        x0 = np.floor(bx).astype(np.intp)
        y0 = np.floor(by).astype(np.intp)
        fx = (bx - x0)[:, None]
        fy = (by - y0)[:, None]

        data = src.astype(np.float64)
        top = data[y0, x0] * (1 - fx) + data[y0, x0 + 1] * fx
        bottom = data[y0 + 1, x0] * (1 - fx) + data[y0 + 1, x0 + 1] * fx
        value = top * (1 - fy) + bottom * fy

        out[bilinear] = np.clip(np.rint(value), 0, 255).astype(np.uint8)

    if np.any(nearest):
        nx = np.clip(np.rint(sx[nearest]).astype(np.intp), 0, src_w - 1)
        ny = np.clip(np.rint(sy[nearest]).astype(np.intp), 0, src_h - 1)
        out[nearest] = src[ny, nx]

    return out if image.ndim == 3 else out[:, :, 0]


def compute_output_size(
    quad: Quadrilateral,
    target_aspect_ratio: Optional[float] = None,
    min_size: int = 100,
) -> Tuple[int, int]:
    """Rectified (width, height) from the quad's average edge lengths.

    With a target aspect ratio (width / height) the shorter side grows to match;
    neither side ever shrinks. Each side is at least ``min_size`` pixels.
    """
    width = quad.width
    height = quad.height

    if target_aspect_ratio and height > 0:
        if width / height > target_aspect_ratio:
            height = width / target_aspect_ratio
        else:
            width = height * target_aspect_ratio

    return max(min_size, int(round(width))), max(min_size, int(round(height)))


@dataclass
class RectifyOptions:
    """Output controls for perspective correction."""

    target_aspect_ratio: Optional[float] = None  # width / height, e.g. 1 / 1.414 for A4 portrait
    padding: int = 0                              # px of white border on every side
    max_width: Optional[int] = None               # scale down only
    max_height: Optional[int] = None
    min_size: int = 100
    output_mode: str = "color"                    # "color", "grayscale" or "binary"


@dataclass
class RectificationResult:
    """Either a rectified image with its transform, or a failure reason."""

    success: bool
    image: Optional[np.ndarray] = None
    homography: Optional[Homography] = None
    output_size: Tuple[int, int] = (0, 0)
    failure: Optional[FailureReason] = None
    message: str = field(default="")

    @classmethod
    def failed(cls, reason: FailureReason, message: str) -> "RectificationResult":
        logger.warning(f"Rectification failed ({reason.value}): {message}")
        return cls(success=False, failure=reason, message=message)


def _fit_within(width: int, height: int, max_width: Optional[int], max_height: Optional[int]) -> Tuple[int, int]:
    scale = 1.0
    if max_width and width > max_width:
        scale = min(scale, max_width / width)
    if max_height and height > max_height:
        scale = min(scale, max_height / height)
    if scale >= 1.0:
        return width, height
    return max(1, int(round(width * scale))), max(1, int(round(height * scale)))


def _valid_image(image) -> bool:
    if not isinstance(image, np.ndarray) or image.size == 0:
        return False
    if image.ndim == 2:
        return True
    return image.ndim == 3 and image.shape[2] in (1, 3, 4)


def rectify_document(
    image: np.ndarray,
    corners: Sequence,
    options: Optional[RectifyOptions] = None,
) -> RectificationResult:
    """Warp the quadrilateral ``corners`` of ``image`` into an upright rectangle.

    Corners may be in any order; roles are assigned by the quadrilateral
    ordering rule. Padding is folded into the destination corners before the
    homography is solved, so the transform is solved exactly once.

    Args:
        image: uint8 or float [0, 1] image, grayscale or RGB(A).
        corners: Exactly four (x, y) points in image coordinates.
        options: Output sizing and mode. Defaults to RectifyOptions().

    Returns:
        RectificationResult. Malformed input yields ``invalid_input``, a
        degenerate corner set ``degenerate_homography``.
    """
    options = options or RectifyOptions()

    if not _valid_image(image):
        shape = getattr(image, "shape", None)
        return RectificationResult.failed(FailureReason.INVALID_INPUT, f"Malformed image buffer: {shape}")

    pts = np.asarray(corners, dtype=np.float64)
    if pts.ndim != 2 or pts.shape != (4, 2):
        return RectificationResult.failed(
            FailureReason.INVALID_INPUT, f"Expected 4 corner points, got shape {pts.shape}"
        )
    if not np.all(np.isfinite(pts)):
        return RectificationResult.failed(FailureReason.INVALID_INPUT, "Corner coordinates must be finite")

    if options.output_mode not in ("color", "grayscale", "binary"):
        return RectificationResult.failed(
            FailureReason.INVALID_INPUT, f"Unknown output mode: {options.output_mode}"
        )

    quad = Quadrilateral.from_points(pts)
    width, height = compute_output_size(quad, options.target_aspect_ratio, options.min_size)
    width, height = _fit_within(width, height, options.max_width, options.max_height)

    pad = max(0, int(options.padding))
    dst = np.array([
        [pad, pad],
        [pad + width, pad],
        [pad + width, pad + height],
        [pad, pad + height],
    ], dtype=np.float64)
    canvas_w, canvas_h = width + 2 * pad, height + 2 * pad

    homography = solve_homography(quad.to_array(), dst)
    if homography is None:
        return RectificationResult.failed(
            FailureReason.DEGENERATE_HOMOGRAPHY, "Corner points are collinear or coincident"
        )

    source = to_uint8(image)
    if source.ndim == 3 and source.shape[2] == 4:
        source = source[:, :, :3]

    warped = warp_perspective(source, homography, canvas_w, canvas_h)
    if warped is None:
        return RectificationResult.failed(
            FailureReason.DEGENERATE_HOMOGRAPHY, "Homography is not invertible"
        )

    if options.output_mode == "grayscale":
        warped = to_grayscale(warped)
    elif options.output_mode == "binary":
        warped = sauvola_threshold(to_grayscale(warped), _BINARY_OUTPUT_WINDOW, k=_BINARY_OUTPUT_K)

    logger.info(
        f"Perspective corrected: {image.shape[1]}x{image.shape[0]} -> {canvas_w}x{canvas_h}"
    )

    return RectificationResult(
        success=True,
        image=warped,
        homography=homography,
        output_size=(canvas_w, canvas_h),
    )
