"""Tests for homography estimation, warping and rectification."""

import numpy as np
import pytest

from docscan.errors import FailureReason
from docscan.geometry.shapes import Quadrilateral
from docscan.page_detection.perspective import (
    Homography,
    RectifyOptions,
    compute_output_size,
    rectify_document,
    solve_homography,
    warp_perspective,
)


SRC = [(10.0, 20.0), (200.0, 15.0), (220.0, 180.0), (5.0, 170.0)]
DST = [(0.0, 0.0), (300.0, 0.0), (300.0, 400.0), (0.0, 400.0)]


def _create_document_image(
    width: int = 300,
    height: int = 200,
    doc: tuple = (50, 40, 250, 160),
    bg_value: int = 50,
    doc_value: int = 200,
) -> np.ndarray:
    """Grayscale image with an axis-aligned document spanning doc = (x0, y0, x1, y1) inclusive."""
    image = np.full((height, width), bg_value, dtype=np.uint8)
    x0, y0, x1, y1 = doc
    image[y0:y1 + 1, x0:x1 + 1] = doc_value
    return image


class TestHomography:
    """Test DLT solve, transform and inverse."""

    def test_round_trip_reproduces_destinations(self) -> None:
        h = solve_homography(SRC, DST)
        assert h is not None
        for src, dst in zip(SRC, DST):
            mapped = h.transform(src)
            assert mapped.x == pytest.approx(dst[0], abs=1e-2)
            assert mapped.y == pytest.approx(dst[1], abs=1e-2)

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_round_trip_random_quads(self, seed) -> None:
        rng = np.random.default_rng(seed)
        # Jittered rectangles stay convex, so no three corners are collinear
        src = np.array([(0, 0), (400, 0), (400, 300), (0, 300)], dtype=np.float64)
        src += rng.uniform(-60, 60, size=(4, 2)) + rng.uniform(0, 500, size=2)
        width, height = rng.uniform(100, 800, size=2)
        dst = [(0.0, 0.0), (width, 0.0), (width, height), (0.0, height)]

        h = solve_homography(src, dst)
        assert h is not None
        for src_point, dst_point in zip(src, dst):
            mapped = h.transform(src_point)
            assert mapped.x == pytest.approx(dst_point[0], abs=1e-2)
            assert mapped.y == pytest.approx(dst_point[1], abs=1e-2)

        inverse = h.inverse()
        assert inverse is not None
        for src_point, dst_point in zip(src, dst):
            back = inverse.transform(dst_point)
            assert back.x == pytest.approx(src_point[0], abs=1e-2)
            assert back.y == pytest.approx(src_point[1], abs=1e-2)

    def test_transform_points_matches_transform(self) -> None:
        h = solve_homography(SRC, DST)
        batch = h.transform_points(np.array(SRC))
        single = np.array([h.transform(p) for p in SRC])
        np.testing.assert_allclose(batch, single)

    def test_same_points_give_identity(self) -> None:
        h = solve_homography(SRC, SRC)
        np.testing.assert_allclose(h.matrix, np.eye(3), atol=1e-8)

    def test_collinear_points_are_degenerate(self) -> None:
        collinear = [(0, 0), (10, 10), (20, 20), (30, 30)]
        assert solve_homography(collinear, DST) is None

    def test_coincident_points_are_degenerate(self) -> None:
        coincident = [(5, 5), (5, 5), (100, 0), (0, 100)]
        assert solve_homography(coincident, DST) is None

    def test_wrong_point_count(self) -> None:
        with pytest.raises(ValueError):
            solve_homography(SRC[:3], DST[:3])

    def test_inverse(self) -> None:
        h = solve_homography(SRC, DST)
        product = h @ h.inverse()
        np.testing.assert_allclose(product.matrix, np.eye(3), atol=1e-8)

    def test_singular_inverse(self) -> None:
        singular = Homography(np.array([[1.0, 2.0, 3.0], [2.0, 4.0, 6.0], [0.0, 0.0, 1.0]]))
        assert singular.inverse() is None

    def test_vanishing_divisor_leaves_point(self) -> None:
        h = Homography(np.array([[2.0, 0.0, 0.0], [0.0, 2.0, 0.0], [1.0, 0.0, 0.0]]))
        assert h.transform((0.0, 7.0)) == (0.0, 7.0)

    def test_rejects_bad_shape(self) -> None:
        with pytest.raises(ValueError):
            Homography(np.eye(2))


class TestWarp:
    """Test inverse-mapped warping."""

    def test_identity_reproduces_color_image(self) -> None:
        rng = np.random.default_rng(0)
        image = rng.integers(0, 256, (30, 40, 3)).astype(np.uint8)
        warped = warp_perspective(image, Homography.identity(), 40, 30)
        np.testing.assert_array_equal(warped, image)

    def test_identity_reproduces_grayscale_image(self) -> None:
        rng = np.random.default_rng(1)
        image = rng.integers(0, 256, (25, 17)).astype(np.uint8)
        warped = warp_perspective(image, Homography.identity(), 17, 25)
        assert warped.shape == image.shape
        np.testing.assert_array_equal(warped, image)

    def test_outside_source_is_white(self) -> None:
        image = np.zeros((20, 20), dtype=np.uint8)
        shift = Homography(np.array([[1.0, 0.0, 1000.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]))
        warped = warp_perspective(image, shift, 20, 20)
        assert np.all(warped == 255)

    def test_half_pixel_shift_interpolates(self) -> None:
        image = np.zeros((10, 10), dtype=np.uint8)
        image[:, 5:] = 200
        shift = Homography(np.array([[1.0, 0.0, -0.5], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]))
        warped = warp_perspective(image, shift, 8, 10)
        # Destination x=4 samples source x=4.5, halfway across the step
        assert warped[5, 4] == 100

    def test_singular_homography_returns_none(self) -> None:
        singular = Homography(np.zeros((3, 3)))
        assert warp_perspective(np.zeros((5, 5), dtype=np.uint8), singular, 5, 5) is None

    def test_input_not_modified(self) -> None:
        image = _create_document_image()
        original = image.copy()
        warp_perspective(image, solve_homography(SRC, DST), 300, 400)
        np.testing.assert_array_equal(image, original)


class TestOutputSize:
    """Test rectified canvas sizing."""

    def test_natural_size(self) -> None:
        quad = Quadrilateral.from_points([(0, 0), (300, 0), (300, 200), (0, 200)])
        assert compute_output_size(quad) == (300, 200)

    def test_aspect_grows_shorter_side(self) -> None:
        quad = Quadrilateral.from_points([(0, 0), (300, 0), (300, 200), (0, 200)])
        assert compute_output_size(quad, target_aspect_ratio=1.0) == (300, 300)
        assert compute_output_size(quad, target_aspect_ratio=2.0) == (400, 200)

    def test_minimum_size(self) -> None:
        quad = Quadrilateral.from_points([(0, 0), (30, 0), (30, 20), (0, 20)])
        assert compute_output_size(quad) == (100, 100)


class TestRectifyDocument:
    """Test the rectification outcome."""

    def test_axis_aligned_document(self) -> None:
        image = _create_document_image()
        result = rectify_document(image, [(250, 160), (50, 40), (50, 160), (250, 40)])

        assert result.success
        assert result.output_size == (200, 120)
        assert result.image.shape == (120, 200)
        assert np.all(result.image == 200)

    def test_color_image_keeps_channels(self) -> None:
        gray = _create_document_image()
        image = np.stack([gray, gray, gray], axis=-1)
        result = rectify_document(image, [(50, 40), (250, 40), (250, 160), (50, 160)])
        assert result.image.shape == (120, 200, 3)

    def test_padding_grows_canvas(self) -> None:
        image = _create_document_image()
        corners = [(50, 40), (250, 40), (250, 160), (50, 160)]
        result = rectify_document(image, corners, RectifyOptions(padding=10))

        assert result.output_size == (220, 140)
        assert np.all(result.image[10:130, 10:210] == 200)
        # Padded destination corner maps back onto the source corner
        mapped = result.homography.transform((50, 40))
        assert mapped.x == pytest.approx(10) and mapped.y == pytest.approx(10)

    def test_max_width_scales_down(self) -> None:
        image = _create_document_image()
        options = RectifyOptions(max_width=100)
        result = rectify_document(image, [(50, 40), (250, 40), (250, 160), (50, 160)], options)
        assert result.output_size == (100, 60)

    def test_grayscale_mode(self) -> None:
        gray = _create_document_image()
        image = np.stack([gray, gray, gray], axis=-1)
        options = RectifyOptions(output_mode="grayscale")
        result = rectify_document(image, [(50, 40), (250, 40), (250, 160), (50, 160)], options)
        assert result.image.ndim == 2

    def test_binary_mode(self) -> None:
        image = _create_document_image()
        image[90:100, 80:220] = 20  # a dark line of "text"
        options = RectifyOptions(output_mode="binary")
        result = rectify_document(image, [(50, 40), (250, 40), (250, 160), (50, 160)], options)
        assert set(np.unique(result.image)) <= {0, 255}
        assert result.image[55, 100] == 0

    def test_wrong_corner_count(self) -> None:
        result = rectify_document(_create_document_image(), [(0, 0), (10, 0), (10, 10)])
        assert not result.success
        assert result.failure == FailureReason.INVALID_INPUT

    @pytest.mark.parametrize("bad", [float("nan"), float("inf"), float("-inf")])
    def test_non_finite_corners(self, bad) -> None:
        corners = [(50, 40), (250, 40), (250, bad), (50, 160)]
        result = rectify_document(_create_document_image(), corners)

        assert not result.success
        assert result.failure == FailureReason.INVALID_INPUT
        assert result.image is None

    def test_malformed_image(self) -> None:
        result = rectify_document(np.zeros((4, 4, 7)), [(0, 0), (3, 0), (3, 3), (0, 3)])
        assert result.failure == FailureReason.INVALID_INPUT

    def test_collinear_corners(self) -> None:
        result = rectify_document(_create_document_image(), [(0, 0), (10, 10), (20, 20), (30, 30)])
        assert not result.success
        assert result.failure == FailureReason.DEGENERATE_HOMOGRAPHY

    def test_float_input(self) -> None:
        image = _create_document_image().astype(np.float32) / 255.0
        result = rectify_document(image, [(50, 40), (250, 40), (250, 160), (50, 160)])
        assert result.success
        assert result.image.dtype == np.uint8
