"""Tests for Canny edge extraction and morphology."""

import numpy as np
import pytest
from scipy import ndimage

from docscan.edges.canny import (
    STRONG,
    WEAK,
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


def _create_step_image(width: int = 20, height: int = 20, column: int = 10) -> np.ndarray:
    """Black left of ``column``, white from ``column`` on."""
    image = np.zeros((height, width), dtype=np.uint8)
    image[:, column:] = 255
    return image


class TestSobel:
    """Test gradient computation."""

    def test_constant_field_has_no_gradient(self) -> None:
        magnitude, direction = sobel(np.full((10, 10), 77, dtype=np.uint8))
        assert not magnitude.any()
        assert not direction.any()

    def test_step_saturates_and_points_along_x(self) -> None:
        magnitude, direction = sobel(_create_step_image())
        # 4 * 255 before clamping
        assert np.all(magnitude[1:-1, 9:11] == 255)
        np.testing.assert_allclose(direction[1:-1, 9:11], 0.0)

    def test_frame_is_zero(self) -> None:
        rng = np.random.default_rng(0)
        magnitude, _ = sobel(rng.integers(0, 256, (15, 12)).astype(np.uint8))
        assert not magnitude[0].any() and not magnitude[-1].any()
        assert not magnitude[:, 0].any() and not magnitude[:, -1].any()

    def test_direction_optional(self) -> None:
        _, direction = sobel(_create_step_image(), compute_direction=False)
        assert direction is None

    def test_tiny_field(self) -> None:
        magnitude, _ = sobel(np.zeros((2, 2), dtype=np.uint8))
        assert magnitude.shape == (2, 2)


class TestCanny:
    """Test the full Canny chain."""

    def test_vertical_step_gives_single_line(self) -> None:
        edges = canny(_create_step_image(width=20, height=20, column=10))

        expected = np.zeros((20, 20), dtype=np.uint8)
        expected[1:-1, 9:11] = 255
        np.testing.assert_array_equal(edges, expected)

        _, components = ndimage.label(edges > 0, structure=np.ones((3, 3)))
        assert components == 1

    def test_output_is_binary(self) -> None:
        rng = np.random.default_rng(4)
        field = rng.integers(0, 256, (40, 40)).astype(np.uint8)
        edges = canny(field, 30, 90)
        assert set(np.unique(edges)) <= {0, 255}

    def test_flat_field_has_no_edges(self) -> None:
        assert not canny(np.full((30, 30), 128, dtype=np.uint8)).any()

    def test_debug_stages_are_consistent(self) -> None:
        stages = canny_debug(_create_step_image(), 50, 150)
        np.testing.assert_array_equal(stages.edges, canny(_create_step_image(), 50, 150))
        assert stages.low_threshold == 50
        assert stages.high_threshold == 150
        assert np.all(stages.suppressed <= stages.magnitude)

    def test_input_not_modified(self) -> None:
        image = _create_step_image()
        original = image.copy()
        canny(image)
        np.testing.assert_array_equal(image, original)


class TestNonMaximumSuppression:
    """Test ridge thinning."""

    def test_keeps_ridge_suppresses_flanks(self) -> None:
        magnitude = np.zeros((5, 7), dtype=np.uint8)
        magnitude[1:4, 2] = 100
        magnitude[1:4, 3] = 200
        magnitude[1:4, 4] = 100
        direction = np.zeros((5, 7), dtype=np.float32)  # gradient along x

        result = non_maximum_suppression(magnitude, direction)
        assert np.all(result[1:4, 3] == 200)
        assert not result[:, 2].any()
        assert not result[:, 4].any()

    def test_vertical_gradient_compares_north_south(self) -> None:
        magnitude = np.zeros((7, 5), dtype=np.uint8)
        magnitude[2, 1:4] = 100
        magnitude[3, 1:4] = 200
        direction = np.full((7, 5), np.pi / 2, dtype=np.float32)

        result = non_maximum_suppression(magnitude, direction)
        assert np.all(result[3, 1:4] == 200)
        assert not result[2].any()


class TestThresholdAndHysteresis:
    """Test double threshold classification and hysteresis linking."""

    def test_double_threshold_classes(self) -> None:
        field = np.array([[10, 50, 149, 150, 255]], dtype=np.uint8)
        np.testing.assert_array_equal(
            double_threshold(field, 50, 150),
            [[0, WEAK, WEAK, STRONG, STRONG]],
        )

    def test_weak_connected_to_strong_survives(self) -> None:
        classified = np.zeros((6, 8), dtype=np.uint8)
        classified[1, 1] = STRONG
        classified[2, 2] = WEAK  # diagonal neighbor
        classified[3, 3] = WEAK
        classified[5, 7] = WEAK  # isolated

        edges = hysteresis(classified)
        assert edges[1, 1] == 255
        assert edges[2, 2] == 255
        assert edges[3, 3] == 255
        assert edges[5, 7] == 0

    def test_no_candidates(self) -> None:
        assert not hysteresis(np.zeros((4, 4), dtype=np.uint8)).any()


class TestAutoCanny:
    """Test content-derived thresholds."""

    def test_median_thresholds(self) -> None:
        field = np.full((10, 10), 100, dtype=np.uint8)
        assert auto_canny_thresholds(field, "median") == (67, 133)

    def test_otsu_thresholds_respect_floor(self) -> None:
        low, high = auto_canny_thresholds(np.zeros((10, 10), dtype=np.uint8), "otsu")
        assert low == 5
        assert high >= low

    def test_otsu_thresholds_track_gradient(self) -> None:
        rng = np.random.default_rng(8)
        field = rng.integers(0, 256, (50, 50)).astype(np.uint8)
        low, high = auto_canny_thresholds(field, "otsu")
        assert 5 <= low <= high <= 255

    def test_auto_finds_step(self) -> None:
        edges = canny_auto(_create_step_image(), "otsu")
        assert edges[10, 9] == 255 and edges[10, 10] == 255

    def test_unknown_method(self) -> None:
        with pytest.raises(ValueError):
            auto_canny_thresholds(np.zeros((4, 4), dtype=np.uint8), "mean")


class TestMorphology:
    """Test dilation, erosion and closing with clamped borders."""

    def test_close_bridges_gap(self) -> None:
        mask = np.zeros((11, 21), dtype=np.uint8)
        mask[5, 2:9] = 255
        mask[5, 11:19] = 255  # two-pixel gap at columns 9 and 10

        closed = close_mask(mask, 5)
        assert np.all(closed[5, 2:19] == 255)

    def test_erode_keeps_full_mask(self) -> None:
        # Clamped borders: a full mask must not shrink from the image edge
        mask = np.full((8, 8), 255, dtype=np.uint8)
        np.testing.assert_array_equal(erode(mask, 3), mask)

    def test_dilate_grows_point(self) -> None:
        mask = np.zeros((9, 9), dtype=np.uint8)
        mask[4, 4] = 255
        grown = dilate(mask, 3)
        assert np.count_nonzero(grown) == 9
        assert np.all(grown[3:6, 3:6] == 255)

    def test_open_removes_speck(self) -> None:
        mask = np.zeros((9, 9), dtype=np.uint8)
        mask[4, 4] = 255
        assert not open_mask(mask, 3).any()

    def test_invalid_kernel(self) -> None:
        with pytest.raises(ValueError):
            dilate(np.zeros((3, 3), dtype=np.uint8), 0)
