"""Tests for image loading, decoding and encoding."""

import io

import numpy as np
import pytest
from PIL import Image

from docscan.preprocessing.loader import (
    ImageMetadata,
    decode_image,
    encode_image,
    load_image,
    save_image,
)


def _create_synthetic_rgb(width: int = 32, height: int = 24) -> np.ndarray:
    """Deterministic gradient image with distinct channels."""
    xs = np.linspace(0, 255, width, dtype=np.float32)
    ys = np.linspace(0, 255, height, dtype=np.float32)
    r = np.tile(xs, (height, 1))
    g = np.tile(ys[:, None], (1, width))
    b = np.full((height, width), 128, dtype=np.float32)
    return np.stack([r, g, b], axis=-1).astype(np.uint8)


class TestLoadImage:
    """Test file loading for standard formats."""

    def test_load_png(self, tmp_path) -> None:
        image = _create_synthetic_rgb()
        path = tmp_path / "page.png"
        Image.fromarray(image).save(path)

        loaded, metadata = load_image(path)

        assert loaded.dtype == np.uint8
        assert loaded.shape == (24, 32, 3)
        np.testing.assert_array_equal(loaded, image)
        assert isinstance(metadata, ImageMetadata)
        assert metadata.format == "PNG"
        assert metadata.original_size == (32, 24)
        assert metadata.orientation == 1

    def test_grayscale_expanded_to_rgb(self, tmp_path) -> None:
        gray = np.arange(0, 200, dtype=np.uint8).reshape(10, 20)
        path = tmp_path / "gray.png"
        Image.fromarray(gray).save(path)

        loaded, _ = load_image(path)
        assert loaded.shape == (10, 20, 3)
        np.testing.assert_array_equal(loaded[:, :, 0], gray)
        np.testing.assert_array_equal(loaded[:, :, 2], gray)

    def test_alpha_dropped(self, tmp_path) -> None:
        rgba = np.zeros((8, 8, 4), dtype=np.uint8)
        rgba[..., 0] = 200
        rgba[..., 3] = 50
        path = tmp_path / "alpha.png"
        Image.fromarray(rgba, mode="RGBA").save(path)

        loaded, _ = load_image(path)
        assert loaded.shape == (8, 8, 3)
        assert np.all(loaded[..., 0] == 200)

    def test_exif_orientation_applied(self, tmp_path) -> None:
        path = tmp_path / "rotated.jpg"
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 CW on display
        Image.fromarray(_create_synthetic_rgb(40, 20)).save(path, exif=exif)

        loaded, metadata = load_image(path)
        assert loaded.shape == (40, 20, 3)
        assert metadata.orientation == 6
        assert metadata.original_size == (40, 20)

    def test_missing_file(self, tmp_path) -> None:
        with pytest.raises(FileNotFoundError):
            load_image(tmp_path / "missing.jpg")

    def test_unsupported_extension(self, tmp_path) -> None:
        path = tmp_path / "notes.xyz"
        path.write_bytes(b"not an image")
        with pytest.raises(ValueError, match="Unsupported image format"):
            load_image(path)

    def test_load_heic(self, tmp_path) -> None:
        pillow_heif = pytest.importorskip("pillow_heif")
        pillow_heif.register_heif_opener()

        path = tmp_path / "page.heic"
        try:
            Image.fromarray(_create_synthetic_rgb()).save(path, format="HEIF")
        except (OSError, KeyError, ValueError) as e:
            pytest.skip(f"HEIF encoder unavailable: {e}")

        loaded, metadata = load_image(path)
        assert loaded.shape == (24, 32, 3)
        assert metadata.format == "HEIC"


class TestDecodeEncode:
    """Test in-memory containers."""

    def test_decode_png_bytes(self) -> None:
        image = _create_synthetic_rgb()
        buffer = io.BytesIO()
        Image.fromarray(image).save(buffer, format="PNG")

        decoded, metadata = decode_image(buffer.getvalue())
        np.testing.assert_array_equal(decoded, image)
        assert metadata.format == "PNG"

    def test_decode_garbage(self) -> None:
        with pytest.raises(ValueError):
            decode_image(b"\x00\x01definitely not an image")

    def test_encode_png_is_lossless(self) -> None:
        image = _create_synthetic_rgb()
        decoded, _ = decode_image(encode_image(image, "png"))
        np.testing.assert_array_equal(decoded, image)

    def test_encode_grayscale(self) -> None:
        gray = np.full((10, 12), 99, dtype=np.uint8)
        decoded, _ = decode_image(encode_image(gray, "png"))
        assert decoded.shape == (10, 12, 3)
        assert np.all(decoded == 99)

    def test_encode_jpeg_header(self) -> None:
        data = encode_image(_create_synthetic_rgb(), "jpeg", quality=80)
        assert data[:2] == b"\xff\xd8"

    def test_encode_unknown_format(self) -> None:
        with pytest.raises(ValueError):
            encode_image(_create_synthetic_rgb(), "gif")

    def test_save_image_creates_parents(self, tmp_path) -> None:
        path = save_image(_create_synthetic_rgb(), tmp_path / "nested" / "out.png")
        assert path.exists()
        loaded, _ = load_image(path)
        assert loaded.shape == (24, 32, 3)
