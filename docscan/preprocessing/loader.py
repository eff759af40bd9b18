"""Image loading and encoding for JPEG, PNG, TIFF, HEIC and DNG inputs.

All loaders return uint8 RGB arrays of shape (H, W, 3) with EXIF orientation
already applied.
"""

import io
import logging
from pathlib import Path
from typing import Tuple, Union

import cv2
import numpy as np
from PIL import Image, ExifTags, ImageOps

logger = logging.getLogger(__name__)

STANDARD_EXTENSIONS = ('.jpg', '.jpeg', '.png', '.tiff', '.tif', '.bmp')
HEIC_EXTENSIONS = ('.heic', '.heif')
RAW_EXTENSIONS = ('.dng', '.cr2', '.nef', '.arw')

_ENCODE_EXTENSIONS = {
    'jpeg': '.jpg',
    'jpg': '.jpg',
    'png': '.png',
    'tiff': '.tif',
    'bmp': '.bmp',
}


class ImageMetadata:
    """Metadata extracted from loaded image."""

    def __init__(
        self,
        original_size: Tuple[int, int],
        format: str,
        bit_depth: int,
        orientation: int = 1
    ) -> None:
        self.original_size = original_size  # (width, height)
        self.format = format
        self.bit_depth = bit_depth
        self.orientation = orientation


def _exif_orientation(img: Image.Image) -> int:
    try:
        orientation = img.getexif().get(ExifTags.Base.Orientation)
    except (AttributeError, KeyError, ValueError) as e:
        logger.debug(f"Could not read EXIF orientation: {e}")
        return 1
    return int(orientation) if orientation else 1


def _to_rgb_array(img: Image.Image) -> np.ndarray:
    """PIL image to uint8 RGB array, dropping alpha and expanding grayscale."""
    if img.mode not in ('RGB', 'L', 'RGBA'):
        img = img.convert('RGB')

    arr = np.array(img)

    if arr.ndim == 2:
        arr = np.stack([arr, arr, arr], axis=-1)
    elif arr.shape[2] == 4:
        arr = arr[:, :, :3]

    return np.ascontiguousarray(arr)


def _from_pil(img: Image.Image, format_name: str) -> Tuple[np.ndarray, ImageMetadata]:
    original_size = img.size
    orientation = _exif_orientation(img)

    if orientation != 1:
        img = ImageOps.exif_transpose(img)
        logger.debug(f"Applied EXIF orientation: {orientation}")

    arr = _to_rgb_array(img)
    metadata = ImageMetadata(
        original_size=original_size,
        format=format_name,
        bit_depth=8,
        orientation=orientation,
    )
    return arr, metadata


def _register_heif() -> None:
    try:
        from pillow_heif import register_heif_opener
        register_heif_opener()
    except ImportError as e:
        raise ImportError(
            "pillow-heif is required for HEIC support. "
            "Install with: pip install pillow-heif"
        ) from e


def load_heic(path: str) -> Tuple[np.ndarray, ImageMetadata]:
    """Load HEIC/HEIF image using pillow-heif.

    Args:
        path: Path to HEIC file

    Returns:
        Tuple of (uint8 RGB array, metadata)
    """
    _register_heif()

    with Image.open(path) as img:
        arr, metadata = _from_pil(img, "HEIC")

    logger.info(f"Loaded HEIC: {path} ({arr.shape[1]}x{arr.shape[0]})")
    return arr, metadata


def load_dng(path: str) -> Tuple[np.ndarray, ImageMetadata]:
    """Load DNG/RAW image using rawpy, demosaiced to 8-bit sRGB."""
    try:
        import rawpy
    except ImportError as e:
        raise ImportError(
            "rawpy is required for DNG/RAW support. "
            "Install with: pip install docscan[raw]"
        ) from e

    with rawpy.imread(path) as raw:
        original_size = (raw.sizes.width, raw.sizes.height)
        rgb = raw.postprocess(
            use_camera_wb=True,
            output_color=rawpy.ColorSpace.sRGB,
            output_bps=8,
            no_auto_bright=False,
        )

    metadata = ImageMetadata(original_size=original_size, format="DNG", bit_depth=16)
    logger.info(f"Loaded DNG: {path} ({rgb.shape[1]}x{rgb.shape[0]})")

    return np.ascontiguousarray(rgb, dtype=np.uint8), metadata


def load_standard(path: str) -> Tuple[np.ndarray, ImageMetadata]:
    """Load JPEG, PNG, TIFF or BMP using PIL."""
    format_name = Path(path).suffix.lower().lstrip('.').upper()

    with Image.open(path) as img:
        arr, metadata = _from_pil(img, format_name)

    logger.info(f"Loaded {format_name}: {path} ({arr.shape[1]}x{arr.shape[0]})")
    return arr, metadata


def load_image(path: Union[str, Path]) -> Tuple[np.ndarray, ImageMetadata]:
    """Load image from any supported format.

    Args:
        path: Path to image file

    Returns:
        Tuple of (uint8 RGB array with shape (H, W, 3), metadata)

    Raises:
        ValueError: If file format is not supported
        FileNotFoundError: If file does not exist
    """
    path_obj = Path(path)

    if not path_obj.exists():
        raise FileNotFoundError(f"Image file not found: {path}")

    ext = path_obj.suffix.lower()

    if ext in HEIC_EXTENSIONS:
        return load_heic(str(path_obj))
    elif ext in RAW_EXTENSIONS:
        return load_dng(str(path_obj))
    elif ext in STANDARD_EXTENSIONS:
        return load_standard(str(path_obj))
    else:
        raise ValueError(f"Unsupported image format: {ext}")


def decode_image(data: bytes) -> Tuple[np.ndarray, ImageMetadata]:
    """Decode an in-memory image container.

    Raises:
        ValueError: If the bytes are not a decodable image.
    """
    _try_register_heif()

    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (OSError, Image.DecompressionBombError) as e:
        raise ValueError(f"Could not decode image data: {e}") from e

    with img:
        arr, metadata = _from_pil(img, (img.format or "UNKNOWN").upper())

    logger.debug(f"Decoded {metadata.format}: {arr.shape[1]}x{arr.shape[0]}")
    return arr, metadata


def _try_register_heif() -> None:
    try:
        _register_heif()
    except ImportError:
        logger.debug("pillow-heif not installed, HEIC bytes cannot be decoded")


def _to_bgr(image: np.ndarray) -> np.ndarray:
    if image.ndim == 2:
        return image
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_RGB2BGR)
    if image.shape[2] == 4:
        return cv2.cvtColor(image, cv2.COLOR_RGBA2BGR)
    raise ValueError(f"Unsupported number of channels: {image.shape[2]}")


def encode_image(image: np.ndarray, fmt: str = "png", quality: int = 95) -> bytes:
    """Encode a uint8 grayscale or RGB image into container bytes.

    Args:
        image: uint8 array (H, W) or (H, W, 3).
        fmt: "png", "jpeg", "tiff" or "bmp".
        quality: JPEG quality (0-100).

    Raises:
        ValueError: If the format is unknown or encoding fails.
    """
    ext = _ENCODE_EXTENSIONS.get(fmt.lower())
    if ext is None:
        raise ValueError(f"Unsupported output format: {fmt}")

    params = [cv2.IMWRITE_JPEG_QUALITY, quality] if ext == '.jpg' else []
    ok, buffer = cv2.imencode(ext, _to_bgr(image), params)
    if not ok:
        raise ValueError(f"Failed to encode image as {fmt}")

    return buffer.tobytes()


def save_image(image: np.ndarray, path: Union[str, Path], quality: int = 95) -> Path:
    """Write a uint8 image, choosing the container from the file extension."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fmt = path.suffix.lower().lstrip('.') or 'png'
    path.write_bytes(encode_image(image, fmt if fmt != 'tif' else 'tiff', quality))

    logger.debug(f"Saved image: {path}")
    return path
