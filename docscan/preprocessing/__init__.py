"""Image I/O and scalar field operations."""

from docscan.preprocessing.loader import (
    ImageMetadata,
    decode_image,
    encode_image,
    load_image,
    save_image,
)
from docscan.preprocessing.normalizer import (
    enhance_contrast,
    gaussian_blur,
    normalize,
    resize_by_scale,
    to_grayscale,
    to_uint8,
)

__all__ = [
    "ImageMetadata",
    "decode_image",
    "encode_image",
    "load_image",
    "save_image",
    "enhance_contrast",
    "gaussian_blur",
    "normalize",
    "resize_by_scale",
    "to_grayscale",
    "to_uint8",
]
