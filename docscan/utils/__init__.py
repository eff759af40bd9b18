"""Debug output helpers."""

from docscan.utils.debug import draw_detection, save_debug_image

__all__ = ["draw_detection", "save_debug_image"]
