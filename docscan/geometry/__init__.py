"""Geometric value types and polygon algorithms."""

from docscan.geometry.hull import convex_hull
from docscan.geometry.shapes import Contour, Point, Quadrilateral, polygon_area
from docscan.geometry.simplify import approximate_polygon, simplify_closed, simplify_open

__all__ = [
    "convex_hull",
    "Contour",
    "Point",
    "Quadrilateral",
    "polygon_area",
    "approximate_polygon",
    "simplify_closed",
    "simplify_open",
]
