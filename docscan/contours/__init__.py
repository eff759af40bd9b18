"""Boundary tracing of binary masks into contours."""

from docscan.contours.tracer import (
    TraceMethod,
    border_pixels,
    find_contours,
    trace_ordered,
    trace_unordered,
)

__all__ = [
    "TraceMethod",
    "border_pixels",
    "find_contours",
    "trace_ordered",
    "trace_unordered",
]
