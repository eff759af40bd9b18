"""Failure taxonomy shared by detection and rectification outcomes."""

from enum import Enum


class FailureReason(str, Enum):
    """Why a detection or rectification produced no result.

    All of these are recoverable at the caller level.
    """

    NO_EDGES_FOUND = "no_edges_found"
    NO_CONTOURS_FOUND = "no_contours_found"
    NO_VALID_QUADRILATERAL = "no_valid_quadrilateral"
    DEGENERATE_HOMOGRAPHY = "degenerate_homography"
    INVALID_INPUT = "invalid_input"
