"""Contour unwrapping and normalization."""

from .unwrapper import ContourUnwrapper, NormalizedContour, UnwrapResult

__all__ = [
    "ContourUnwrapper",
    "NormalizedContour",
    "UnwrapResult",
]
