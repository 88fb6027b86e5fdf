"""Raster primitives: blobs, flood fill, thinning and point geometry."""

from .blobs import Blob, BlobDetector, flood_fill, neighborhood_has
from .thinning import ThinningComputer
from .geometry import (
    get_angle,
    get_distance,
    rotate_point,
    bresenham_line,
    extension_line,
    map_val,
    get_bounds,
    sort_points_by_angle,
)

__all__ = [
    "Blob",
    "BlobDetector",
    "flood_fill",
    "neighborhood_has",
    "ThinningComputer",
    "get_angle",
    "get_distance",
    "rotate_point",
    "bresenham_line",
    "extension_line",
    "map_val",
    "get_bounds",
    "sort_points_by_angle",
]
