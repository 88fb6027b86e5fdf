"""
Point Geometry Helpers

Small integer-point helpers shared by the hand-shape stages. Points are
``(x, y)`` tuples in raster coordinates (x to the right, y downwards).

Angle convention: ``get_angle(p0, p1)`` measures the direction of the vector
``p1 - p0`` clockwise-on-screen from the upward (-y) axis, in [0, 360).
A hand whose fingers point straight down the raster (+y) therefore has an
extension-line angle of 180, i.e. an orientation of 0 after the -180 shift.
"""

import math
import numpy as np
from typing import List, Sequence, Tuple

Point = Tuple[int, int]


def get_distance(pt0: Sequence[float], pt1: Sequence[float], use_sqrt: bool = True) -> float:
    """Euclidean distance (or its square when use_sqrt is False)."""
    dx = float(pt1[0]) - float(pt0[0])
    dy = float(pt1[1]) - float(pt0[1])
    dist_sq = dx * dx + dy * dy
    return math.sqrt(dist_sq) if use_sqrt else dist_sq


def get_angle(pt0: Sequence[float], pt1: Sequence[float]) -> float:
    """Direction of pt0 -> pt1 in degrees, [0, 360)."""
    dx = float(pt1[0]) - float(pt0[0])
    dy = float(pt1[1]) - float(pt0[1])
    return math.degrees(math.atan2(-dx, -dy)) % 360.0


def rotate_point(angle: float, pt: Sequence[float], pivot: Sequence[float]) -> Point:
    """Rotate pt about pivot by angle degrees, counter-clockwise on screen."""
    theta = math.radians(angle)
    cos_t = math.cos(theta)
    sin_t = math.sin(theta)
    dx = float(pt[0]) - float(pivot[0])
    dy = float(pt[1]) - float(pivot[1])
    x = float(pivot[0]) + dx * cos_t + dy * sin_t
    y = float(pivot[1]) - dx * sin_t + dy * cos_t
    return (int(round(x)), int(round(y)))


def bresenham_line(x0: int, y0: int, x1: int, y1: int, max_points: int = 1000) -> List[Point]:
    """Integer points from (x0, y0) to (x1, y1), both ends included."""
    x0, y0, x1, y1 = int(x0), int(y0), int(x1), int(y1)
    dx = abs(x1 - x0)
    dy = -abs(y1 - y0)
    sx = 1 if x0 < x1 else -1
    sy = 1 if y0 < y1 else -1
    err = dx + dy

    points = []
    while len(points) < max_points:
        points.append((x0, y0))
        if x0 == x1 and y0 == y1:
            break
        e2 = 2 * err
        if e2 >= dy:
            err += dy
            x0 += sx
        if e2 <= dx:
            err += dx
            y0 += sy
    return points


def extension_line(pt_end: Sequence[int], pt_start: Sequence[int], length: int) -> List[Point]:
    """
    Extend the direction pt_start -> pt_end beyond pt_end.

    Returns ``length`` points; the first one is pt_end itself. A zero-length
    direction yields just ``[pt_end]``.
    """
    dx = float(pt_end[0]) - float(pt_start[0])
    dy = float(pt_end[1]) - float(pt_start[1])
    norm = math.hypot(dx, dy)
    if norm == 0:
        return [(int(pt_end[0]), int(pt_end[1]))]

    ux = dx / norm
    uy = dy / norm
    return [
        (int(round(pt_end[0] + ux * i)), int(round(pt_end[1] + uy * i)))
        for i in range(length)
    ]


def map_val(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    """Linear remap of value from [in_min, in_max] onto [out_min, out_max]."""
    if in_max == in_min:
        return float(out_min)
    return (value - in_min) * (out_max - out_min) / (in_max - in_min) + out_min


def get_bounds(points: Sequence[Sequence[int]]) -> Tuple[int, int, int, int]:
    """(x_min, x_max, y_min, y_max) of a non-empty point sequence."""
    arr = np.asarray(points, dtype=np.int64).reshape(-1, 2)
    return (
        int(arr[:, 0].min()), int(arr[:, 0].max()),
        int(arr[:, 1].min()), int(arr[:, 1].max())
    )


def sort_points_by_angle(points: Sequence[Point], pivot: Sequence[float]) -> List[Point]:
    """Stable sort of points by get_angle(pivot, point)."""
    return sorted(points, key=lambda pt: get_angle(pivot, pt))
