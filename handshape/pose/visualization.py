"""
Overlay rendering for hand-shape results.

Images are returned to the caller, never shown. Labels are drawn as a
polyline where each joint between differently labeled points is split at
its midpoint, so that both halves keep the color of their own endpoint.
"""

import cv2
import numpy as np
from typing import List, Optional, Sequence, Tuple

from ..hand.state_store import PalmEstimate
from .matcher import LabeledPoint

# BGR, one per label; wraps around for models with more labels
LABEL_COLORS = [
    (255, 0, 0),
    (0, 153, 0),
    (0, 0, 255),
    (153, 0, 102),
    (102, 102, 102),
]


def label_color(label: int) -> Tuple[int, int, int]:
    return LABEL_COLORS[label % len(LABEL_COLORS)]


def labeled_segments(
    labeled: Sequence[LabeledPoint]
) -> List[Tuple[Tuple[int, int], Tuple[int, int], int]]:
    """
    Segments (start, end, label) joining consecutive labeled points.

    A segment between two different labels is split at its midpoint; each
    half takes the label of the endpoint it touches.
    """
    segments = []
    for a, b in zip(labeled[:-1], labeled[1:]):
        if a.label == b.label:
            segments.append((a.point, b.point, a.label))
            continue
        mid = (
            int(round((a.point[0] + b.point[0]) / 2.0)),
            int(round((a.point[1] + b.point[1]) / 2.0))
        )
        segments.append((a.point, mid, a.label))
        segments.append((mid, b.point, b.label))
    return segments


def draw_labeled_polyline(
    image: np.ndarray,
    labeled: Sequence[LabeledPoint],
    thickness: int = 1
) -> np.ndarray:
    """Draw labeled points in place and return the image."""
    for start, end, label in labeled_segments(labeled):
        cv2.line(image, start, end, label_color(label), thickness)
    return image


def render_overlay(
    silhouette: np.ndarray,
    palm: Optional[PalmEstimate] = None,
    tips: Optional[Sequence[Tuple[int, int]]] = None,
    labeled: Optional[Sequence[LabeledPoint]] = None,
    extension_lines: Optional[Sequence[Sequence[Tuple[int, int]]]] = None,
    path: Optional[np.ndarray] = None
) -> np.ndarray:
    """
    Draw a hand-shape result over its silhouette.

    Args:
        silhouette: single-channel mask the result was computed from
        palm: palm circle and center
        tips: fingertip points
        labeled: labeled contour points
        extension_lines: fingertip extension lines
        path: raw unwrapped contour

    Returns:
        BGR image
    """
    gray = (silhouette > 0).astype(np.uint8) * 80
    image = cv2.cvtColor(gray, cv2.COLOR_GRAY2BGR)

    if path is not None and len(path) > 1:
        cv2.polylines(image, [path.reshape(-1, 1, 2).astype(np.int32)], False, (200, 200, 200), 1)

    if labeled:
        draw_labeled_polyline(image, labeled, thickness=2)

    for line in extension_lines or []:
        if len(line) > 1:
            cv2.line(image, tuple(line[0]), tuple(line[-1]), (0, 200, 200), 1)

    if palm is not None:
        center = (int(palm.center[0]), int(palm.center[1]))
        cv2.circle(image, center, max(int(palm.radius), 1), (0, 255, 255), 1)
        cv2.circle(image, center, 2, (0, 255, 255), -1)

    for x, y in tips or []:
        cv2.circle(image, (int(x), int(y)), 3, (255, 255, 255), -1)

    return image


def render_normalized(
    points: np.ndarray,
    canvas_size: Tuple[int, int],
    scale: int = 2
) -> np.ndarray:
    """Normalized contour drawn on its own canvas, scaled up for viewing."""
    width, height = canvas_size
    image = np.zeros((height * scale, width * scale, 3), dtype=np.uint8)
    if len(points) > 1:
        scaled = (np.asarray(points, dtype=np.int32) * scale).reshape(-1, 1, 2)
        cv2.polylines(image, [scaled], False, (255, 255, 255), 1)
    return image
