"""
Hand Orientation Estimation

Derives the hand angle from the extension lines of the detected fingers.

Only fingers whose anchors sit on the same hand edge vote: the anchor with
the largest y defines that edge, and every anchor within ``cluster_band``
pixels of it contributes its extension-line angle. When the hand is already
rotated past ``upright_guard`` degrees, anchors are compared in the upright
frame (rotated about the palm by the negative angle and re-centred), since
the raw y coordinate no longer separates the finger edge there.

Usage:
    from handshape.hand.orientation import OrientationEstimator

    estimator = OrientationEstimator()
    angle = estimator.estimate(extension_lines, palm.center, state)
"""

import numpy as np
from typing import List, Optional, Sequence, Tuple

from .state_store import TemporalStateStore
from ..raster.geometry import get_angle, rotate_point
from ..utils.config import OrientationConfig


class OrientationEstimator:
    """Extension-line based orientation with temporal smoothing."""

    def __init__(
        self,
        config: Optional[OrientationConfig] = None,
        raster_size: Tuple[int, int] = (160, 120)
    ):
        """
        Args:
            config: orientation thresholds
            raster_size: (width, height) of the working raster
        """
        self.config = config or OrientationConfig()
        self.raster_size = raster_size

    def rotate_upright(
        self,
        pt: Sequence[int],
        palm_center: Sequence[int],
        angle: float
    ) -> Tuple[int, int]:
        """Rotate pt by -angle about the palm, then move the palm to the raster center."""
        rotated = rotate_point(-angle, pt, palm_center)
        x_diff = self.raster_size[0] // 2 - int(palm_center[0])
        y_diff = self.raster_size[1] // 2 - int(palm_center[1])
        return (rotated[0] + x_diff, rotated[1] + y_diff)

    def select_anchor(self, pt, palm_center, angle: float) -> Tuple[int, int]:
        if angle >= self.config.upright_guard:
            return (int(pt[0]), int(pt[1]))
        return self.rotate_upright(pt, palm_center, angle)

    def estimate(
        self,
        extension_lines: List[List[Tuple[int, int]]],
        palm_center: Sequence[int],
        state: TemporalStateStore
    ) -> float:
        """
        New smoothed hand angle in degrees.

        Args:
            extension_lines: one line per accepted finger, tip first
            palm_center: palm center of this frame
            state: per-hand state; its hand_angle is the current angle

        Returns:
            Smoothed angle; the current angle when there are no lines
        """
        current = state.hand_angle
        lines = [line for line in extension_lines if len(line) >= 2]
        if not lines:
            return current

        anchors = np.array([
            self.select_anchor(line[0], palm_center, current) for line in lines
        ])
        y_max = int(anchors[:, 1].max())
        state.set("extension_lines_y_max", y_max)

        angles = [
            get_angle(line[0], line[-1]) - 180.0
            for line, anchor in zip(lines, anchors)
            if abs(int(anchor[1]) - y_max) <= self.config.cluster_band
        ]
        raw_angle = float(np.mean(angles))

        return float(state.low_pass_filter.compute(
            raw_angle, self.config.angle_smoothing, "hand_angle"
        ))

    def persisted_angle(self, angle: float, pose_name: str) -> float:
        """Angle stored for the next frame; the pointing pose carries a fixed offset."""
        if pose_name == "point":
            return angle - self.config.point_pose_angle_offset
        return angle
