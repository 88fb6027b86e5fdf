"""
Palm Localization

Finds the palm center and radius from the hand silhouette.

Pipeline:
1. Signal check against the running baseline of silhouette pixel counts
2. Palm x evidence: mean x of silhouette points below the previous palm top
3. 4x downscale + re-binarization, Euclidean distance transform
4. Forearm strip masked out, distance transform recomputed; its peak gives
   the radius and the palm y
5. Exponential smoothing against the persisted estimate

Usage:
    from handshape.hand.palm_localizer import PalmLocalizer

    localizer = PalmLocalizer()
    palm = localizer.localize(frame, state)
"""

import cv2
import numpy as np
from typing import Optional, Tuple

from .frame import HandFrame
from .state_store import PalmEstimate, TemporalStateStore
from ..utils.config import PalmConfig
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)


class PalmLocalizer:
    """
    Distance-transform palm localizer.

    The palm is the largest inscribed circle of the silhouette once the
    forearm side of the bounding box is removed. The x coordinate comes from
    the silhouette mass instead, offset by half a radius when the previous
    angle is not positive (empirical calibration, kept as is).
    """

    def __init__(self, config: Optional[PalmConfig] = None):
        self.config = config or PalmConfig()

    def localize(self, frame: HandFrame, state: TemporalStateStore) -> Optional[PalmEstimate]:
        """
        Estimate the palm for this frame.

        Args:
            frame: current hand frame
            state: per-hand state (previous palm, angle, filters)

        Returns:
            Smoothed PalmEstimate, or None when the hand signal is insufficient
        """
        cfg = self.config
        if not frame.blobs:
            logger.debug("No hand blobs")
            return None

        points = np.concatenate([blob.points for blob in frame.blobs])
        count_total = 1.0 + len(points)
        baseline = state.count_baseline.update(count_total)
        if count_total / baseline < cfg.signal_ratio_min:
            logger.debug(f"Silhouette collapsed ({count_total:.0f} px vs baseline {baseline:.0f})")
            return None

        previous = state.palm
        y_threshold = previous.center[1] - previous.radius
        below_top = points[points[:, 1] > y_threshold]
        if len(below_top) == 0:
            logger.debug("No silhouette points below the previous palm top")
            return None
        palm_x_raw = float(below_top[:, 0].mean())

        small = self._downscale(frame.silhouette)
        if not np.any(small):
            logger.debug("Silhouette vanished after downscaling")
            return None

        first_loc, first_radius = self._distance_peak(small)
        masked = self._mask_forearm(small)
        if np.any(masked):
            peak_loc, peak_radius = self._distance_peak(masked)
        else:
            peak_loc, peak_radius = first_loc, first_radius

        scale = cfg.downscale_factor
        radius = peak_radius * scale
        x_offset = 0.0 if state.hand_angle > 0 else radius / 2.0
        center = (palm_x_raw + x_offset, float(peak_loc[1] * scale))

        lpf = state.low_pass_filter
        radius = float(lpf.compute(radius, cfg.radius_smoothing, "palm_radius"))
        center = lpf.compute(center, cfg.position_smoothing, "palm_point")

        height, width = frame.shape
        center = (
            int(round(min(max(center[0], 0), width - 1))),
            int(round(min(max(center[1], 0), height - 1)))
        )
        return PalmEstimate(center=center, radius=max(radius, 0.0))

    def _downscale(self, silhouette: np.ndarray) -> np.ndarray:
        height, width = silhouette.shape[:2]
        factor = self.config.downscale_factor
        size = (max(width // factor, 1), max(height // factor, 1))
        small = cv2.resize(silhouette, size, interpolation=cv2.INTER_LINEAR)
        _, small = cv2.threshold(small, self.config.binarize_threshold, 254, cv2.THRESH_BINARY)
        return small

    @staticmethod
    def _distance_peak(binary: np.ndarray) -> Tuple[Tuple[int, int], float]:
        """Location (x, y) and value of the distance-transform maximum."""
        dist = cv2.distanceTransform(binary, cv2.DIST_L2, cv2.DIST_MASK_PRECISE)
        _, max_val, _, max_loc = cv2.minMaxLoc(dist)
        return (int(max_loc[0]), int(max_loc[1])), float(max_val)

    def _mask_forearm(self, binary: np.ndarray) -> np.ndarray:
        """Zero the forearm-side strip of the foreground bounding box."""
        masked = binary.copy()
        ys, xs = np.nonzero(binary)
        x_min, x_max = int(xs.min()), int(xs.max())
        y_min, y_max = int(ys.min()), int(ys.max())

        keep = 1.0 - self.config.forearm_mask_fraction
        if self.config.forearm_side == 'right':
            x_start = int((x_max - x_min) * keep + x_min)
            masked[y_min:y_max + 1, x_start:x_max + 1] = 0
        else:
            x_end = int(x_max - (x_max - x_min) * keep)
            masked[y_min:y_max + 1, x_min:x_end + 1] = 0
        return masked
