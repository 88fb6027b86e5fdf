"""
Bounded Skeleton Thinning

Wraps ``skimage.morphology.thin`` with an iteration cap. Capping the number
of passes keeps thin parts (fingers) reduced to one-pixel lines while thick
parts (the palm) stay blobby; the palm is masked by a hub disk later on, so
it never needs to be thinned completely.
"""

import numpy as np
from skimage.morphology import thin
from typing import Sequence, Tuple


class ThinningComputer:
    """Thins the foreground pixels of a raster that are listed as seeds."""

    def __init__(self, foreground_value: int = 254):
        self.foreground_value = foreground_value

    def compute(
        self,
        raster: np.ndarray,
        seed_points: Sequence[Sequence[int]],
        max_iterations: int
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Args:
            raster: uint8 image (H, W); non-zero pixels are foreground
            seed_points: (x, y) points eligible for thinning
            max_iterations: maximum number of thinning passes

        Returns:
            (skeleton raster with foreground_value on skeleton pixels,
             (N, 2) skeleton points in seed order)
        """
        height, width = raster.shape[:2]
        seeds = np.asarray(seed_points, dtype=np.int64).reshape(-1, 2)
        if len(seeds) == 0:
            return np.zeros((height, width), dtype=np.uint8), np.zeros((0, 2), dtype=np.int32)

        inside = (seeds[:, 0] >= 0) & (seeds[:, 0] < width) & \
                 (seeds[:, 1] >= 0) & (seeds[:, 1] < height)
        seeds = seeds[inside]

        subject = np.zeros((height, width), dtype=bool)
        subject[seeds[:, 1], seeds[:, 0]] = True
        subject &= raster > 0

        skeleton = thin(subject, max_num_iter=max_iterations)

        # Keep seed order, drop duplicates
        on_skeleton = skeleton[seeds[:, 1], seeds[:, 0]]
        flat = seeds[:, 1] * width + seeds[:, 0]
        _, first_idx = np.unique(flat, return_index=True)
        keep = np.zeros(len(seeds), dtype=bool)
        keep[first_idx] = True
        points = seeds[keep & on_skeleton].astype(np.int32)

        skeleton_raster = np.zeros((height, width), dtype=np.uint8)
        skeleton_raster[skeleton] = self.foreground_value
        return skeleton_raster, points
