"""
Skeleton and Fingertip Extraction

Finds finger branches on the thinned hand silhouette and picks their tips.

Pipeline:
1. Render the hand blobs and bridge them pairwise so the skeleton is connected
2. Bounded thinning of the bridged raster
3. Junction detection (3x3 rule table); junctions and the palm disk become
   hub pixels, which cuts the skeleton into branches
4. One connected component per branch, re-traced from its hub-side origin
5. Branches whose distal end touches another hub are bridges, not fingers
6. Tip = end of the traced branch, plus a short extension line used for the
   orientation estimate

Usage:
    from handshape.hand.fingertip_extractor import FingertipExtractor

    extractor = FingertipExtractor()
    result = extractor.extract(frame, palm)
"""

import cv2
import numpy as np
from dataclasses import dataclass, field
from itertools import combinations
from scipy.spatial import cKDTree
from typing import List, Optional, Sequence, Tuple

from .frame import HandFrame, FOREGROUND
from .state_store import PalmEstimate
from ..raster.blobs import Blob, BlobDetector, neighborhood_has
from ..raster.geometry import bresenham_line, extension_line, get_distance
from ..raster.thinning import ThinningComputer
from ..utils.config import SkeletonConfig
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

HUB = 127

# Neighbour offsets (dx, dy)
UP, DOWN, LEFT, RIGHT = (0, -1), (0, 1), (-1, 0), (1, 0)
UP_LEFT, UP_RIGHT, DOWN_LEFT, DOWN_RIGHT = (-1, -1), (1, -1), (-1, 1), (1, 1)

ORTHOGONAL = (UP, DOWN, LEFT, RIGHT)
DIAGONAL = (UP_LEFT, UP_RIGHT, DOWN_LEFT, DOWN_RIGHT)

# Mixed orthogonal/diagonal triads (corner turns). The table is closed under
# 90 degree rotation: two orbits of four triads each.
JUNCTION_TRIADS = (
    (LEFT, UP_RIGHT, DOWN_RIGHT),
    (UP_LEFT, RIGHT, DOWN_LEFT),
    (UP, DOWN_LEFT, DOWN_RIGHT),
    (UP_LEFT, UP_RIGHT, DOWN),
    (UP, RIGHT, DOWN_LEFT),
    (UP_LEFT, RIGHT, DOWN),
    (UP_RIGHT, DOWN, LEFT),
    (LEFT, UP, DOWN_RIGHT),
)


@dataclass
class SkeletonBranch:
    """Ordered skeleton path from the hub-side origin to the tip."""
    points: np.ndarray  # Shape (N, 2) - (x, y)

    @property
    def origin(self) -> Tuple[int, int]:
        return (int(self.points[0, 0]), int(self.points[0, 1]))

    @property
    def tip(self) -> Tuple[int, int]:
        return (int(self.points[-1, 0]), int(self.points[-1, 1]))

    def __len__(self) -> int:
        return len(self.points)


@dataclass
class TipCandidate:
    """Fingertip with the extension line used for angle estimation."""
    point: Tuple[int, int]
    extension_line: List[Tuple[int, int]]
    branch_index: int


@dataclass
class SkeletonResult:
    """Fingertip extraction output for one frame."""
    tips: List[TipCandidate]
    branches: List[SkeletonBranch]
    dominant_score: float = -1.0
    dominant_index: int = -1
    skeleton_points: np.ndarray = field(default_factory=lambda: np.zeros((0, 2), dtype=np.int32))
    segmented: Optional[np.ndarray] = None

    @property
    def extension_lines(self) -> List[List[Tuple[int, int]]]:
        return [tip.extension_line for tip in self.tips]

    @property
    def tip_points(self) -> List[Tuple[int, int]]:
        return [tip.point for tip in self.tips]


def junction_mask(skeleton: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Junction test for each point of a skeleton raster.

    A point is a junction if at least 3 of its 4 orthogonal neighbours are
    set, or at least 3 of its 4 diagonal neighbours, or all three pixels of
    any triad in JUNCTION_TRIADS. Pixels outside the raster count as unset.

    Args:
        skeleton: (H, W) raster, non-zero = set
        points: (N, 2) points (x, y) to classify

    Returns:
        Boolean array of shape (N,)
    """
    if len(points) == 0:
        return np.zeros(0, dtype=bool)

    padded = np.pad(skeleton > 0, 1)
    xs = points[:, 0] + 1
    ys = points[:, 1] + 1

    def neighbor(offset):
        return padded[ys + offset[1], xs + offset[0]]

    ortho = sum(neighbor(o).astype(np.int32) for o in ORTHOGONAL)
    diag = sum(neighbor(o).astype(np.int32) for o in DIAGONAL)

    result = (ortho >= 3) | (diag >= 3)
    for triad in JUNCTION_TRIADS:
        result |= neighbor(triad[0]) & neighbor(triad[1]) & neighbor(triad[2])
    return result


class FingertipExtractor:
    """
    Extracts finger branches and tips from the hand silhouette.

    The palm disk is stamped as a hub, so finger branches end where the
    finger enters the palm; the branch pixel touching the hub is the origin
    and the far end of the branch is the tip.
    """

    def __init__(
        self,
        config: Optional[SkeletonConfig] = None,
        blob_detector: Optional[BlobDetector] = None,
        thinning_computer: Optional[ThinningComputer] = None
    ):
        self.config = config or SkeletonConfig()
        self.blob_detector = blob_detector or BlobDetector()
        self.thinning_computer = thinning_computer or ThinningComputer(FOREGROUND)

    def extract(self, frame: HandFrame, palm: PalmEstimate) -> Optional[SkeletonResult]:
        """
        Find fingertips for this frame.

        Args:
            frame: current hand frame
            palm: palm estimate of this frame

        Returns:
            SkeletonResult, or None when no branch qualifies as a finger
        """
        cfg = self.config
        bridged, subject_points = self.render_bridged(frame.blobs, frame.shape)

        skeleton, skeleton_points = self.thinning_computer.compute(
            bridged, subject_points, cfg.thinning_iterations
        )
        segmented = self.segment_skeleton(skeleton, skeleton_points, palm)

        bounds = frame.bounds
        parts = self.blob_detector.detect(segmented, FOREGROUND, bounds)

        result = SkeletonResult(
            tips=[], branches=[], skeleton_points=skeleton_points, segmented=segmented
        )
        for part in parts:
            branch = self._trace_branch(segmented, part)
            if branch is None or self._touches_hub_distally(segmented, branch):
                continue

            n = len(branch)
            index_start = int(n * (1.0 - cfg.distal_fraction)) if n >= cfg.min_branch_points else 0
            if index_start == n - 1:
                continue

            line = extension_line(branch.points[-1], branch.points[index_start], cfg.extension_length)
            result.tips.append(TipCandidate(
                point=branch.tip,
                extension_line=line,
                branch_index=len(result.branches)
            ))
            result.branches.append(branch)

            score = get_distance(branch.origin, palm.center) + n - palm.radius
            if score > result.dominant_score:
                result.dominant_score = score
                result.dominant_index = len(result.branches) - 1

        if not result.tips:
            logger.debug(f"No finger branches among {len(parts)} skeleton parts")
            return None
        return result

    def render_bridged(
        self,
        blobs: Sequence[Blob],
        shape: Tuple[int, int]
    ) -> Tuple[np.ndarray, np.ndarray]:
        """
        Render blobs and connect every pair through its mutually nearest points.

        Returns:
            (raster, (N, 2) subject points: blob pixels followed by bridge pixels)
        """
        raster = np.zeros(shape, dtype=np.uint8)
        subject = [blob.points for blob in blobs]
        for blob in blobs:
            blob.fill(raster, FOREGROUND)

        trees = [cKDTree(blob.points) for blob in blobs]
        for i, j in combinations(range(len(blobs)), 2):
            dists, idx = trees[i].query(blobs[j].points)
            k = int(np.argmin(dists))
            pt_j = blobs[j].points[k]
            pt_i = blobs[i].points[idx[k]]

            line = np.array(
                bresenham_line(pt_i[0], pt_i[1], pt_j[0], pt_j[1]), dtype=np.int32
            )
            raster[line[:, 1], line[:, 0]] = FOREGROUND
            subject.append(line)

        if not subject:
            return raster, np.zeros((0, 2), dtype=np.int32)
        return raster, np.concatenate(subject)

    def segment_skeleton(
        self,
        skeleton: np.ndarray,
        skeleton_points: np.ndarray,
        palm: PalmEstimate
    ) -> np.ndarray:
        """Skeleton raster with junction disks and the palm disk painted as hubs."""
        segmented = np.zeros_like(skeleton)
        if len(skeleton_points):
            segmented[skeleton_points[:, 1], skeleton_points[:, 0]] = FOREGROUND

        junctions = skeleton_points[junction_mask(skeleton, skeleton_points)]
        for x, y in junctions:
            cv2.circle(segmented, (int(x), int(y)), self.config.junction_radius, HUB, -1)

        cv2.circle(
            segmented,
            (int(palm.center[0]), int(palm.center[1])),
            int(round(palm.radius)),
            HUB, -1
        )
        return segmented

    def _trace_branch(self, segmented: np.ndarray, part: Blob) -> Optional[SkeletonBranch]:
        """Re-trace a skeleton part from the pixel that touches a hub."""
        for pt in part.points:
            if neighborhood_has(segmented, pt, HUB):
                traced = self.blob_detector.trace_from(segmented, FOREGROUND, pt)
                return SkeletonBranch(points=traced.points) if traced is not None else None
        return None

    def _touches_hub_distally(self, segmented: np.ndarray, branch: SkeletonBranch) -> bool:
        """
        Whether the distal window of the branch is adjacent to a hub.

        The origin sits next to a hub by construction and is never part of the
        window. Short branches only test their terminal point.
        """
        n = len(branch)
        if n < self.config.min_branch_points:
            start = n - 1
        else:
            start = max(int(n * (1.0 - self.config.distal_fraction)), 1)
        return any(neighborhood_has(segmented, pt, HUB) for pt in branch.points[start:])
