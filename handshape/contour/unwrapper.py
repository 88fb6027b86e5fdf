"""
Contour Unwrapping and Normalization

Turns the closed outer contour of the hand into a single open path that
runs around the palm and fingers only, then maps it into a canonical box so
that it can be aligned with a pose model.

Pipeline:
1. Rank fingertips by angle around the palm
2. Build the palm/forearm separating mask (guide line above the palm,
   forearm corridor, palm circle) and flood fill the palm+finger side
3. Keep contour edges whose endpoints both lie on the palm+finger side
4. Pick the outermost kept parts (by angle around the palm) as anchors
5. Walk the contour from the first anchor to the last one
6. Simplify the path, keeping its exact endpoints
7. Remap the path into the canonical [0, W) x [0, H) box

Usage:
    from handshape.contour.unwrapper import ContourUnwrapper

    unwrapper = ContourUnwrapper()
    result = unwrapper.unwrap(frame, palm, hand_angle, tip_points)
"""

import cv2
import numpy as np
from dataclasses import dataclass
from scipy.spatial.distance import cdist
from typing import List, Optional, Sequence, Tuple

from ..hand.frame import HandFrame, FOREGROUND
from ..hand.state_store import PalmEstimate
from ..raster.blobs import BlobDetector, flood_fill
from ..raster.geometry import get_bounds, map_val, sort_points_by_angle
from ..utils.config import ContourConfig
from ..utils.logging_utils import get_logger

logger = get_logger(__name__)

PALM_SIDE = 127


@dataclass
class NormalizedContour:
    """Contour remapped into a canonical box, with the box it came from."""
    points: np.ndarray  # Shape (N, 2) - canonical (x, y)
    source_bounds: Tuple[int, int, int, int]  # (x_min, x_max, y_min, y_max)
    canvas_size: Tuple[int, int]  # (width, height)

    def __len__(self) -> int:
        return len(self.points)

    @classmethod
    def from_points(cls, points: np.ndarray, canvas_size: Tuple[int, int]) -> 'NormalizedContour':
        """Remap x and y independently from the points' bounding box onto the canvas."""
        x_min, x_max, y_min, y_max = get_bounds(points)
        width, height = canvas_size
        mapped = np.array([
            (
                int(round(map_val(x, x_min, x_max, 0, width - 1))),
                int(round(map_val(y, y_min, y_max, 0, height - 1)))
            )
            for x, y in points
        ], dtype=np.int32).reshape(-1, 2)
        return cls(points=mapped, source_bounds=(x_min, x_max, y_min, y_max), canvas_size=canvas_size)

    def to_source(self, pt: Sequence[float]) -> Tuple[int, int]:
        """Map a canonical point back into source coordinates."""
        x_min, x_max, y_min, y_max = self.source_bounds
        width, height = self.canvas_size
        return (
            int(round(map_val(pt[0], 0, width - 1, x_min, x_max))),
            int(round(map_val(pt[1], 0, height - 1, y_min, y_max)))
        )


@dataclass
class UnwrapResult:
    """Contour unwrapping output."""
    tips: List[Tuple[int, int]]  # sorted by angle around the palm
    path: np.ndarray  # raw unwrapped contour (N, 2)
    simplified: np.ndarray  # polygon approximation of path (M, 2)
    normalized: NormalizedContour
    palm_mask: np.ndarray


class ContourUnwrapper:
    """Unwraps the hand contour between its outermost palm-side anchors."""

    def __init__(
        self,
        config: Optional[ContourConfig] = None,
        blob_detector: Optional[BlobDetector] = None
    ):
        self.config = config or ContourConfig()
        self.blob_detector = blob_detector or BlobDetector()

    def unwrap(
        self,
        frame: HandFrame,
        palm: PalmEstimate,
        hand_angle: float,
        tips: Sequence[Tuple[int, int]]
    ) -> Optional[UnwrapResult]:
        """
        Args:
            frame: current hand frame
            palm: palm estimate of this frame
            hand_angle: hand angle of this frame, degrees
            tips: accepted fingertip points

        Returns:
            UnwrapResult, or None when no open path could be built
        """
        if len(tips) == 0:
            logger.debug("No fingertips to unwrap around")
            return None
        ranked = self.rank_tips(tips, palm.center)

        contour = self.extract_contour(frame)
        if contour is None:
            logger.debug("Silhouette has no external contour")
            return None

        palm_mask = self.build_palm_mask(frame.shape, palm, hand_angle)
        path = self.unwrap_contour(contour, palm_mask, palm.center)
        if path is None or len(path) == 0:
            logger.debug("Contour could not be unwrapped")
            return None

        simplified = self.simplify(path)
        height, width = frame.shape
        normalized = NormalizedContour.from_points(simplified, (width, height))

        return UnwrapResult(
            tips=ranked,
            path=path,
            simplified=simplified,
            normalized=normalized,
            palm_mask=palm_mask
        )

    @staticmethod
    def rank_tips(tips: Sequence[Tuple[int, int]], palm_center: Sequence[int]) -> List[Tuple[int, int]]:
        """Tips in ascending angle around the palm; ties keep their input order."""
        return sort_points_by_angle([(int(x), int(y)) for x, y in tips], palm_center)

    def build_palm_mask(
        self,
        shape: Tuple[int, int],
        palm: PalmEstimate,
        hand_angle: float
    ) -> np.ndarray:
        """
        Raster whose PALM_SIDE pixels are the palm+finger side of the hand.

        A guide line perpendicular to the hand axis passes one palm radius
        above the palm center; a corridor as wide as the palm runs from the
        palm center towards the forearm; the palm circle closes it. The side
        of the guide line that holds the fingers is flood filled from the
        bottom corner lying below the guide line's lower end.
        """
        height, width = shape
        cfg = self.config
        image = np.zeros((height, width), dtype=np.uint8)
        center = (float(palm.center[0]), float(palm.center[1]))
        radius = float(palm.radius)

        guide = cv2.boxPoints((center, (cfg.guide_size, cfg.guide_size), -hand_angle))
        guide_end = (guide[3] - guide[2]) / 2 + guide[2]
        guide_start = (guide[0] - guide[1]) / 2 + guide[1]
        guide_end = (int(guide_end[0]), int(guide_end[1] - radius))
        guide_start = (int(guide_start[0]), int(guide_start[1] - radius))
        cv2.line(image, guide_end, guide_start, FOREGROUND, 1)

        corridor = cv2.boxPoints((center, (radius * 2, cfg.corridor_length), -hand_angle))
        corridor_end = _int_point((corridor[3] - corridor[2]) / 2 + corridor[2])
        corridor_start = _int_point((corridor[0] - corridor[1]) / 2 + corridor[1])
        corner_1 = _int_point(corridor[1])
        corner_2 = _int_point(corridor[2])
        cv2.line(image, corridor_start, corner_1, FOREGROUND, 1)
        cv2.line(image, corner_1, corner_2, FOREGROUND, 1)
        cv2.line(image, corner_2, corridor_end, FOREGROUND, 1)
        cv2.line(image, corridor_end, corridor_start, FOREGROUND, 1)

        cv2.circle(image, (int(palm.center[0]), int(palm.center[1])), int(radius), FOREGROUND, 1)

        if guide_start[1] < guide_end[1]:
            flood_fill(image, (0, height - 1), PALM_SIDE)
        else:
            flood_fill(image, (width - 1, height - 1), PALM_SIDE)
        return image

    def extract_contour(self, frame: HandFrame) -> Optional[np.ndarray]:
        """
        Single external contour of the silhouette as an (N, 2) point array.

        Several raw contours are merged first: each is subsampled, then the
        first group is repeatedly joined to its nearest group with a bridging
        segment drawn into the silhouette, and contours are extracted again.
        """
        cfg = self.config
        image = frame.silhouette.copy()
        contours = _find_external_contours(image)
        if not contours:
            return None

        if len(contours) > 1:
            groups = [c[::cfg.reduce_step] for c in contours]
            while len(groups) > 1:
                best = None
                for k in range(1, len(groups)):
                    dists = cdist(groups[0], groups[k], 'sqeuclidean')
                    i, j = np.unravel_index(int(np.argmin(dists)), dists.shape)
                    if best is None or dists[i, j] < best[0]:
                        best = (dists[i, j], k, groups[0][i], groups[k][j])

                _, k, pt0, pt1 = best
                cv2.line(image, _int_point(pt0), _int_point(pt1), FOREGROUND, cfg.bridge_thickness)
                groups[0] = np.concatenate([groups[0], groups[k]])
                del groups[k]

            contours = _find_external_contours(image)
            if not contours:
                return None

        return max(contours, key=len)

    def unwrap_contour(
        self,
        contour: np.ndarray,
        palm_mask: np.ndarray,
        palm_center: Sequence[int]
    ) -> Optional[np.ndarray]:
        """Open contour path between the outermost palm-side parts, or None."""
        height, width = palm_mask.shape
        on_palm_side = palm_mask[contour[:, 1], contour[:, 0]] == PALM_SIDE
        both = on_palm_side[:-1] & on_palm_side[1:]

        kept = np.zeros((height, width), dtype=np.uint8)
        edge_starts = contour[:-1][both]
        edge_ends = contour[1:][both]
        kept[edge_starts[:, 1], edge_starts[:, 0]] = FOREGROUND
        kept[edge_ends[:, 1], edge_ends[:, 0]] = FOREGROUND

        parts = self.blob_detector.detect_seeded(kept, FOREGROUND, contour)
        if not parts:
            return None
        parts = BlobDetector.sort_by_angle(parts, palm_center)
        pt_first = parts[0].first
        pt_last = parts[-1].last

        n = len(contour)
        cap = self.config.walk_cap * n
        first_hit = False
        last_hit = False
        path = []
        index = 0
        while index < cap:
            pt = (int(contour[index % n, 0]), int(contour[index % n, 1]))
            if not first_hit and pt == pt_first:
                first_hit = True
            elif first_hit and not last_hit and pt == pt_last:
                last_hit = True

            if first_hit:
                path.append(pt)
            if last_hit:
                break
            index += 1

        if not (first_hit and last_hit):
            return None
        return np.array(path, dtype=np.int32)

    def simplify(self, path: np.ndarray) -> np.ndarray:
        """Open polygon approximation that keeps the path's exact endpoints."""
        approx = cv2.approxPolyDP(
            path.reshape(-1, 1, 2).astype(np.int32), self.config.approx_epsilon, False
        ).reshape(-1, 2)

        if not np.array_equal(approx[0], path[0]):
            approx = np.vstack([path[:1], approx])
        if not np.array_equal(approx[-1], path[-1]):
            approx = np.vstack([approx, path[-1:]])
        return approx.astype(np.int32)


def _find_external_contours(image: np.ndarray) -> List[np.ndarray]:
    found = cv2.findContours(image, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_NONE)
    contours = found[-2]
    return [c.reshape(-1, 2) for c in contours if len(c) > 0]


def _int_point(pt) -> Tuple[int, int]:
    return (int(pt[0]), int(pt[1]))
