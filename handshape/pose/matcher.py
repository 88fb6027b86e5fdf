"""
Pose Correspondence Matcher

Aligns a normalized contour against a pose model with dynamic time warping
and labels each aligned contour point with the hand part of its model point.

Usage:
    from handshape.pose.matcher import PoseMatcher

    matcher = PoseMatcher(model)
    labeled = matcher.match(normalized_contour)
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..contour.unwrapper import NormalizedContour
from ..utils.logging_utils import get_logger
from .dtw import compute_cost_matrix, compute_dtw_indexes
from .pose_model import PoseModel

logger = get_logger(__name__)


@dataclass
class LabeledPoint:
    """One aligned contour point and the pose model label it received."""
    contour_index: int
    model_index: int
    label: int
    point: Tuple[int, int]  # source (silhouette) coordinates


class PoseMatcher:
    """Labels normalized contours against one fixed pose model."""

    def __init__(self, model: PoseModel, squared: bool = True):
        self.model = model
        self.squared = squared
        self.last_path: List[Tuple[int, int]] = []

    def match(self, contour: NormalizedContour) -> Optional[List[LabeledPoint]]:
        """
        Args:
            contour: normalized contour of this frame

        Returns:
            Labeled points in path order, or None for an empty contour
        """
        if len(contour) == 0:
            logger.debug("Empty contour, nothing to match")
            return None

        if tuple(contour.canvas_size) != tuple(self.model.canvas_size):
            logger.debug(
                f"Contour canvas {contour.canvas_size} differs from "
                f"pose model canvas {self.model.canvas_size}"
            )

        cost = compute_cost_matrix(self.model.points, contour.points, squared=self.squared)
        self.last_path = compute_dtw_indexes(cost)

        labeled = []
        for model_idx, contour_idx in self.last_path:
            label = self.model.label_for(model_idx)
            if label is None:
                continue
            canonical = contour.points[contour_idx]
            labeled.append(LabeledPoint(
                contour_index=contour_idx,
                model_index=model_idx,
                label=label,
                point=contour.to_source(canonical)
            ))

        return labeled

    def label_sequence(self, labeled: List[LabeledPoint]) -> List[int]:
        """Labels in path order with consecutive repeats collapsed."""
        sequence: List[int] = []
        for lp in labeled:
            if not sequence or sequence[-1] != lp.label:
                sequence.append(lp.label)
        return sequence
