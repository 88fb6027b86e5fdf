"""Pose models and DTW correspondence matching."""

from .pose_model import PoseModel, load_pose_model
from .dtw import compute_cost_matrix, compute_dtw_indexes, alignment_cost
from .matcher import PoseMatcher, LabeledPoint
from .visualization import render_overlay, render_normalized, labeled_segments, LABEL_COLORS

__all__ = [
    "PoseModel",
    "load_pose_model",
    "compute_cost_matrix",
    "compute_dtw_indexes",
    "alignment_cost",
    "PoseMatcher",
    "LabeledPoint",
    "render_overlay",
    "render_normalized",
    "labeled_segments",
    "LABEL_COLORS",
]
