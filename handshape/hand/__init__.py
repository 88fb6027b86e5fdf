"""Per-hand analysis: state, palm, orientation and fingertips."""

from .frame import HandFrame
from .state_store import TemporalStateStore, PalmEstimate, LowPassFilter, BaselineAccumulator
from .palm_localizer import PalmLocalizer
from .orientation import OrientationEstimator
from .fingertip_extractor import (
    FingertipExtractor,
    SkeletonBranch,
    SkeletonResult,
    TipCandidate,
    junction_mask,
    JUNCTION_TRIADS,
)

__all__ = [
    "HandFrame",
    "TemporalStateStore",
    "PalmEstimate",
    "LowPassFilter",
    "BaselineAccumulator",
    "PalmLocalizer",
    "OrientationEstimator",
    "FingertipExtractor",
    "SkeletonBranch",
    "SkeletonResult",
    "TipCandidate",
    "junction_mask",
    "JUNCTION_TRIADS",
]
