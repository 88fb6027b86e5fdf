"""
Temporal State for a Tracked Hand

Per-hand memory carried between frames: the smoothed palm estimate, the
hand angle, the low-pass filter that smooths them, and the running baseline
of silhouette pixel counts used to detect a lost hand.

One TemporalStateStore belongs to exactly one tracked hand. Frames of the
same hand must be processed one after another; different hands use
different stores.

Usage:
    from handshape.hand.state_store import TemporalStateStore

    state = TemporalStateStore()
    state.begin_frame("right")
    radius = state.low_pass_filter.compute(radius, 0.1, "palm_radius")
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple, Union

Number = Union[float, np.ndarray]


@dataclass
class PalmEstimate:
    """Palm center (x, y) and inscribed radius, in working-raster pixels."""
    center: Tuple[int, int] = (0, 0)
    radius: float = 1.0


class LowPassFilter:
    """
    Keyed exponential smoothing.

    The first value seen for a key passes through unchanged; afterwards
    ``value = previous + (value - previous) * rate``. Works on scalars and on
    point-like arrays.
    """

    def __init__(self):
        self._values: Dict[str, Number] = {}

    def compute(self, value, rate: float, key: str):
        if isinstance(value, (tuple, list)):
            value = np.asarray(value, dtype=np.float64)

        previous = self._values.get(key)
        if previous is not None:
            value = previous + (value - previous) * rate

        self._values[key] = np.copy(value) if isinstance(value, np.ndarray) else float(value)
        return value

    def has(self, key: str) -> bool:
        return key in self._values

    def reset(self):
        self._values.clear()


class BaselineAccumulator:
    """Exponential running baseline, ``b = decay * b + (1 - decay) * value``."""

    def __init__(self, decay: float = 0.9):
        self.decay = decay
        self.baseline: Optional[float] = None

    def update(self, value: float) -> float:
        if self.baseline is None:
            self.baseline = float(value)
        else:
            self.baseline = self.decay * self.baseline + (1.0 - self.decay) * float(value)
        return self.baseline

    def reset(self):
        self.baseline = None


class TemporalStateStore:
    """
    Typed per-hand state with identity-change reset.

    Attributes:
        frame_count: frames seen since the last reset
        palm: smoothed PalmEstimate from the last resolved frame
        hand_angle: persisted orientation in degrees
        low_pass_filter: filter owned by this hand
        count_baseline: running baseline of silhouette pixel counts
    """

    def __init__(self, baseline_decay: float = 0.9):
        self.baseline_decay = baseline_decay
        self.low_pass_filter = LowPassFilter()
        self.count_baseline = BaselineAccumulator(baseline_decay)
        self.identity: Optional[str] = None
        self._scratch: Dict[str, Any] = {}
        self._clear_fields()

    def _clear_fields(self):
        self.frame_count = 0
        self.palm = PalmEstimate()
        self.hand_angle = 0.0
        self.first_pass = False

    def get(self, key: str, default: Any = None) -> Any:
        """Scratch value for key, or default when missing."""
        return self._scratch.get(key, default)

    def set(self, key: str, value: Any):
        self._scratch[key] = value

    def reset(self):
        """Forget everything learnt about the hand; calling it twice is the same as once."""
        self._clear_fields()
        self._scratch.clear()
        self.low_pass_filter.reset()
        self.count_baseline.reset()

    def begin_frame(self, identity: str) -> bool:
        """
        Start a new frame for the hand identified by identity.

        From the second frame on, a changed identity resets the store before
        anything else is computed.

        Returns:
            True if the store was reset
        """
        reset_fired = False
        if self.first_pass and identity != self.identity:
            self.reset()
            reset_fired = True

        self.identity = identity
        self.first_pass = True
        self.frame_count += 1
        return reset_fired
