"""
Pose Models

A pose model is the canonical unwrapped contour of one hand pose, drawn in
the same canonical box the live contour is normalized into, together with
label ranges that name the hand part each model point belongs to.

File format (YAML):

    name: point
    canvas: [160, 120]
    points:
      - [0, 20]
      - [12, 45]
    labels:
      - name: thumb
        range: [0, 6]     # inclusive model point indices
      - name: index
        range: [7, 14]

Usage:
    from handshape.pose.pose_model import load_pose_model

    model = load_pose_model('configs/pose_models/point.yaml')
    label = model.label_for(12)
"""

import numpy as np
import yaml
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from ..utils.config import ConfigurationError


@dataclass(frozen=True, eq=False)
class PoseModel:
    """Immutable canonical pose: ordered points plus inclusive label ranges."""
    name: str
    points: np.ndarray  # Shape (N, 2)
    label_ranges: Tuple[Tuple[int, int], ...]
    label_names: Tuple[str, ...] = field(default=())
    canvas_size: Tuple[int, int] = (160, 120)

    def __post_init__(self):
        self.validate()
        table = np.full(self.label_span, -1, dtype=np.int32)
        for label, (start, end) in enumerate(self.label_ranges):
            table[start:end + 1] = label
        object.__setattr__(self, '_label_table', table)

    def validate(self):
        """Raise ConfigurationError on ranges that do not fit the point list."""
        n = len(self.points)
        if n == 0:
            raise ConfigurationError(f"Pose model '{self.name}' has no points")
        if self.points.ndim != 2 or self.points.shape[1] != 2:
            raise ConfigurationError(
                f"Pose model '{self.name}' points must have shape (N, 2), got {self.points.shape}"
            )
        if not self.label_ranges:
            raise ConfigurationError(f"Pose model '{self.name}' has no label ranges")
        if self.label_names and len(self.label_names) != len(self.label_ranges):
            raise ConfigurationError(
                f"Pose model '{self.name}' has {len(self.label_names)} label names "
                f"for {len(self.label_ranges)} ranges"
            )
        for start, end in self.label_ranges:
            if not 0 <= start <= end < n:
                raise ConfigurationError(
                    f"Pose model '{self.name}' label range [{start}, {end}] "
                    f"is outside its {n} points"
                )

    @property
    def label_span(self) -> int:
        """Number of model indices covered by the label table."""
        return max(end for _, end in self.label_ranges) + 1

    @property
    def num_labels(self) -> int:
        return len(self.label_ranges)

    def label_for(self, model_index: int) -> Optional[int]:
        """Label of a model index, None outside the table or in an unlabelled gap."""
        if model_index < 0 or model_index >= self.label_span:
            return None
        label = int(self._label_table[model_index])
        return label if label >= 0 else None

    def label_name(self, label: int) -> str:
        if self.label_names:
            return self.label_names[label]
        return str(label)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PoseModel':
        """Create a PoseModel from a parsed YAML/JSON dictionary."""
        if not isinstance(data, dict):
            raise ConfigurationError("Pose model must be a mapping")

        try:
            points = np.asarray(data['points'], dtype=np.int32)
            labels = data['labels']
        except KeyError as e:
            raise ConfigurationError(f"Pose model is missing '{e.args[0]}'") from e
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Pose model points are malformed: {e}") from e

        ranges: List[Tuple[int, int]] = []
        names: List[str] = []
        for i, label in enumerate(labels):
            try:
                start, end = label['range']
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"Label {i} needs a 'range: [start, end]'") from e
            ranges.append((int(start), int(end)))
            names.append(str(label.get('name', i)))

        canvas = data.get('canvas', [160, 120])
        return cls(
            name=str(data.get('name', '')),
            points=points,
            label_ranges=tuple(ranges),
            label_names=tuple(names),
            canvas_size=(int(canvas[0]), int(canvas[1]))
        )


def load_pose_model(path: str) -> PoseModel:
    """
    Load and validate a pose model file.

    Args:
        path: Path to YAML pose model

    Returns:
        PoseModel
    """
    model_path = Path(path)
    if not model_path.exists():
        raise FileNotFoundError(f"Pose model not found: {path}")

    with open(model_path, 'r') as f:
        data = yaml.safe_load(f)

    return PoseModel.from_dict(data)
