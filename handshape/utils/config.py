"""
Configuration Management

Handles loading and merging configuration files. Every heuristic threshold
of the hand-shape pipeline lives here as a named field so it can be re-tuned
from YAML instead of being buried in the stages.

Usage:
    from handshape.utils.config import load_config

    config = load_config('configs/default.yaml')
"""

import yaml
from pathlib import Path
from typing import Dict, Any
from dataclasses import dataclass, field


class ConfigurationError(ValueError):
    """Raised when a configuration or pose model file is malformed."""


@dataclass
class RasterConfig:
    """Working raster resolution (pixels)."""
    width: int = 160
    height: int = 120


@dataclass
class PalmConfig:
    """Palm localization configuration."""
    downscale_factor: int = 4
    binarize_threshold: int = 250
    forearm_mask_fraction: float = 0.3   # share of the bbox width masked as forearm
    forearm_side: str = 'right'          # 'right' = forearm enters from high x
    signal_ratio_min: float = 0.3        # count / baseline below this = hand lost
    baseline_decay: float = 0.9
    radius_smoothing: float = 0.1
    position_smoothing: float = 0.5


@dataclass
class OrientationConfig:
    """Orientation estimation configuration (angles in degrees)."""
    upright_guard: float = -20.0
    cluster_band: int = 10               # pixels
    angle_smoothing: float = 0.5
    point_pose_angle_offset: float = 20.0
    primary_channel: str = '1'


@dataclass
class SkeletonConfig:
    """Skeleton and fingertip extraction configuration."""
    thinning_iterations: int = 10
    junction_radius: int = 3
    distal_fraction: float = 0.3
    min_branch_points: int = 10
    extension_length: int = 20           # pixels


@dataclass
class ContourConfig:
    """Contour unwrapping configuration."""
    guide_size: float = 500.0
    corridor_length: float = 500.0
    reduce_step: int = 4
    bridge_thickness: int = 2
    walk_cap: float = 2.0                # multiples of the contour length
    approx_epsilon: float = 1.0


@dataclass
class PoseConfig:
    """Pose correspondence configuration."""
    model_path: str = 'configs/pose_models/point.yaml'
    squared_cost: bool = True


@dataclass
class Config:
    """Main configuration container."""
    project_name: str = "handshape"
    version: str = "1.0.0"

    # Sub-configurations
    raster: RasterConfig = field(default_factory=RasterConfig)
    palm: PalmConfig = field(default_factory=PalmConfig)
    orientation: OrientationConfig = field(default_factory=OrientationConfig)
    skeleton: SkeletonConfig = field(default_factory=SkeletonConfig)
    contour: ContourConfig = field(default_factory=ContourConfig)
    pose: PoseConfig = field(default_factory=PoseConfig)

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'Config':
        """Create Config from dictionary."""
        config = cls()
        if not config_dict:
            return config

        # Project settings
        project = config_dict.get('project', {})
        config.project_name = project.get('name', config.project_name)
        config.version = project.get('version', config.version)

        # Raster config
        raster = config_dict.get('raster', {})
        config.raster = RasterConfig(
            width=raster.get('width', 160),
            height=raster.get('height', 120)
        )

        # Palm config
        palm = config_dict.get('palm', {})
        smoothing = palm.get('smoothing', {})
        config.palm = PalmConfig(
            downscale_factor=palm.get('downscale_factor', 4),
            binarize_threshold=palm.get('binarize_threshold', 250),
            forearm_mask_fraction=palm.get('forearm_mask_fraction', 0.3),
            forearm_side=palm.get('forearm_side', 'right'),
            signal_ratio_min=palm.get('signal_ratio_min', 0.3),
            baseline_decay=palm.get('baseline_decay', 0.9),
            radius_smoothing=smoothing.get('radius', 0.1),
            position_smoothing=smoothing.get('position', 0.5)
        )

        # Orientation config
        orientation = config_dict.get('orientation', {})
        config.orientation = OrientationConfig(
            upright_guard=orientation.get('upright_guard', -20.0),
            cluster_band=orientation.get('cluster_band', 10),
            angle_smoothing=orientation.get('angle_smoothing', 0.5),
            point_pose_angle_offset=orientation.get('point_pose_angle_offset', 20.0),
            primary_channel=str(orientation.get('primary_channel', '1'))
        )

        # Skeleton config
        skeleton = config_dict.get('skeleton', {})
        config.skeleton = SkeletonConfig(
            thinning_iterations=skeleton.get('thinning_iterations', 10),
            junction_radius=skeleton.get('junction_radius', 3),
            distal_fraction=skeleton.get('distal_fraction', 0.3),
            min_branch_points=skeleton.get('min_branch_points', 10),
            extension_length=skeleton.get('extension_length', 20)
        )

        # Contour config
        contour = config_dict.get('contour', {})
        config.contour = ContourConfig(
            guide_size=contour.get('guide_size', 500.0),
            corridor_length=contour.get('corridor_length', 500.0),
            reduce_step=contour.get('reduce_step', 4),
            bridge_thickness=contour.get('bridge_thickness', 2),
            walk_cap=contour.get('walk_cap', 2.0),
            approx_epsilon=contour.get('approx_epsilon', 1.0)
        )

        # Pose config
        pose = config_dict.get('pose', {})
        config.pose = PoseConfig(
            model_path=pose.get('model_path', config.pose.model_path),
            squared_cost=pose.get('squared_cost', True)
        )

        config.validate()
        return config

    def validate(self):
        """Reject values that would make the pipeline meaningless."""
        if self.raster.width <= 0 or self.raster.height <= 0:
            raise ConfigurationError(
                f"Raster size must be positive, got {self.raster.width}x{self.raster.height}"
            )
        if self.palm.downscale_factor < 1:
            raise ConfigurationError("palm.downscale_factor must be >= 1")
        if not 0.0 <= self.palm.forearm_mask_fraction < 1.0:
            raise ConfigurationError("palm.forearm_mask_fraction must be in [0, 1)")
        if self.palm.forearm_side not in ('left', 'right'):
            raise ConfigurationError(
                f"palm.forearm_side must be 'left' or 'right', got {self.palm.forearm_side!r}"
            )
        if self.skeleton.thinning_iterations < 1:
            raise ConfigurationError("skeleton.thinning_iterations must be >= 1")


def load_config(config_path: str) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to YAML config file

    Returns:
        Config object
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path, 'r') as f:
        config_dict = yaml.safe_load(f)

    return Config.from_dict(config_dict or {})


def merge_configs(base: Dict, override: Dict) -> Dict:
    """
    Merge two config dictionaries.

    Args:
        base: Base configuration
        override: Override values

    Returns:
        Merged configuration
    """
    result = base.copy()

    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def config_to_dict(config: Config) -> Dict[str, Any]:
    """Inverse of Config.from_dict."""
    return {
        'project': {
            'name': config.project_name,
            'version': config.version
        },
        'raster': {
            'width': config.raster.width,
            'height': config.raster.height
        },
        'palm': {
            'downscale_factor': config.palm.downscale_factor,
            'binarize_threshold': config.palm.binarize_threshold,
            'forearm_mask_fraction': config.palm.forearm_mask_fraction,
            'forearm_side': config.palm.forearm_side,
            'signal_ratio_min': config.palm.signal_ratio_min,
            'baseline_decay': config.palm.baseline_decay,
            'smoothing': {
                'radius': config.palm.radius_smoothing,
                'position': config.palm.position_smoothing
            }
        },
        'orientation': {
            'upright_guard': config.orientation.upright_guard,
            'cluster_band': config.orientation.cluster_band,
            'angle_smoothing': config.orientation.angle_smoothing,
            'point_pose_angle_offset': config.orientation.point_pose_angle_offset,
            'primary_channel': config.orientation.primary_channel
        },
        'skeleton': {
            'thinning_iterations': config.skeleton.thinning_iterations,
            'junction_radius': config.skeleton.junction_radius,
            'distal_fraction': config.skeleton.distal_fraction,
            'min_branch_points': config.skeleton.min_branch_points,
            'extension_length': config.skeleton.extension_length
        },
        'contour': {
            'guide_size': config.contour.guide_size,
            'corridor_length': config.contour.corridor_length,
            'reduce_step': config.contour.reduce_step,
            'bridge_thickness': config.contour.bridge_thickness,
            'walk_cap': config.contour.walk_cap,
            'approx_epsilon': config.contour.approx_epsilon
        },
        'pose': {
            'model_path': config.pose.model_path,
            'squared_cost': config.pose.squared_cost
        }
    }


def save_config(config: Config, path: str):
    """Save configuration to YAML file."""
    with open(path, 'w') as f:
        yaml.dump(config_to_dict(config), f, default_flow_style=False)
