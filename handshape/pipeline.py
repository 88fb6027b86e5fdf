"""
Hand-Shape Analysis Pipeline

Main entry point for running single-frame hand-shape analysis over
silhouette masks.

Usage:
    python -m handshape.pipeline --config configs/default.yaml --input masks/
"""

import argparse
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import cv2
import numpy as np

from .contour.unwrapper import ContourUnwrapper, NormalizedContour
from .hand.fingertip_extractor import FingertipExtractor
from .hand.frame import HandFrame, FOREGROUND
from .hand.orientation import OrientationEstimator
from .hand.palm_localizer import PalmLocalizer
from .hand.state_store import PalmEstimate, TemporalStateStore
from .pose.matcher import LabeledPoint, PoseMatcher
from .pose.pose_model import PoseModel, load_pose_model
from .pose.visualization import render_normalized, render_overlay
from .raster.blobs import BlobDetector
from .raster.thinning import ThinningComputer
from .utils.config import load_config, Config
from .utils.logging_utils import setup_logging, get_logger, ProgressLogger

logger = get_logger(__name__)

MASK_EXTENSIONS = ('.png', '.bmp', '.jpg', '.jpeg', '.tif', '.tiff')


@dataclass
class FrameContext:
    """
    Values shared between the channels of one frame.

    The primary channel writes its palm radius and hand angle here; the other
    channels of the same frame read them. Create one per frame and process
    the primary channel first.
    """
    pose_name: str = ""
    palm_radius: Optional[float] = None
    hand_angle: Optional[float] = None


@dataclass
class HandShapeResult:
    """Output of one resolved frame."""
    palm: PalmEstimate
    hand_angle: float
    tips: List[Tuple[int, int]]  # ranked by angle around the palm
    dominant_score: float
    normalized: NormalizedContour
    labels: List[LabeledPoint]
    unwrapped_contour: np.ndarray  # raw unwrapped path, (N, 2)
    overlays: Dict[str, np.ndarray] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary; overlays are left out."""
        return {
            'palm': {
                'center': [int(self.palm.center[0]), int(self.palm.center[1])],
                'radius': float(self.palm.radius)
            },
            'hand_angle': float(self.hand_angle),
            'tips': [[int(x), int(y)] for x, y in self.tips],
            'dominant_score': float(self.dominant_score),
            'normalized_contour': self.normalized.points.tolist(),
            'labels': [
                {
                    'contour_index': lp.contour_index,
                    'model_index': lp.model_index,
                    'label': lp.label,
                    'point': [lp.point[0], lp.point[1]]
                }
                for lp in self.labels
            ],
            'unwrapped_contour': self.unwrapped_contour.tolist()
        }


class HandShapePipeline:
    """
    End-to-end hand-shape analysis for one frame of one tracked hand.

    Stages:
    1. Palm Localization - distance-transform palm center and radius
    2. Fingertip Extraction - skeleton branches and their tips
    3. Orientation - hand angle from fingertip extension lines
    4. Contour Unwrapping - open palm+finger contour, normalized
    5. Pose Matching - DTW labels against the pose model
    """

    def __init__(self, config: Optional[Config] = None, pose_model: Optional[PoseModel] = None):
        """
        Initialize pipeline with configuration.

        Args:
            config: Configuration object
            pose_model: Pose model; loaded from config.pose.model_path if omitted
        """
        self.config = config or Config()
        cfg = self.config

        if pose_model is None:
            pose_model = load_pose_model(cfg.pose.model_path)
        self.pose_model = pose_model

        blob_detector = BlobDetector()
        raster_size = (cfg.raster.width, cfg.raster.height)

        self.palm_localizer = PalmLocalizer(cfg.palm)
        self.orientation_estimator = OrientationEstimator(cfg.orientation, raster_size)
        self.fingertip_extractor = FingertipExtractor(
            cfg.skeleton, blob_detector, ThinningComputer(FOREGROUND)
        )
        self.contour_unwrapper = ContourUnwrapper(cfg.contour, blob_detector)
        self.pose_matcher = PoseMatcher(pose_model, squared=cfg.pose.squared_cost)

        self.last_failure: Optional[str] = None

        logger.info(f"Pipeline initialized (pose model '{pose_model.name}')")

    def _fail(self, reason: str) -> None:
        self.last_failure = reason
        logger.debug(f"Frame not resolved: {reason}")
        return None

    def process(
        self,
        frame: HandFrame,
        state: TemporalStateStore,
        context: Optional[FrameContext] = None,
        channel: Optional[str] = None,
        visualize: bool = False
    ) -> Optional[HandShapeResult]:
        """
        Process one frame of one tracked hand.

        Args:
            frame: silhouette and blobs of the hand
            state: the hand's temporal state; frames of a hand must be serialized
            context: per-frame context shared between channels
            channel: channel name; defaults to the configured primary channel
            visualize: also render overlay images

        Returns:
            HandShapeResult, or None when the frame is not resolved
            (the reason is kept in last_failure)
        """
        self.last_failure = None
        context = context if context is not None else FrameContext()
        primary_channel = self.config.orientation.primary_channel
        is_primary = channel is None or channel == primary_channel

        if state.begin_frame(frame.identity):
            logger.info(f"Hand identity changed to '{frame.identity}', state reset")

        # Stage 1: palm
        palm = self.palm_localizer.localize(frame, state)
        if palm is None:
            return self._fail("palm not found")

        if is_primary:
            context.palm_radius = palm.radius
        elif context.palm_radius is None:
            logger.warning(
                f"Channel '{channel}' processed before primary channel "
                f"'{primary_channel}'; using its own palm radius"
            )
        else:
            palm = PalmEstimate(center=palm.center, radius=context.palm_radius)
        state.palm = palm

        # Stage 2: fingertips
        skeleton = self.fingertip_extractor.extract(frame, palm)
        if skeleton is None:
            return self._fail("no finger branches")

        # Stage 3: orientation
        angle = self.orientation_estimator.estimate(skeleton.extension_lines, palm.center, state)
        if is_primary:
            context.hand_angle = angle
        elif context.hand_angle is None:
            logger.warning(
                f"Channel '{channel}' processed before primary channel "
                f"'{primary_channel}'; using its own hand angle"
            )
        else:
            angle = context.hand_angle
        state.hand_angle = self.orientation_estimator.persisted_angle(angle, context.pose_name)

        tips = skeleton.tip_points
        if not tips:
            return self._fail("no fingertips")

        # Stage 4: contour
        unwrapped = self.contour_unwrapper.unwrap(frame, palm, angle, tips)
        if unwrapped is None or len(unwrapped.normalized) == 0:
            return self._fail("empty unwrapped contour")

        # Stage 5: labels
        labels = self.pose_matcher.match(unwrapped.normalized)
        if labels is None:
            return self._fail("pose matching failed")

        result = HandShapeResult(
            palm=palm,
            hand_angle=angle,
            tips=unwrapped.tips,
            dominant_score=skeleton.dominant_score,
            normalized=unwrapped.normalized,
            labels=labels,
            unwrapped_contour=unwrapped.path
        )

        if visualize:
            result.overlays['hand'] = render_overlay(
                frame.silhouette,
                palm=palm,
                tips=result.tips,
                labeled=labels,
                extension_lines=skeleton.extension_lines,
                path=unwrapped.path
            )
            result.overlays['palm_mask'] = unwrapped.palm_mask.copy()
            result.overlays['skeleton'] = skeleton.segmented.copy()
            result.overlays['normalized'] = render_normalized(
                unwrapped.normalized.points, unwrapped.normalized.canvas_size
            )

        return result


def find_mask_files(input_path: str) -> List[Path]:
    """Mask images at input_path: the file itself, or a directory's images in name order."""
    path = Path(input_path)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {input_path}")
    if path.is_file():
        return [path]
    return sorted(p for p in path.iterdir() if p.suffix.lower() in MASK_EXTENSIONS)


def main():
    """Main entry point for CLI."""
    parser = argparse.ArgumentParser(
        description="Single-frame hand-shape analysis"
    )
    parser.add_argument(
        "--config",
        type=str,
        default="configs/default.yaml",
        help="Configuration file"
    )
    parser.add_argument(
        "--input",
        type=str,
        required=True,
        help="Mask image or directory of mask images"
    )
    parser.add_argument(
        "--pose-model",
        type=str,
        default=None,
        help="Pose model file (overrides the config)"
    )
    parser.add_argument(
        "--output",
        type=str,
        default="./outputs",
        help="Output directory"
    )
    parser.add_argument(
        "--identity",
        type=str,
        default="hand",
        help="Identity token of the tracked hand"
    )
    parser.add_argument(
        "--visualize",
        action="store_true",
        help="Write overlay images"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    logger.info("Hand-Shape Analysis Pipeline")
    logger.info(f"Config: {args.config}")

    config = load_config(args.config)
    if args.pose_model:
        config.pose.model_path = args.pose_model

    pipeline = HandShapePipeline(config)
    state = TemporalStateStore(config.palm.baseline_decay)
    size = (config.raster.width, config.raster.height)

    mask_files = find_mask_files(args.input)
    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)
    overlay_dir = output_dir / "overlays"
    if args.visualize:
        overlay_dir.mkdir(parents=True, exist_ok=True)

    progress = ProgressLogger(__name__, total=len(mask_files))
    progress.start()

    with open(output_dir / "results.jsonl", 'w') as f:
        for mask_path in mask_files:
            mask = cv2.imread(str(mask_path), cv2.IMREAD_GRAYSCALE)
            if mask is None:
                logger.warning(f"Could not read {mask_path}")
                progress.update(resolved=False)
                continue

            frame = HandFrame.from_mask(mask, identity=args.identity, size=size)
            result = pipeline.process(frame, state, FrameContext(), visualize=args.visualize)

            record = {'frame': mask_path.name, 'resolved': result is not None}
            if result is None:
                record['reason'] = pipeline.last_failure
            else:
                record.update(result.to_dict())
                for name, image in result.overlays.items():
                    cv2.imwrite(str(overlay_dir / f"{mask_path.stem}_{name}.png"), image)

            f.write(json.dumps(record) + "\n")
            progress.update(resolved=result is not None)

    progress.finish()
    logger.info(f"Results saved to {output_dir / 'results.jsonl'}")


if __name__ == "__main__":
    main()
