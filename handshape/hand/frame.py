"""
Hand Frame Input

A HandFrame bundles what the segmentation stage hands over for one frame:
the binary silhouette at working resolution, the hand's blobs and their
bounding box, and the identity token of the tracking context.

Usage:
    from handshape.hand.frame import HandFrame

    frame = HandFrame.from_mask(mask, identity="right")
"""

import cv2
import numpy as np
from dataclasses import dataclass
from typing import List, Optional, Tuple

from ..raster.blobs import Blob, BlobDetector

FOREGROUND = 254


@dataclass
class HandFrame:
    """Silhouette and blobs of one tracked hand in one frame."""
    silhouette: np.ndarray  # Shape (H, W) uint8, FOREGROUND on hand pixels
    blobs: List[Blob]
    identity: str = ""

    @property
    def shape(self) -> Tuple[int, int]:
        return self.silhouette.shape[:2]

    @property
    def bounds(self) -> Optional[Tuple[int, int, int, int]]:
        """(x_min, x_max, y_min, y_max) over all blobs, None without blobs."""
        if not self.blobs:
            return None
        all_bounds = np.array([blob.bounds for blob in self.blobs])
        return (
            int(all_bounds[:, 0].min()), int(all_bounds[:, 1].max()),
            int(all_bounds[:, 2].min()), int(all_bounds[:, 3].max())
        )

    @property
    def pixel_count(self) -> int:
        return sum(blob.count for blob in self.blobs)

    @classmethod
    def from_blobs(cls, blobs: List[Blob], shape: Tuple[int, int], identity: str = "") -> 'HandFrame':
        """Render blobs into a fresh silhouette of the given (H, W) shape."""
        silhouette = np.zeros(shape, dtype=np.uint8)
        for blob in blobs:
            blob.fill(silhouette, FOREGROUND)
        return cls(silhouette=silhouette, blobs=list(blobs), identity=identity)

    @classmethod
    def from_mask(
        cls,
        mask: np.ndarray,
        identity: str = "",
        size: Optional[Tuple[int, int]] = None,
        min_blob_size: int = 1
    ) -> 'HandFrame':
        """
        Build a frame from a raw mask image.

        Args:
            mask: grayscale or BGR mask; non-zero pixels are hand
            identity: tracking identity token
            size: optional (width, height) working resolution to resize to
            min_blob_size: blobs with fewer pixels are dropped

        Returns:
            HandFrame
        """
        if mask.ndim == 3:
            mask = cv2.cvtColor(mask, cv2.COLOR_BGR2GRAY)
        if size is not None and (mask.shape[1], mask.shape[0]) != tuple(size):
            mask = cv2.resize(mask, tuple(size), interpolation=cv2.INTER_NEAREST)

        binary = np.where(mask > 0, FOREGROUND, 0).astype(np.uint8)
        blobs = [b for b in BlobDetector().detect(binary, FOREGROUND) if b.count >= min_blob_size]
        return cls.from_blobs(blobs, binary.shape[:2], identity=identity)
