"""
Hand-Shape Analysis Package

Single-frame hand-shape analysis from binary silhouettes: palm, orientation,
fingertips, unwrapped contour and pose-labeled landmarks.
"""

__version__ = "1.0.0"

from . import raster
from . import hand
from . import contour
from . import pose
from . import utils
