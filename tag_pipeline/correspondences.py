"""2D/3D tag corner correspondences.

Target tag frame: x right, y up, z out of the tag (towards the viewer).
The decoder's native tag frame has y down and z into the tag, so image
points are sampled with y negated; both point lists then run
counter-clockwise from the lower-left corner and line up index for index.
"""

from typing import Optional, Tuple

import cv2
import numpy as np

from .tag_types import RawDetection

# Decoder-native unit-square coordinates of the corners, in target order
# (lower-left, lower-right, upper-right, upper-left).
_TAG_X = (-1.0, 1.0, 1.0, -1.0)
_TAG_Y = (1.0, 1.0, -1.0, -1.0)

# Decoder-native coordinates of corners reported TL, TR, BR, BL.
_NATIVE_CORNERS = np.array([[-1, -1], [1, -1], [1, 1], [-1, 1]], dtype=np.float32)


def object_points(size: float, T_oi: Optional[np.ndarray] = None) -> np.ndarray:
    """(4,3) corners of a ``size`` x ``size`` tag, expressed through ``T_oi``."""
    s = float(size) / 2.0
    local = np.array(
        [
            [-s, -s, 0.0, 1.0],
            [s, -s, 0.0, 1.0],
            [s, s, 0.0, 1.0],
            [-s, s, 0.0, 1.0],
        ],
        dtype=np.float64,
    )
    if T_oi is None:
        return local[:, :3].copy()
    T = np.asarray(T_oi, dtype=np.float64).reshape(4, 4)
    return (T[:3, :4] @ local.T).T


def homography_project(H: np.ndarray, x: float, y: float) -> Tuple[float, float]:
    H = np.asarray(H, dtype=np.float64).reshape(3, 3)
    xx = H[0, 0] * x + H[0, 1] * y + H[0, 2]
    yy = H[1, 0] * x + H[1, 1] * y + H[1, 2]
    zz = H[2, 0] * x + H[2, 1] * y + H[2, 2]
    return float(xx / zz), float(yy / zz)


def image_points(detection: RawDetection) -> np.ndarray:
    """(4,2) pixel corners of ``detection``, aligned with :func:`object_points`."""
    return np.array(
        [homography_project(detection.homography, x, y) for x, y in zip(_TAG_X, _TAG_Y)],
        dtype=np.float64,
    )


def homography_from_corners(corners: np.ndarray) -> np.ndarray:
    """
    Homography from decoder-native tag coordinates to pixels.

    Args:
        corners: (4,2) pixel corners ordered top-left, top-right,
            bottom-right, bottom-left as seen on an upright tag.
    """
    dst = np.asarray(corners, dtype=np.float32).reshape(4, 2)
    H = cv2.getPerspectiveTransform(_NATIVE_CORNERS, dst)
    return np.asarray(H, dtype=np.float64)
