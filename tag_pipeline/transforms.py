"""SE(3) transformation utilities for tag and bundle poses."""

import numpy as np
import cv2
from scipy.spatial.transform import Rotation
from typing import Tuple


def make_transform(R: np.ndarray, t: np.ndarray) -> np.ndarray:
    """
    Build a 4x4 homogeneous transformation matrix.

    Args:
        R: Rotation matrix (3,3)
        t: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    T = np.eye(4)
    T[:3, :3] = np.asarray(R, dtype=np.float64).reshape(3, 3)
    T[:3, 3] = np.asarray(t, dtype=np.float64).reshape(3)
    return T


def rvec_tvec_to_matrix(rvec: np.ndarray, tvec: np.ndarray) -> np.ndarray:
    """
    Convert rotation vector and translation vector to 4x4 transformation matrix.

    Args:
        rvec: Rotation vector (3,) or (3,1)
        tvec: Translation vector (3,) or (3,1)

    Returns:
        4x4 homogeneous transformation matrix
    """
    rvec = np.array(rvec, dtype=np.float64).reshape(3)
    R, _ = cv2.Rodrigues(rvec)
    return make_transform(R, tvec)


def matrix_to_rvec_tvec(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Convert 4x4 transformation matrix to rotation vector and translation vector.

    Returns:
        (rvec, tvec) where rvec is (3,1) and tvec is (3,1)
    """
    R = np.asarray(T[:3, :3], dtype=np.float64)
    tvec = T[:3, 3].reshape(3, 1)

    rvec, _ = cv2.Rodrigues(R)

    return rvec, tvec


def quaternion_to_matrix(qw: float, qx: float, qy: float, qz: float) -> np.ndarray:
    """
    Rotation matrix of a quaternion given scalar-first.

    The quaternion is normalized first, whatever its magnitude.

    Raises:
        ValueError: if the quaternion has zero (or non-finite) norm
    """
    q = np.array([qx, qy, qz, qw], dtype=np.float64)
    norm = np.linalg.norm(q)
    if not np.isfinite(norm) or norm == 0.0:
        raise ValueError(f"cannot normalize quaternion w={qw} x={qx} y={qy} z={qz}")
    return Rotation.from_quat(q / norm).as_matrix()


def matrix_to_quaternion(R: np.ndarray) -> np.ndarray:
    """
    Unit quaternion (x, y, z, w) of a rotation matrix.

    The sign is fixed so that w >= 0, q and -q being the same rotation.
    """
    q = Rotation.from_matrix(np.asarray(R, dtype=np.float64).reshape(3, 3)).as_quat()
    if q[3] < 0:
        q = -q
    return q / np.linalg.norm(q)


def pose_from_matrix(T: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Split a 4x4 transform into (position (3,), quaternion x,y,z,w (4,))."""
    T = np.asarray(T, dtype=np.float64)
    return T[:3, 3].copy(), matrix_to_quaternion(T[:3, :3])

