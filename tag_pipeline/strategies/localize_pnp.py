from typing import Optional

import cv2, numpy as np

from ..errors import PoseSolveError
from ..tag_types import CameraIntrinsics, Correspondences, Frame, TagPose
from ..transforms import matrix_to_rvec_tvec, pose_from_matrix, rvec_tvec_to_matrix

# Relative singular-value floor below which a point set is treated as
# collinear (or coincident).
_DEGENERACY_TOL = 1e-6


def _is_degenerate(points: np.ndarray) -> bool:
    centered = points - points.mean(axis=0)
    sv = np.linalg.svd(centered, compute_uv=False)
    if sv[0] <= 0.0 or not np.isfinite(sv[0]):
        return True
    return sv[1] <= _DEGENERACY_TOL * sv[0]


def reprojection_rmse(object_points, image_points, T: np.ndarray, intrinsics: CameraIntrinsics) -> float:
    """Root-mean-square pixel distance between projected and observed points."""
    obj = np.asarray(object_points, dtype=np.float64).reshape(-1, 3)
    img = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    rvec, tvec = matrix_to_rvec_tvec(T)
    proj, _ = cv2.projectPoints(obj, rvec, tvec, intrinsics.K, np.zeros(4))
    err = proj.reshape(-1, 2) - img
    return float(np.sqrt(np.mean(np.sum(err * err, axis=1))))


def solve_relative_transform(
    object_points,
    image_points,
    intrinsics: CameraIntrinsics,
    max_reprojection_error_px: Optional[float] = None,
) -> np.ndarray:
    """
    Perspective-n-Point solve for the tag (or bundle) -> camera transform.

    Returns the 4x4 matrix taking a point in the tag frame to the same point
    in the camera frame (x right, y down, z forward). Zero lens distortion
    is assumed; rectify images upstream.

    Raises:
        PoseSolveError: too few or degenerate correspondences, solver
            failure, a result with points behind the camera, or a
            reprojection error above ``max_reprojection_error_px``.
    """
    obj = np.asarray(object_points, dtype=np.float64).reshape(-1, 3)
    img = np.asarray(image_points, dtype=np.float64).reshape(-1, 2)
    if len(obj) != len(img):
        raise PoseSolveError(f"{len(obj)} object points but {len(img)} image points")
    if len(obj) < 4:
        raise PoseSolveError(f"need at least 4 correspondences, got {len(obj)}")
    if not (np.all(np.isfinite(obj)) and np.all(np.isfinite(img))):
        raise PoseSolveError("non-finite correspondence coordinates")
    if _is_degenerate(obj):
        raise PoseSolveError("object points are collinear or coincident")
    if _is_degenerate(img):
        raise PoseSolveError("image points are collinear or coincident")

    try:
        ok, rvec, tvec = cv2.solvePnP(
            obj, img, intrinsics.K, np.zeros(4), flags=cv2.SOLVEPNP_ITERATIVE
        )
    except cv2.error as exc:
        raise PoseSolveError(f"solvePnP raised: {exc}") from exc
    if not ok:
        raise PoseSolveError("solvePnP did not converge")
    if not (np.all(np.isfinite(rvec)) and np.all(np.isfinite(tvec))):
        raise PoseSolveError("solvePnP returned a non-finite pose")

    T = rvec_tvec_to_matrix(rvec, tvec)

    in_camera = (T[:3, :3] @ obj.T).T + T[:3, 3]
    if np.any(in_camera[:, 2] <= 0.0):
        raise PoseSolveError("solved pose puts tag corners behind the camera")

    if max_reprojection_error_px is not None:
        rmse = reprojection_rmse(obj, img, T, intrinsics)
        if rmse > max_reprojection_error_px:
            raise PoseSolveError(
                f"reprojection error {rmse:.2f}px exceeds {max_reprojection_error_px:.2f}px"
            )
    return T


class PnPLocalize:
    def __init__(self, intrinsics: CameraIntrinsics, max_reprojection_error_px: Optional[float] = None):
        self.intrinsics = intrinsics
        self.max_reprojection_error_px = max_reprojection_error_px

    def estimate(
        self,
        correspondences: Correspondences,
        frame: Frame,
        intrinsics: Optional[CameraIntrinsics] = None,
    ) -> TagPose:
        T = solve_relative_transform(
            correspondences.object_points,
            correspondences.image_points,
            intrinsics or self.intrinsics,
            self.max_reprojection_error_px,
        )
        position, orientation = pose_from_matrix(T)
        return TagPose(position, orientation, frame.frame_id, frame.ts_iso)
