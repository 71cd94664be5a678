import cv2, numpy as np
from typing import Tuple

from ..tag_types import CameraIntrinsics

def load_calib(path: str) -> Tuple[np.ndarray, np.ndarray, tuple[int,int]]:
    fs = cv2.FileStorage(path, cv2.FILE_STORAGE_READ)
    if not fs.isOpened():
        raise FileNotFoundError(f"Calibration not found: {path}")
    try:
        K = fs.getNode("camera_matrix").mat()
        dist = fs.getNode("dist_coeffs").mat()
        w = int(fs.getNode("image_width").real()); h = int(fs.getNode("image_height").real())
    finally:
        fs.release()
    if K is None or K.shape != (3, 3):
        raise ValueError(f"{path}: camera_matrix must be a 3x3 matrix")
    return K, dist, (w, h)

def load_intrinsics(path: str) -> CameraIntrinsics:
    K, _dist, _size = load_calib(path)
    return CameraIntrinsics.from_matrix(K)
