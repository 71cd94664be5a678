import numpy as np
import pytest

from tag_pipeline.correspondences import homography_from_corners, object_points
from tag_pipeline.tag_types import CameraIntrinsics, Frame, RawDetection
from tag_pipeline.transforms import make_transform

INTRINSICS = CameraIntrinsics(600.0, 600.0, 320.0, 240.0)


def facing_camera(x=0.0, y=0.0, z=0.5):
    """Tag upright and facing the camera: tag y up = -camera y, tag z = -camera z."""
    R = np.diag([1.0, -1.0, -1.0])
    return make_transform(R, (x, y, z))


def project(T_cam_obj, points, intrinsics=INTRINSICS):
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    cam = (T_cam_obj[:3, :3] @ pts.T).T + T_cam_obj[:3, 3]
    u = intrinsics.fx * cam[:, 0] / cam[:, 2] + intrinsics.cx
    v = intrinsics.fy * cam[:, 1] / cam[:, 2] + intrinsics.cy
    return np.stack([u, v], axis=1)


def synthetic_detection(tag_id, size, T_cam_obj, T_oi=None, intrinsics=INTRINSICS):
    """
    Build the RawDetection a decoder would report for a tag of ``size`` placed
    at ``T_cam_obj @ T_oi``.
    """
    pix = project(T_cam_obj, object_points(size, T_oi), intrinsics)
    # object_points run lower-left, lower-right, upper-right, upper-left;
    # the decoder reports top-left, top-right, bottom-right, bottom-left.
    corners = pix[[3, 2, 1, 0]]
    return RawDetection(tag_id, corners, corners.mean(axis=0), homography_from_corners(corners))


class FakeDecoder:
    """Stands in for the marker decoder; returns queued detection lists."""

    def __init__(self, batches):
        self.batches = list(batches)
        self.images = []
        self.closed = False

    def detect(self, image):
        self.images.append(image)
        if self.batches:
            return list(self.batches.pop(0))
        return []

    def close(self):
        self.closed = True


class RecordingBroadcaster:
    def __init__(self):
        self.transforms = []
        self.closed = False

    def send_transform(self, transform):
        self.transforms.append(transform)

    def close(self):
        self.closed = True


@pytest.fixture
def intrinsics():
    return INTRINSICS


@pytest.fixture
def gray_frame():
    return Frame(1, "2026-01-01T00:00:00", np.zeros((480, 640), dtype=np.uint8), "camera")
