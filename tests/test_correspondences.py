import numpy as np

from tag_pipeline.correspondences import (
    homography_from_corners,
    homography_project,
    image_points,
    object_points,
)
from tag_pipeline.tag_types import RawDetection
from tag_pipeline.transforms import make_transform, quaternion_to_matrix


def test_object_points_winding_identity_offset():
    s = 0.2
    pts = object_points(s)
    expected = [
        (-s / 2, -s / 2, 0.0),
        (s / 2, -s / 2, 0.0),
        (s / 2, s / 2, 0.0),
        (-s / 2, s / 2, 0.0),
    ]
    assert pts.shape == (4, 3)
    assert np.allclose(pts, expected)
    assert np.allclose(object_points(s, np.eye(4)), expected)


def test_object_points_through_member_offset():
    half = np.sqrt(0.5)
    T_oi = make_transform(quaternion_to_matrix(half, 0.0, 0.0, half), (0.5, 0.0, 0.1))
    pts = object_points(0.1, T_oi)
    # (-0.05, -0.05) rotated +90 deg about z is (0.05, -0.05), then shifted
    assert np.allclose(pts[0], [0.55, -0.05, 0.1])
    assert np.allclose(pts[2], [0.45, 0.05, 0.1])


def test_homography_project_applies_perspective_divide():
    H = np.array([[2.0, 0.0, 1.0], [0.0, 3.0, 2.0], [0.0, 0.0, 2.0]])
    assert homography_project(H, 1.0, 1.0) == (1.5, 2.5)


def test_image_points_flip_decoder_y_axis():
    # Axis-aligned tag: decoder x right / y down, 50px half-width, centred at (320, 240)
    H = np.array([[50.0, 0.0, 320.0], [0.0, 50.0, 240.0], [0.0, 0.0, 1.0]])
    det = RawDetection(1, None, np.array([320.0, 240.0]), H)
    pts = image_points(det)
    # lower-left, lower-right, upper-right, upper-left in the image
    assert np.allclose(pts, [[270, 290], [370, 290], [370, 190], [270, 190]])


def test_homography_from_corners_maps_native_square_to_corners():
    corners = np.array([[100.0, 50.0], [220.0, 60.0], [210.0, 170.0], [95.0, 160.0]])
    H = homography_from_corners(corners)
    native = [(-1, -1), (1, -1), (1, 1), (-1, 1)]
    for (x, y), c in zip(native, corners):
        assert np.allclose(homography_project(H, x, y), c, atol=1e-3)


def test_image_points_line_up_with_object_points():
    corners = np.array([[100.0, 100.0], [200.0, 100.0], [200.0, 200.0], [100.0, 200.0]])
    det = RawDetection(1, corners, corners.mean(axis=0), homography_from_corners(corners))
    pts = image_points(det)
    # index 0 (object lower-left) is the bottom-left image corner
    assert np.allclose(pts, corners[[3, 2, 1, 0]], atol=1e-3)
