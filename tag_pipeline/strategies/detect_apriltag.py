from __future__ import annotations

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any

import cv2
import numpy as np

from ..correspondences import homography_from_corners
from ..errors import ConfigurationError, DecoderError
from ..tag_types import RawDetection


class TagFamily(str, Enum):
    TAG16H5 = "tag16h5"
    TAG25H9 = "tag25h9"
    TAG36H10 = "tag36h10"
    TAG36H11 = "tag36h11"

    @classmethod
    def parse(cls, name: str) -> "TagFamily":
        key = (name or "").strip().lower()
        for family in cls:
            if family.value == key:
                return family
        choices = ", ".join(f.value for f in cls)
        raise ConfigurationError("detector", f"unknown tag family '{name}' (expected one of: {choices})")


# Resolved once per detector; every family maps to its OpenCV dictionary.
_FAMILY_TABLE = {
    TagFamily.TAG16H5: cv2.aruco.DICT_APRILTAG_16h5,
    TagFamily.TAG25H9: cv2.aruco.DICT_APRILTAG_25h9,
    TagFamily.TAG36H10: cv2.aruco.DICT_APRILTAG_36h10,
    TagFamily.TAG36H11: cv2.aruco.DICT_APRILTAG_36h11,
}


@dataclass
class DetectorConfig:
    family: str = "tag36h11"
    decimate: float = 1.0
    blur: float = 0.0
    refine_edges: bool = True

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _make_params(config: DetectorConfig):
    params = cv2.aruco.DetectorParameters()
    params.aprilTagQuadDecimate = float(config.decimate)
    params.aprilTagQuadSigma = float(config.blur)
    params.cornerRefinementMethod = (
        cv2.aruco.CORNER_REFINE_APRILTAG if config.refine_edges else cv2.aruco.CORNER_REFINE_NONE
    )
    return params


class ApriltagDetect:
    """
    Strategy: decode AprilTag markers in a grayscale image.

    Owns the OpenCV detector handle; use as a context manager (or call
    ``close()``) so the handle is released on every exit path. Each call to
    ``detect`` returns a new list, so results stay valid after later calls.
    Not reentrant: run one instance per camera stream.
    """

    def __init__(self, config: DetectorConfig | None = None):
        self.config = config or DetectorConfig()
        self.family = TagFamily.parse(self.config.family)
        dictionary = cv2.aruco.getPredefinedDictionary(_FAMILY_TABLE[self.family])
        self._detector = cv2.aruco.ArucoDetector(dictionary, _make_params(self.config))

    @property
    def closed(self) -> bool:
        return self._detector is None

    def close(self) -> None:
        self._detector = None

    def __enter__(self) -> "ApriltagDetect":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def detect(self, image) -> list[RawDetection]:
        if self._detector is None:
            raise DecoderError("detector used after close()")
        image = np.asarray(image)
        if image.ndim != 2 or image.dtype != np.uint8:
            raise DecoderError(f"expected a 2D uint8 grayscale image, got shape {image.shape} dtype {image.dtype}")

        try:
            corners, ids, _rej = self._detector.detectMarkers(image)
        except cv2.error as exc:
            raise DecoderError(f"marker decoding failed: {exc}") from exc

        dets: list[RawDetection] = []
        if ids is not None and len(ids) > 0:
            for i, mid in enumerate(ids.flatten()):
                quad = np.asarray(corners[i], dtype=np.float64).reshape(4, 2)
                dets.append(
                    RawDetection(
                        int(mid),
                        quad,
                        quad.mean(axis=0),
                        homography_from_corners(quad),
                    )
                )
        return dets
