from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

import numpy as np


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array, grayscale once preprocessed
    frame_id: str = "camera"


@dataclass(frozen=True)
class CameraIntrinsics:
    """Pinhole intrinsics in pixels (zero skew)."""

    fx: float
    fy: float
    cx: float
    cy: float

    @property
    def K(self) -> np.ndarray:
        return np.array(
            [
                [self.fx, 0.0, self.cx],
                [0.0, self.fy, self.cy],
                [0.0, 0.0, 1.0],
            ],
            dtype=np.float64,
        )

    @classmethod
    def from_matrix(cls, K) -> "CameraIntrinsics":
        K = np.asarray(K, dtype=np.float64).reshape(3, 3)
        return cls(float(K[0, 0]), float(K[1, 1]), float(K[0, 2]), float(K[1, 2]))


@dataclass
class RawDetection:
    """One decoded marker.

    ``homography`` maps decoder-native tag coordinates (unit square, x right,
    y down, z into the tag) to image pixels.
    """

    tag_id: int
    corners: Any  # (4,2) ndarray
    center: Any  # (2,) ndarray
    homography: Any  # (3,3) ndarray


@dataclass(frozen=True)
class StandaloneTagDescription:
    tag_id: int
    size: float
    frame_name: str


@dataclass(frozen=True)
class BundleMember:
    tag_id: int
    size: float
    T_oi: np.ndarray  # (4,4) member tag frame -> bundle origin frame, read-only


@dataclass(frozen=True)
class TagBundleDescription:
    """Rigid set of tags sharing one origin; immutable once built."""

    name: str
    members: tuple[BundleMember, ...] = ()
    id2idx: Mapping[int, int] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        members = tuple(self.members)
        object.__setattr__(self, "members", members)
        object.__setattr__(self, "id2idx", MappingProxyType({m.tag_id: i for i, m in enumerate(members)}))

    def has_member(self, tag_id: int) -> bool:
        return tag_id in self.id2idx

    def member_size(self, tag_id: int) -> float:
        return self.members[self.id2idx[tag_id]].size

    def member_transform(self, tag_id: int) -> np.ndarray:
        return self.members[self.id2idx[tag_id]].T_oi

    @property
    def bundle_ids(self) -> list[int]:
        return [m.tag_id for m in self.members]

    @property
    def bundle_sizes(self) -> list[float]:
        return [m.size for m in self.members]


@dataclass
class Correspondences:
    """Parallel 3D object / 2D image point lists for one PnP solve."""

    object_points: list = field(default_factory=list)
    image_points: list = field(default_factory=list)

    def extend(self, object_points, image_points) -> None:
        self.object_points.extend(np.asarray(object_points, dtype=np.float64).reshape(-1, 3))
        self.image_points.extend(np.asarray(image_points, dtype=np.float64).reshape(-1, 2))

    def __len__(self) -> int:
        return len(self.object_points)


@dataclass
class TagPose:
    position: np.ndarray  # (3,) metres, camera frame
    orientation: np.ndarray  # (4,) unit quaternion x, y, z, w
    frame_id: str
    stamp: str


@dataclass
class DetectionResult:
    ids: list[int]
    sizes: list[float]
    pose: TagPose
    name: str


@dataclass
class StampedTransform:
    parent_frame: str
    child_frame: str
    stamp: str
    position: np.ndarray
    orientation: np.ndarray
