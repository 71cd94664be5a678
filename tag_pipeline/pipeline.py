from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from enum import Enum
from typing import Callable, Optional

import cv2

from .correspondences import image_points, object_points
from .duplicates import remove_duplicates
from .errors import PoseSolveError
from .registry import TagDescriptionRegistry
from .services.throttle import WarningThrottle
from .strategies.localize_pnp import PnPLocalize
from .tag_types import (
    CameraIntrinsics,
    Correspondences,
    DetectionResult,
    Frame,
    StampedTransform,
)


class FrameStage(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    RESOLVING = "resolving"
    CORRELATING = "correlating"
    ESTIMATING = "estimating"
    DONE = "done"


class TagDetectionPipeline:
    """
    Per-frame tag detection: decode, prune duplicate ids, pair corners with
    configured geometry and solve one pose per standalone tag and one per
    bundle with at least one member in view.

    At most one ``process()`` call may be in flight per instance, because the
    decoder is not reentrant. Use one pipeline per camera stream; the
    registry can be shared.
    """

    def __init__(
        self,
        decoder,
        registry: TagDescriptionRegistry,
        localizer: PnPLocalize,
        logger: Optional[logging.Logger] = None,
        broadcaster=None,
        camera_frame: Optional[str] = None,
        unknown_tag_warn_interval_s: float = 10.0,
        timing_sink: Optional[Callable[[str], None]] = None,
    ):
        self.decoder = decoder
        self.registry = registry
        self.localizer = localizer
        self.log = logger or logging.getLogger("tag_pipeline")
        self.broadcaster = broadcaster
        self.camera_frame = camera_frame
        self.timing_sink = timing_sink
        self._unknown_throttle = WarningThrottle(unknown_tag_warn_interval_s)
        self._busy = threading.Lock()
        self.stage = FrameStage.IDLE
        self.last_timings: dict[str, float] = {}

    def close(self) -> None:
        close = getattr(self.decoder, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "TagDetectionPipeline":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def process(self, frame: Frame, intrinsics: Optional[CameraIntrinsics] = None) -> list[DetectionResult]:
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("process() is already running on this pipeline instance")
        try:
            return self._process(frame, intrinsics)
        finally:
            self.stage = FrameStage.IDLE
            self._busy.release()

    def _enter(self, stage: FrameStage, timings: dict[str, float], t_prev: float) -> float:
        now = time.perf_counter()
        if self.stage is not FrameStage.IDLE:
            timings[self.stage.value] = now - t_prev
        self.stage = stage
        return now

    def _process(self, frame: Frame, intrinsics: Optional[CameraIntrinsics]) -> list[DetectionResult]:
        timings: dict[str, float] = {}
        t = self._enter(FrameStage.DETECTING, timings, time.perf_counter())

        image = frame.image
        if image.ndim == 3:
            image = cv2.cvtColor(image, cv2.COLOR_BGR2GRAY)
        raw = self.decoder.detect(image)

        t = self._enter(FrameStage.RESOLVING, timings, t)
        detections = remove_duplicates(raw, self.log)

        t = self._enter(FrameStage.CORRELATING, timings, t)
        results: list[DetectionResult] = []
        bundle_points: dict[str, Correspondences] = OrderedDict()
        for det in detections:
            memberships = self.registry.bundles_containing(det.tag_id)
            for bundle, size, T_oi in memberships:
                acc = bundle_points.setdefault(bundle.name, Correspondences())
                acc.extend(object_points(size, T_oi), image_points(det))

            desc = self.registry.lookup_standalone(det.tag_id)
            if desc is None:
                if not memberships and self._unknown_throttle.ready("unknown_tag"):
                    self.log.warning(
                        "Requested description of standalone tag ID [%d], but no description was found...",
                        det.tag_id,
                    )
                continue

            corr = Correspondences()
            corr.extend(object_points(desc.size), image_points(det))
            try:
                pose = self.localizer.estimate(corr, frame, intrinsics)
            except PoseSolveError as exc:
                self.log.warning("Skipping tag %d (%s): %s", desc.tag_id, desc.frame_name, exc)
                continue
            results.append(DetectionResult([desc.tag_id], [desc.size], pose, desc.frame_name))

        t = self._enter(FrameStage.ESTIMATING, timings, t)
        for bundle in self.registry.bundles:
            corr = bundle_points.get(bundle.name)
            if corr is None:
                continue
            try:
                pose = self.localizer.estimate(corr, frame, intrinsics)
            except PoseSolveError as exc:
                self.log.warning("Skipping bundle '%s': %s", bundle.name, exc)
                continue
            results.append(DetectionResult(bundle.bundle_ids, bundle.bundle_sizes, pose, bundle.name))

        self._enter(FrameStage.DONE, timings, t)
        self.last_timings = timings
        if self.timing_sink is not None:
            self.timing_sink(self.format_timings(frame, timings))

        if self.broadcaster is not None:
            parent = self.camera_frame or frame.frame_id
            for res in results:
                self.broadcaster.send_transform(
                    StampedTransform(parent, res.name, res.pose.stamp, res.pose.position, res.pose.orientation)
                )
        return results

    @staticmethod
    def format_timings(frame: Frame, timings: dict[str, float]) -> str:
        parts = " ".join(f"{stage}={secs * 1e3:.3f}ms" for stage, secs in timings.items())
        return f"frame={frame.idx} {parts} total={sum(timings.values()) * 1e3:.3f}ms"
