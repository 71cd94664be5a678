from __future__ import annotations

import time
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from tag_pipeline.pipeline import TagDetectionPipeline
from tag_pipeline.registry import TagDescriptionRegistry
from tag_pipeline.services.calib import load_intrinsics
from tag_pipeline.services.storage import SessionStorage
from tag_pipeline.strategies.detect_apriltag import ApriltagDetect
from tag_pipeline.strategies.localize_pnp import PnPLocalize
from tag_pipeline.strategies.preprocess import GrayscaleFrame
from tag_pipeline.strategies.undistort_simple import SimpleUndistort
from tag_pipeline.tag_types import CameraIntrinsics

from .broadcast import TransformBroadcaster
from .capture import BaseCapture, SyntheticCapture, USBOpenCVCapture
from .config import TagNodeConfig
from .logging_utils import add_file_handler, setup_logger
from .output import CsvOutput, OutputSink


@dataclass
class SessionSummary:
    session_path: str
    frames_processed: int
    results_emitted: int
    csv_path: str
    log_path: str
    avg_fps: float
    errors: int


class NoUndistort:
    def __init__(self, intrinsics: CameraIntrinsics):
        self.intrinsics = intrinsics

    def apply(self, f):
        return f


class TagWorker:
    def __init__(
        self,
        config: TagNodeConfig,
        logger=None,
        outputs: Optional[list[OutputSink]] = None,
        capture: Optional[BaseCapture] = None,
        decoder=None,
        broadcaster: Optional[TransformBroadcaster] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name, config.log_level)
        self.outputs = outputs if outputs is not None else [CsvOutput()]
        self.capture = capture
        self.decoder = decoder
        self.broadcaster = broadcaster
        self._stop_event = threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def _build_capture(self) -> BaseCapture:
        if self.capture is not None:
            return self.capture
        if self.config.dry_run:
            return SyntheticCapture(
                self.config.fps, self.config.width, self.config.height, self.config.camera_frame
            )
        return USBOpenCVCapture(
            self.config.device,
            self.config.fps,
            self.config.width,
            self.config.height,
            self.config.camera_frame,
        )

    def _build_rectifier(self):
        cfg = self.config
        if cfg.calibration_path:
            if cfg.undistort and not cfg.dry_run:
                return SimpleUndistort(cfg.calibration_path)
            return NoUndistort(load_intrinsics(cfg.calibration_path))
        if cfg.intrinsics is not None:
            return NoUndistort(CameraIntrinsics(*cfg.intrinsics))
        if cfg.dry_run:
            # Pinhole guess for blank frames; nothing gets detected anyway.
            return NoUndistort(CameraIntrinsics(cfg.width, cfg.width, cfg.width / 2.0, cfg.height / 2.0))
        raise ValueError("either calibration_path or intrinsics must be configured")

    def build_pipeline(self, intrinsics: CameraIntrinsics) -> TagDetectionPipeline:
        cfg = self.config
        registry = TagDescriptionRegistry.from_config(
            cfg.standalone_tags, cfg.tag_bundles, self.logger.getChild("registry")
        )
        decoder = self.decoder if self.decoder is not None else ApriltagDetect(cfg.detector)
        pipeline_log = self.logger.getChild("pipeline")
        return TagDetectionPipeline(
            decoder,
            registry,
            PnPLocalize(intrinsics, cfg.max_reprojection_error_px),
            logger=pipeline_log,
            broadcaster=self.broadcaster if cfg.publish_tf else None,
            camera_frame=cfg.camera_frame,
            unknown_tag_warn_interval_s=cfg.unknown_tag_warn_interval_s,
            timing_sink=pipeline_log.debug,
        )

    def run(self) -> SessionSummary:
        rect = self._build_rectifier()
        pre = GrayscaleFrame()
        cap = self._build_capture()

        storage = SessionStorage(self.config.session_root, name=f"{self.config.camera_name}_session")
        session_path = storage.begin()
        storage.write_manifest(self.config.as_dict())

        log_file = str(Path(storage.logs_dir) / "session.log")
        file_handler = add_file_handler(self.logger, self.config.camera_name, log_file)

        self.logger.info("session started: %s", session_path)
        self.logger.info("config: %s", self.config.as_dict())

        frames = 0
        errors = 0
        emitted = 0
        t0 = time.time()

        with self.build_pipeline(rect.intrinsics) as pipeline:
            for out in self.outputs:
                out.open(Path(storage.session_dir))
            cap.start()
            try:
                while True:
                    if self._stop_event.is_set():
                        break
                    if self.config.duration_sec and (time.time() - t0) >= self.config.duration_sec:
                        break
                    if self.config.max_frames and frames >= self.config.max_frames:
                        break

                    f = cap.next_frame()
                    if f is None:
                        errors += 1
                        continue

                    f = pre.apply(f)
                    f = rect.apply(f)

                    results = pipeline.process(f)
                    ts_unix = time.time()

                    if self.config.save_frames:
                        storage.save_frame(f)

                    for out in self.outputs:
                        out.write_results(ts_unix, f.idx, results)

                    self.logger.info(
                        "frame=%d results=%d names=%s",
                        f.idx,
                        len(results),
                        [r.name for r in results],
                    )
                    emitted += len(results)
                    frames += 1

            finally:
                try:
                    cap.stop()
                except Exception as e:
                    self.logger.warning("capture stop failed: %s", e)

                for out in self.outputs:
                    try:
                        out.close()
                    except Exception as e:
                        self.logger.warning("output close failed: %s", e)

                if self.broadcaster is not None:
                    self.broadcaster.close()

        avg = frames / max(1e-6, (time.time() - t0))
        self.logger.info("summary frames=%d results=%d avg_fps=%.2f errors=%d", frames, emitted, avg, errors)
        self.logger.removeHandler(file_handler)
        file_handler.close()

        csv_path = str(Path(storage.session_dir) / "detections.csv")
        return SessionSummary(
            str(session_path),
            frames,
            emitted,
            csv_path,
            log_file,
            avg,
            errors,
        )
