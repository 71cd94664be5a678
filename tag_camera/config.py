from __future__ import annotations

import json
from dataclasses import dataclass, asdict, field
from pathlib import Path
from typing import Any, Optional

from tag_pipeline.strategies.detect_apriltag import DetectorConfig, TagFamily


@dataclass
class TagNodeConfig:
    camera_name: str = "cam"
    camera_frame: str = "camera"
    device: int | str = 0
    fps: int = 15
    width: int = 1280
    height: int = 720
    calibration_path: Optional[str] = None
    intrinsics: Optional[list[float]] = None  # [fx, fy, cx, cy] when no calibration file
    undistort: bool = True
    session_root: str = "data/sessions"
    duration_sec: float = 30.0
    max_frames: Optional[int] = None
    dry_run: bool = False
    save_frames: bool = False
    publish_tf: bool = False
    log_level: str = "INFO"
    detector: DetectorConfig = field(default_factory=DetectorConfig)
    max_reprojection_error_px: Optional[float] = 10.0
    unknown_tag_warn_interval_s: float = 10.0
    standalone_tags: Optional[list[dict[str, Any]]] = None
    tag_bundles: Optional[list[dict[str, Any]]] = None

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def apply_overrides(self, **kwargs: Any) -> "TagNodeConfig":
        for key, value in kwargs.items():
            if value is not None and hasattr(self, key):
                setattr(self, key, value)
        return self


def _normalize_intrinsics(value: Any) -> Optional[list[float]]:
    if value is None:
        return None
    if isinstance(value, dict):
        value = [value.get("fx"), value.get("fy"), value.get("cx"), value.get("cy")]
    if not isinstance(value, (list, tuple)) or len(value) != 4 or any(v is None for v in value):
        raise ValueError("intrinsics must be [fx, fy, cx, cy] or a mapping with those keys")
    return [float(v) for v in value]


def _load_yaml(path: Path) -> dict[str, Any]:
    import yaml

    with path.open("r", encoding="utf-8") as fp:
        data = yaml.safe_load(fp) or {}
    if not isinstance(data, dict):
        raise ValueError("YAML config root must be a mapping")
    return data


def load_config(path: str | Path) -> TagNodeConfig:
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Config not found: {p}")

    if p.suffix.lower() in {".yaml", ".yml"}:
        raw = _load_yaml(p)
    else:
        with p.open("r", encoding="utf-8") as fp:
            raw = json.load(fp)

    if not isinstance(raw, dict):
        raise ValueError("Config root must be a JSON/YAML object")

    cfg = TagNodeConfig()
    cfg.camera_name = str(raw.get("camera_name", cfg.camera_name))
    cfg.camera_frame = str(raw.get("camera_frame", cfg.camera_frame))
    cfg.device = raw.get("device", cfg.device)
    cfg.fps = int(raw.get("fps", cfg.fps))
    cfg.width = int(raw.get("width", cfg.width))
    cfg.height = int(raw.get("height", cfg.height))
    cfg.calibration_path = raw.get("calibration_path", cfg.calibration_path)
    if cfg.calibration_path is not None:
        cfg.calibration_path = str(cfg.calibration_path)
    cfg.intrinsics = _normalize_intrinsics(raw.get("intrinsics", cfg.intrinsics))
    cfg.undistort = bool(raw.get("undistort", cfg.undistort))
    cfg.session_root = str(raw.get("session_root", cfg.session_root))
    cfg.duration_sec = float(raw.get("duration_sec", cfg.duration_sec))
    cfg.max_frames = raw.get("max_frames", cfg.max_frames)
    if cfg.max_frames is not None:
        cfg.max_frames = int(cfg.max_frames)
    cfg.dry_run = bool(raw.get("dry_run", cfg.dry_run))
    cfg.save_frames = bool(raw.get("save_frames", cfg.save_frames))
    cfg.publish_tf = bool(raw.get("publish_tf", cfg.publish_tf))
    cfg.log_level = str(raw.get("log_level", cfg.log_level)).upper()
    max_err = raw.get("max_reprojection_error_px", cfg.max_reprojection_error_px)
    cfg.max_reprojection_error_px = None if max_err is None else float(max_err)
    cfg.unknown_tag_warn_interval_s = float(
        raw.get("unknown_tag_warn_interval_s", cfg.unknown_tag_warn_interval_s)
    )

    # Tag geometry is validated by the registry when the worker starts.
    cfg.standalone_tags = raw.get("standalone_tags", cfg.standalone_tags)
    cfg.tag_bundles = raw.get("tag_bundles", cfg.tag_bundles)

    det_raw = raw.get("detector")
    if det_raw is not None:
        if not isinstance(det_raw, dict):
            raise ValueError("detector must be a mapping")
        det_cfg = DetectorConfig()
        det_cfg.family = str(det_raw.get("family", det_cfg.family))
        det_cfg.decimate = float(det_raw.get("decimate", det_cfg.decimate))
        det_cfg.blur = float(det_raw.get("blur", det_cfg.blur))
        det_cfg.refine_edges = bool(det_raw.get("refine_edges", det_cfg.refine_edges))
        cfg.detector = det_cfg

    # Reject unknown families here rather than when the first frame arrives.
    TagFamily.parse(cfg.detector.family)

    return cfg
