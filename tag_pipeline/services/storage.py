"""On-disk layout of one node session.

    <root>/<name>_<YYYYmmdd_HHMMSS>/
        config.json     node configuration the session ran with
        frames/         rectified grayscale frames, f<idx>.png
        logs/           session.log
"""

import json
import time
from pathlib import Path
from typing import Any, Optional

import cv2

from ..tag_types import Frame


class SessionStorage:
    def __init__(self, root: str, name: str = "session"):
        self.root = Path(root)
        self.name = name
        self.session_dir: Optional[Path] = None
        self.frames_dir: Optional[Path] = None
        self.logs_dir: Optional[Path] = None
        self.last_path: Optional[str] = None

    def begin(self) -> str:
        stamp = time.strftime("%Y%m%d_%H%M%S")
        self.session_dir = self.root / f"{self.name}_{stamp}"
        self.frames_dir = self.session_dir / "frames"
        self.logs_dir = self.session_dir / "logs"
        for d in (self.frames_dir, self.logs_dir):
            d.mkdir(parents=True, exist_ok=True)
        return str(self.session_dir)

    def _session(self) -> Path:
        if self.session_dir is None:
            raise RuntimeError("SessionStorage.begin() has not been called")
        return self.session_dir

    def save_frame(self, f: Frame) -> str:
        """Write the frame the poses were solved from, lossless."""
        self._session()
        p = self.frames_dir / f"f{f.idx:06d}.png"
        if not cv2.imwrite(str(p), f.image):
            raise OSError(f"could not write frame {f.idx} to {p}")
        self.last_path = str(p)
        return self.last_path

    def write_manifest(self, meta: dict[str, Any]) -> Path:
        p = self._session() / "config.json"
        with p.open("w", encoding="utf-8") as fp:
            # default=str keeps paths and numpy scalars from breaking the dump
            json.dump(meta, fp, indent=2, default=str)
        return p
