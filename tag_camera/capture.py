import time
import re
from abc import ABC, abstractmethod
from typing import Any

import cv2
import numpy as np

from tag_pipeline.tag_types import Frame


def _timestamp() -> str:
    now = time.time()
    return time.strftime("%Y-%m-%dT%H:%M:%S", time.localtime(now)) + f".{int((now % 1) * 1e6):06d}"


class BaseCapture(ABC):
    def __init__(self, frame_id: str = "camera"):
        self.frame_id = frame_id

    @abstractmethod
    def start(self) -> None: ...

    @abstractmethod
    def next_frame(self) -> Frame | None: ...

    @abstractmethod
    def stop(self) -> None: ...


class USBOpenCVCapture(BaseCapture):
    def __init__(self, device: int | str, fps: int, width: int, height: int, frame_id: str = "camera"):
        super().__init__(frame_id)
        self.device = device
        self.fps = fps
        self.width = width
        self.height = height
        self.cap: Any = None
        self.idx = 0

    def start(self) -> None:
        if isinstance(self.device, int):
            self.cap = cv2.VideoCapture(self.device, cv2.CAP_V4L2)
        else:
            dev_str = str(self.device)
            match = re.match(r"^/dev/video(\d+)$", dev_str)
            if match:
                self.cap = cv2.VideoCapture(int(match.group(1)), cv2.CAP_V4L2)
            else:
                self.cap = cv2.VideoCapture(dev_str)

        self.cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        self.cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        self.cap.set(cv2.CAP_PROP_FPS, self.fps)

        if not self.cap.isOpened():
            raise RuntimeError(f"Failed to open camera: {self.device}")

    def next_frame(self) -> Frame | None:
        ok, img = self.cap.read()
        if not ok:
            return None
        self.idx += 1
        return Frame(self.idx, _timestamp(), img, self.frame_id)

    def stop(self) -> None:
        if self.cap is not None:
            self.cap.release()
            self.cap = None


class SyntheticCapture(BaseCapture):
    """Blank grayscale frames at a fixed rate, for dry runs."""

    def __init__(self, fps: int, width: int, height: int, frame_id: str = "camera"):
        super().__init__(frame_id)
        self.fps = fps
        self.width = width
        self.height = height
        self.idx = 0
        self._last = 0.0

    def start(self) -> None:
        self._last = time.time()

    def next_frame(self) -> Frame | None:
        now = time.time()
        if self.fps > 0:
            wait = max(0.0, (1.0 / self.fps) - (now - self._last))
            if wait > 0:
                time.sleep(wait)
        self._last = time.time()
        self.idx += 1
        img = np.zeros((self.height, self.width), dtype=np.uint8)
        return Frame(self.idx, _timestamp(), img, self.frame_id)

    def stop(self) -> None:
        return None
