from abc import ABC, abstractmethod
import cv2
from ..tag_types import Frame

class PreprocessStrategy(ABC):
    @abstractmethod
    def apply(self, f: Frame) -> Frame: ...

class GrayscaleFrame(PreprocessStrategy):
    def apply(self, f: Frame) -> Frame:
        if f.image.ndim == 2:
            return f
        g = cv2.cvtColor(f.image, cv2.COLOR_BGR2GRAY)
        return Frame(f.idx, f.ts_iso, g, f.frame_id)
