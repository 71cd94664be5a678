from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from tag_pipeline.services.csv_writer import CsvWriter
from tag_pipeline.tag_types import DetectionResult


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_results(self, ts_unix: float, frame_idx: int, results: list[DetectionResult]) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    def __init__(self, filename: str = "detections.csv"):
        self.filename = filename
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        self._writer = CsvWriter(str(session_dir / self.filename))
        self._writer.open()

    def write_results(self, ts_unix: float, frame_idx: int, results: list[DetectionResult]) -> None:
        if self._writer is None:
            return
        for res in results:
            self._writer.append(ts_unix, frame_idx, res)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None
