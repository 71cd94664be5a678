import csv
import io

from ..tag_types import DetectionResult

class CsvWriter:
    HEADER = [
        "recorded_at",
        "frame_idx", "name", "ids", "sizes",
        "px", "py", "pz",
        "qx", "qy", "qz", "qw",
    ]

    def __init__(self, csv_path: str):
        self.csv_path = csv_path
        self._opened = False
        self._fh = None
        self._w = None

    def open(self):
        self._fh = open(self.csv_path, "w", newline="")
        self._w = csv.writer(self._fh)
        self._w.writerow(self.HEADER)
        self._opened = True

    @staticmethod
    def _row(ts_unix, frame_idx, result: DetectionResult):
        return [
            f"{ts_unix:.6f}",
            frame_idx, result.name,
            ";".join(str(i) for i in result.ids),
            ";".join(f"{s:g}" for s in result.sizes),
            *(f"{v:.6f}" for v in result.pose.position),
            *(f"{v:.6f}" for v in result.pose.orientation),
        ]

    def append(self, ts_unix, frame_idx, result: DetectionResult):
        self._w.writerow(self._row(ts_unix, frame_idx, result))
        self._fh.flush()

    @classmethod
    def to_csv_line(cls, ts_unix, frame_idx, result: DetectionResult):
        buf = io.StringIO()
        w = csv.writer(buf)
        w.writerow(cls._row(ts_unix, frame_idx, result))
        return buf.getvalue().strip()

    def close(self):
        if self._opened and self._fh:
            self._fh.close()
            self._opened = False
            self._fh = None
            self._w = None
