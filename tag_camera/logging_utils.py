import logging

_FORMAT = "%(asctime)s %(levelname)s [%(camera)s] %(name)s: %(message)s"


class CameraNameFilter(logging.Filter):
    def __init__(self, camera_name: str):
        super().__init__()
        self.camera_name = camera_name

    def filter(self, record: logging.LogRecord) -> bool:
        record.camera = self.camera_name
        return True


def parse_level(level) -> int:
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).upper())
    if not isinstance(value, int):
        raise ValueError(f"unknown log level: {level!r}")
    return value


def setup_logger(camera_name: str, level=logging.INFO) -> logging.Logger:
    """Logger for one camera node; pipeline messages go through its children."""
    logger = logging.getLogger(f"tag_camera.{camera_name}")
    logger.setLevel(parse_level(level))

    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(CameraNameFilter(camera_name))
        logger.addHandler(handler)

    return logger


def add_file_handler(logger: logging.Logger, camera_name: str, log_path: str) -> logging.Handler:
    handler = logging.FileHandler(log_path)
    handler.setFormatter(logging.Formatter(_FORMAT))
    handler.addFilter(CameraNameFilter(camera_name))
    logger.addHandler(handler)
    return handler
