"""Camera node that publishes AprilTag and tag-bundle poses."""

from .config import TagNodeConfig, load_config
from .worker import TagWorker

__all__ = ["TagNodeConfig", "TagWorker", "load_config"]
