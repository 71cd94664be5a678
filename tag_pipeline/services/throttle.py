import time
from typing import Callable, Hashable


class WarningThrottle:
    """Allow a given log key through at most once per ``interval_s`` seconds."""

    def __init__(self, interval_s: float = 10.0, clock: Callable[[], float] = time.monotonic):
        self.interval_s = float(interval_s)
        self.clock = clock
        self._last: dict[Hashable, float] = {}

    def ready(self, key: Hashable) -> bool:
        now = self.clock()
        last = self._last.get(key)
        if last is not None and (now - last) < self.interval_s:
            return False
        self._last[key] = now
        return True
