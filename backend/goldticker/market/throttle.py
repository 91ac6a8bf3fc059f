"""Leading-edge throttle for stream writes."""

from __future__ import annotations

import time
from collections.abc import Callable


class LeadingEdgeThrottle:
    """Let the first event of each window through and drop the rest.

    A window opens on the first allowed event and lasts ``window`` seconds.
    Dropped events are not queued or replayed at the trailing edge.
    """

    def __init__(self, window: float, clock: Callable[[], float] = time.monotonic) -> None:
        if window <= 0:
            raise ValueError("throttle window must be positive")
        self._window = window
        self._clock = clock
        self._opened_at: float | None = None
        self.dropped = 0

    @property
    def window(self) -> float:
        return self._window

    def allow(self) -> bool:
        now = self._clock()
        if self._opened_at is not None and now - self._opened_at < self._window:
            self.dropped += 1
            return False
        self._opened_at = now
        return True

    def reset(self) -> None:
        """Forget the current window so the next event passes."""
        self._opened_at = None
