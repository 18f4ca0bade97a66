"""Process-wide bound on tasks in flight."""

import logging
from threading import Lock

logger = logging.getLogger(__name__)


class ConcurrencyGovernor:
    """
    Counting gate in front of every claim attempt.

    Advisory and process-local: it keeps one process from overrunning the
    embedding provider, it does not coordinate a fleet. Admission and release
    are symmetric; release is floored at zero so a stray double release
    cannot open extra slots.
    """

    def __init__(self, max_in_flight: int):
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be positive, got {max_in_flight}")
        self._max = max_in_flight
        self._in_flight = 0
        self._lock = Lock()

    @property
    def max_in_flight(self) -> int:
        return self._max

    @property
    def in_flight(self) -> int:
        with self._lock:
            return self._in_flight

    @property
    def available(self) -> int:
        with self._lock:
            return self._max - self._in_flight

    def try_admit(self) -> bool:
        """Take a slot if one is free."""
        with self._lock:
            if self._in_flight >= self._max:
                return False
            self._in_flight += 1
            return True

    def release(self) -> None:
        """Give a slot back."""
        with self._lock:
            if self._in_flight <= 0:
                logger.warning("Concurrency slot released with none in flight")
                self._in_flight = 0
                return
            self._in_flight -= 1
