"""In-process counters and timings for the vector queue."""

import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from typing import Any, Iterator


@dataclass
class Timing:
    count: int = 0
    total_ms: float = 0.0
    max_ms: float = 0.0

    def record(self, value_ms: float) -> None:
        self.count += 1
        self.total_ms += value_ms
        self.max_ms = max(self.max_ms, value_ms)

    def snapshot(self) -> dict[str, Any]:
        return {
            "count": self.count,
            "avg_ms": self.total_ms / self.count if self.count else 0.0,
            "max_ms": self.max_ms,
        }


class MetricsRegistry:
    """Counters and timings keyed by dotted names (``queue.task.completed``)."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, Timing] = defaultdict(Timing)

    def inc(self, name: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[name] += amount

    def record_ms(self, name: str, value_ms: float) -> None:
        with self._lock:
            self._timings[name].record(value_ms)

    @contextmanager
    def timer(self, name: str) -> Iterator[None]:
        """Record the wall time of the wrapped block, failed or not."""
        started = time.perf_counter()
        try:
            yield
        finally:
            self.record_ms(name, (time.perf_counter() - started) * 1000.0)

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {name: t.snapshot() for name, t in self._timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = MetricsRegistry()
