"""In-process counters and timings for batch runs.

Per-file work runs in child processes, so tasks report their own elapsed time
inside a `FileResult` and the parent records it with `observe`.

Usage:
    from imgbatch.image_engine.metrics import metrics
    metrics.inc("batch.ok")
    with metrics.timed("batch.duration"):
        ...
    metrics.observe("task.duration", result.elapsed)
    snapshot = metrics.snapshot()
"""

from __future__ import annotations

import time
from collections import defaultdict
from contextlib import contextmanager
from threading import RLock
from typing import Any


class _Metrics:
    def __init__(self) -> None:
        self._counters: dict[str, int] = defaultdict(int)
        self._timings: dict[str, list[float]] = defaultdict(list)
        self._lock = RLock()

    def inc(self, key: str, amount: int = 1) -> None:
        with self._lock:
            self._counters[key] += int(amount)

    def observe(self, key: str, seconds: float) -> None:
        with self._lock:
            self._timings[key].append(float(seconds))

    @contextmanager
    def timed(self, key: str):
        start = time.perf_counter()
        try:
            yield
        finally:
            self.observe(key, time.perf_counter() - start)

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timings": {k: list(v) for k, v in self._timings.items()},
            }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timings.clear()


metrics = _Metrics()
