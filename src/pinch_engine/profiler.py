"""Per-stage timing for the tick loop.

Detection, workflow reconciliation and audio draining all run on the frame
thread. Each stage keeps a rolling window of durations; ticks whose total
time exceeds the frame budget are counted.
"""

from __future__ import annotations

import logging
import time
from collections import defaultdict, deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np

logger = logging.getLogger("pinch_engine.profiler")

TOTAL = "total"


@dataclass
class StageTiming:
    name: str
    mean_ms: float
    worst_ms: float
    p95_ms: float
    calls: int


class TickProfiler:
    """Rolling-window stage timings with an optional per-tick budget.

    Usage:
        profiler = TickProfiler(frame_budget_ms=1000 / 30)
        with profiler.stage("total"):
            with profiler.stage("detection"):
                detector.update(samples, now)
        print(profiler.summary(), profiler.over_budget)
    """

    def __init__(self, window: int = 120, frame_budget_ms: Optional[float] = None):
        self.window = window
        self.frame_budget_ms = frame_budget_ms
        self.enabled = True
        self.over_budget = 0
        self._samples: dict[str, deque[float]] = {}
        self._calls: dict[str, int] = defaultdict(int)

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        if not self.enabled:
            yield
            return
        t0 = time.perf_counter()
        try:
            yield
        finally:
            self._record(name, (time.perf_counter() - t0) * 1000.0)

    def _record(self, name: str, ms: float):
        window = self._samples.get(name)
        if window is None:
            window = self._samples[name] = deque(maxlen=self.window)
        window.append(ms)
        self._calls[name] += 1

        if name == TOTAL and self.frame_budget_ms is not None and ms > self.frame_budget_ms:
            self.over_budget += 1
            logger.debug("Tick took %.2fms (budget %.2fms)", ms, self.frame_budget_ms)

    def timing(self, name: str) -> Optional[StageTiming]:
        """Stats over the current window, or None if the stage never ran."""
        window = self._samples.get(name)
        if not window:
            return None
        ms = np.fromiter(window, dtype=np.float64)
        return StageTiming(
            name=name,
            mean_ms=float(ms.mean()),
            worst_ms=float(ms.max()),
            p95_ms=float(np.percentile(ms, 95)),
            calls=self._calls[name],
        )

    def summary(self) -> dict[str, dict]:
        result = {}
        for name in self._samples:
            t = self.timing(name)
            if t is None:
                continue
            result[name] = {
                "mean_ms": round(t.mean_ms, 3),
                "worst_ms": round(t.worst_ms, 3),
                "p95_ms": round(t.p95_ms, 3),
                "calls": t.calls,
            }
        return result

    def reset(self):
        self._samples.clear()
        self._calls.clear()
        self.over_budget = 0
