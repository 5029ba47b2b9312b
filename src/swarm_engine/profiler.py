"""Stage timing for the animation loop.

A tick runs classification, target assignment and smoothing; the live
preview adds a render stage. Each stage keeps a rolling window of
``time.perf_counter`` samples, and the report measures them against a
frame budget (60 fps unless told otherwise).
"""

from __future__ import annotations

import time
from collections import Counter, deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

import numpy as np

FRAME_BUDGET_MS = 1000.0 / 60


@dataclass
class StageStats:
    """Timing statistics for a single stage."""
    name: str
    avg_ms: float
    min_ms: float
    max_ms: float
    p95_ms: float
    call_count: int

    def as_dict(self) -> dict:
        return {
            "avg_ms": round(self.avg_ms, 3),
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "p95_ms": round(self.p95_ms, 3),
            "calls": self.call_count,
        }


class PipelineProfiler:
    """Rolling per-stage timings for one animation session.

    Usage:
        profiler = PipelineProfiler()

        with profiler.stage("targets"):
            field.update_targets(...)

        for line in profiler.report():
            print(line)

    Call counts cover the whole session; averages and percentiles cover
    the last ``window_size`` samples of a stage.
    """

    def __init__(self, window_size: int = 120, budget_ms: float = FRAME_BUDGET_MS):
        self.window_size = window_size
        self.budget_ms = budget_ms
        self.enabled = True
        self._samples: dict[str, deque[float]] = {}
        self._calls: Counter[str] = Counter()

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        """Time the enclosed block under ``name``, even if it raises."""
        if not self.enabled:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - t0) * 1000.0
            self._samples.setdefault(name, deque(maxlen=self.window_size)).append(elapsed_ms)
            self._calls[name] += 1

    def get_stage_stats(self, name: str) -> StageStats | None:
        samples = self._samples.get(name)
        if not samples:
            return None

        ms = np.fromiter(samples, dtype=np.float64, count=len(samples))
        return StageStats(
            name=name,
            avg_ms=float(ms.mean()),
            min_ms=float(ms.min()),
            max_ms=float(ms.max()),
            p95_ms=float(np.percentile(ms, 95)),
            call_count=self._calls[name],
        )

    def _all_stats(self) -> list[StageStats]:
        stats = (self.get_stage_stats(name) for name in self._samples)
        return [s for s in stats if s is not None]

    def summary(self) -> dict[str, dict]:
        """Stats of every stage that has run, keyed by stage name."""
        return {s.name: s.as_dict() for s in self._all_stats()}

    def tick_ms(self) -> float:
        """Estimated cost of one tick: the sum of the stage averages."""
        return sum(s.avg_ms for s in self._all_stats())

    def over_budget(self) -> list[str]:
        """Stages whose p95 alone exceeds the frame budget."""
        return [s.name for s in self._all_stats() if s.p95_ms > self.budget_ms]

    def report(self) -> list[str]:
        """One aligned line per stage, slowest average first, then the tick total."""
        stats = sorted(self._all_stats(), key=lambda s: s.avg_ms, reverse=True)
        if not stats:
            return []

        slow = set(self.over_budget())
        lines = []
        for s in stats:
            flag = "  over budget" if s.name in slow else ""
            lines.append(
                f"{s.name:15s} avg={s.avg_ms:.3f}ms  p95={s.p95_ms:.3f}ms  calls={s.call_count}{flag}"
            )
        total = self.tick_ms()
        lines.append(
            f"{'per tick':15s} avg={total:.3f}ms  "
            f"({total / self.budget_ms:.0%} of the {self.budget_ms:.1f}ms frame budget)"
        )
        return lines

    def reset(self):
        self._samples.clear()
        self._calls.clear()
