"""Per-stage timings for embedding, query and write calls."""

from __future__ import annotations

import threading
import time
from collections import defaultdict
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Dict, Iterator


@dataclass
class StageTimings:
    calls: int = 0
    failures: int = 0
    seconds: float = 0.0
    slowest: float = 0.0

    def add(self, duration: float, *, failed: bool = False) -> None:
        self.calls += 1
        self.seconds += duration
        self.slowest = max(self.slowest, duration)
        if failed:
            self.failures += 1

    def as_dict(self) -> Dict[str, float]:
        mean = self.seconds / self.calls if self.calls else 0.0
        return {
            "count": self.calls,
            "failures": self.failures,
            "avg_ms": mean * 1000.0,
            "max_ms": self.slowest * 1000.0,
        }


class StageRecorder:
    def __init__(self) -> None:
        self._stages: Dict[str, StageTimings] = defaultdict(StageTimings)
        self._lock = threading.Lock()

    def add(self, stage: str, duration: float, *, failed: bool = False) -> None:
        with self._lock:
            self._stages[stage].add(duration, failed=failed)

    def snapshot(self) -> Dict[str, Dict[str, float]]:
        with self._lock:
            return {stage: timings.as_dict() for stage, timings in self._stages.items()}

    def reset(self) -> None:
        with self._lock:
            self._stages.clear()


recorder = StageRecorder()


def record_latency(stage: str, duration: float, *, failed: bool = False) -> None:
    recorder.add(stage, duration, failed=failed)


@contextmanager
def timed(stage: str) -> Iterator[None]:
    """Time the enclosed block; an exception counts as a failed call."""
    start = time.perf_counter()
    failed = True
    try:
        yield
        failed = False
    finally:
        recorder.add(stage, time.perf_counter() - start, failed=failed)


def latency_summary() -> Dict[str, Dict[str, float]]:
    return recorder.snapshot()


__all__ = ["StageRecorder", "StageTimings", "latency_summary", "record_latency", "recorder", "timed"]
