"""In-process latency and event counters.

Latency samples are keyed by operation name (``extraction_engine.extract``,
``mcp.get_memory_context``, ...); event counters track outcomes that have
no duration (``rate_gate.throttled``, ``extraction.skipped``, ...).
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from threading import Lock
from time import perf_counter

logger = logging.getLogger(__name__)


@dataclass
class LatencySummary:
    """Aggregated latency metrics for one operation."""

    count: int = 0
    error_count: int = 0
    total_ms: float = 0.0
    min_ms: float = 0.0
    max_ms: float = 0.0
    last_ms: float = 0.0

    def observe(self, duration_ms: float, ok: bool) -> None:
        self.min_ms = duration_ms if self.count == 0 else min(self.min_ms, duration_ms)
        self.max_ms = max(self.max_ms, duration_ms)
        self.count += 1
        self.error_count += 0 if ok else 1
        self.total_ms += duration_ms
        self.last_ms = duration_ms

    def as_dict(self) -> dict[str, float | int]:
        return {
            "count": self.count,
            "error_count": self.error_count,
            "error_rate": round(self.error_count / self.count, 3) if self.count else 0.0,
            "total_ms": round(self.total_ms, 3),
            "avg_ms": round(self.total_ms / self.count, 3) if self.count else 0.0,
            "min_ms": round(self.min_ms, 3),
            "max_ms": round(self.max_ms, 3),
            "last_ms": round(self.last_ms, 3),
        }


class _MetricsRegistry:
    def __init__(self) -> None:
        self._lock = Lock()
        self._latency: dict[str, LatencySummary] = {}
        self._events: dict[str, int] = {}

    def record(self, operation: str, duration_ms: float, ok: bool) -> None:
        normalized = max(float(duration_ms), 0.0)
        with self._lock:
            self._latency.setdefault(operation, LatencySummary()).observe(normalized, ok)
        logger.info(
            "latency operation=%s duration_ms=%.3f ok=%s", operation, normalized, ok
        )

    def increment(self, event: str, amount: int) -> None:
        with self._lock:
            self._events[event] = self._events.get(event, 0) + amount

    def latency(self, prefix: str) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                operation: summary.as_dict()
                for operation, summary in sorted(self._latency.items())
                if operation.startswith(prefix)
            }

    def events(self, prefix: str) -> dict[str, int]:
        with self._lock:
            return {
                event: count
                for event, count in sorted(self._events.items())
                if event.startswith(prefix)
            }

    def reset(self) -> None:
        with self._lock:
            self._latency.clear()
            self._events.clear()


_METRICS = _MetricsRegistry()


def record_latency(*, operation: str, duration_ms: float, ok: bool = True) -> None:
    """Record one latency sample."""
    _METRICS.record(operation, duration_ms, ok)


@contextmanager
def timed(operation: str) -> Iterator[None]:
    """Record the duration of the ``with`` body; exceptions count as errors."""
    start = perf_counter()
    ok = False
    try:
        yield
        ok = True
    finally:
        record_latency(
            operation=operation, duration_ms=(perf_counter() - start) * 1000, ok=ok
        )


def increment_event(event: str, amount: int = 1) -> None:
    """Bump a named outcome counter."""
    if amount:
        _METRICS.increment(event, amount)


def latency_metrics_snapshot(prefix: str = "") -> dict[str, dict[str, float | int]]:
    """Current latency aggregates, optionally limited to operations under *prefix*."""
    return _METRICS.latency(prefix)


def event_counts_snapshot(prefix: str = "") -> dict[str, int]:
    """Current event counters, optionally limited to names under *prefix*."""
    return _METRICS.events(prefix)


def reset_latency_metrics() -> None:
    """Clear all latency aggregates and event counters (test helper)."""
    _METRICS.reset()
