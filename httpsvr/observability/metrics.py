from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass, field
from threading import Lock

import structlog

from httpsvr.models.schemas import RouteMetric

# Percentiles are computed over the most recent samples of each key.
MAX_SAMPLES_PER_KEY = 1000

logger = structlog.get_logger("metrics")


@dataclass
class _RouteAgg:
    count: int = 0
    duration_count: int = 0
    sum_ms: float = 0.0
    max_ms: float = 0.0
    samples: deque[float] = field(default_factory=lambda: deque(maxlen=MAX_SAMPLES_PER_KEY))

    def observe(self, elapsed_ms: float) -> None:
        self.duration_count += 1
        self.sum_ms += elapsed_ms
        if elapsed_ms > self.max_ms:
            self.max_ms = elapsed_ms
        self.samples.append(elapsed_ms)


def _percentile(sorted_samples: list[float], q: float) -> float:
    if not sorted_samples:
        return 0.0
    # nearest-rank
    rank = max(1, math.ceil(round(q * len(sorted_samples), 9)))
    return sorted_samples[rank - 1]


def _to_record(key: str, count: int, duration_count: int, sum_ms: float, max_ms: float, samples: list[float]) -> RouteMetric:
    samples.sort()
    return RouteMetric(
        key=key,
        count=count,
        duration_count=duration_count,
        total_ms=round(sum_ms, 3),
        average_ms=round(sum_ms / duration_count, 3) if duration_count else 0.0,
        max_ms=round(max_ms, 3),
        p50_ms=round(_percentile(samples, 0.50), 3),
        p90_ms=round(_percentile(samples, 0.90), 3),
        p99_ms=round(_percentile(samples, 0.99), 3),
    )


def sort_by_average_duration(records: list[RouteMetric]) -> list[RouteMetric]:
    """Slowest routes first; ties go to the busier route, then to the key."""

    return sorted(records, key=lambda r: (-r.average_ms, -r.count, r.key))


class InMemoryMetrics:
    """Thread-safe, process-local per-route metrics (resets on restart).

    Keys are created on first use and survive `reset()`, so a route that was
    ever hit keeps showing up with zero stats.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._routes: dict[str, _RouteAgg] = {}

    def _get(self, key: str) -> _RouteAgg:
        agg = self._routes.get(key)
        if agg is None:
            agg = self._routes[key] = _RouteAgg()
        return agg

    def count(self, key: str) -> None:
        with self._lock:
            self._get(key).count += 1

    def duration(self, key: str, elapsed_ms: float) -> None:
        elapsed_ms = float(elapsed_ms)
        # `not x > 0` also catches NaN
        if not elapsed_ms > 0:
            elapsed_ms = 0.0
        with self._lock:
            self._get(key).observe(elapsed_ms)

    def get_current_metric(self) -> tuple[RouteMetric, ...]:
        # Only the raw copy happens under the lock; stats and sorting don't block writers.
        with self._lock:
            raw = [
                (key, agg.count, agg.duration_count, agg.sum_ms, agg.max_ms, list(agg.samples))
                for key, agg in self._routes.items()
            ]
        return tuple(sort_by_average_duration([_to_record(*row) for row in raw]))

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._routes)

    def reset(self) -> None:
        with self._lock:
            for key in self._routes:
                self._routes[key] = _RouteAgg()
            n_keys = len(self._routes)
        logger.info("metric_reset", keys=n_keys)

