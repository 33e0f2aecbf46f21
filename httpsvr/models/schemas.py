from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class RouteMetric(BaseModel):
    """Aggregated stats of one route key, as shown by /__metric."""

    model_config = ConfigDict(frozen=True)

    key: str
    count: int = 0
    duration_count: int = 0
    total_ms: float = 0.0
    average_ms: float = 0.0
    max_ms: float = 0.0
    p50_ms: float = 0.0
    p90_ms: float = 0.0
    p99_ms: float = 0.0
