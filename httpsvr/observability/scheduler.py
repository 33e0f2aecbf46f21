from __future__ import annotations

import threading
import time
from datetime import datetime, timezone
from typing import Callable

import structlog

logger = structlog.get_logger("metrics")


def seconds_until_next_fire(now: float, interval: float, offset: float) -> float:
    """Seconds from `now` (epoch) to the next instant t with (t - offset) % interval == 0.

    With interval=86400 and offset=0 that is the next UTC midnight. Never
    returns 0, so a reset that just fired is not repeated immediately.
    """

    if interval <= 0:
        raise ValueError("interval must be > 0")
    remaining = interval - ((now - offset) % interval)
    return remaining if remaining > 0 else interval


class MetricResetScheduler:
    """Daemon thread that calls `reset` on a fixed interval for the life of the process."""

    def __init__(
        self,
        reset: Callable[[], None],
        interval: float = 24 * 3600.0,
        offset: float = 0.0,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._reset = reset
        self.interval = interval
        self.offset = offset
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._thread = threading.Thread(target=self._run, name="metric-reset", daemon=True)
        self._thread.start()
        delay = seconds_until_next_fire(self._clock(), self.interval, self.offset)
        logger.info(
            "metric_reset_scheduled",
            interval_sec=self.interval,
            first_fire_at=datetime.fromtimestamp(self._clock() + delay, tz=timezone.utc).isoformat(),
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        """Not used by the default server; the schedule ends with the process."""

        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)

    def _run(self) -> None:
        while True:
            delay = seconds_until_next_fire(self._clock(), self.interval, self.offset)
            if self._stop.wait(timeout=delay):
                return
            try:
                self._reset()
            except Exception:
                # Keep the schedule alive; the next interval tries again.
                logger.exception("metric_reset_failed")
