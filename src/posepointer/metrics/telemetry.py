# src/posepointer/metrics/telemetry.py
# --------------------------------------------------------------------
# Per-cycle throughput numbers (processing time, frame rate, load) and
# the throttles that limit how often they reach the display.
# All timestamps are milliseconds on a monotonic clock.
# --------------------------------------------------------------------

from __future__ import annotations
import time
from typing import Optional

from ..config import INFO_INTERVAL_MS, STAT_INTERVAL_MS
from ..data_models import Metrics, TelemetryReadout
from ..geometry.viewport import round_half_away


def now_ms() -> float:
    return time.perf_counter() * 1000.0


class Throttle:
    """Lets an event through at most once per `interval_ms`."""

    def __init__(self, interval_ms: float):
        self.interval_ms = interval_ms
        self.last: Optional[float] = None  # None = never fired

    def ready(self, now: float) -> bool:
        return self.last is None or (now - self.last) >= self.interval_ms

    def fire(self, now: float) -> bool:
        if not self.ready(now):
            return False
        self.last = now
        return True


class TelemetryAggregator:
    """
    Computes Metrics for every cycle and publishes a readout through two
    independent throttles: the stat block (load / fps / detect time) and the
    human-readable detection summary line.
    """

    def __init__(
        self,
        stat_interval_ms: float = STAT_INTERVAL_MS,
        info_interval_ms: float = INFO_INTERVAL_MS,
        started_ms: Optional[float] = None,
    ):
        self._stat = Throttle(stat_interval_ms)
        self._info = Throttle(info_interval_ms)
        self._last_time = now_ms() if started_ms is None else started_ms
        self.metrics = Metrics()              # latest computed values (every cycle)
        self.readout = TelemetryReadout()     # latest published values
        self.summary: Optional[str] = None    # latest published summary line

    def reset(self, started_ms: float) -> None:
        self._last_time = started_ms

    def record_cycle(self, start_ms: float, end_ms: float) -> Metrics:
        duration = end_ms - start_ms
        delta = end_ms - self._last_time
        if delta <= 0:
            return self.metrics
        self._last_time = end_ms
        self.metrics = Metrics(
            processing_duration_ms=round_half_away(duration),
            frames_per_second=round_half_away(1000.0 / delta),
            load_ratio=duration / delta,
        )
        return self.metrics

    def publish_stats(self, now: float) -> bool:
        """Replace the readout with the current metrics if the stat throttle allows it."""
        if not self._stat.fire(now):
            return False
        m = self.metrics
        self.readout = TelemetryReadout(
            cpu=f"{round_half_away(m.load_ratio * 100)}%",
            fps=f"{m.frames_per_second}",
            detect_time=f"{m.processing_duration_ms}ms",
        )
        return True

    def publish_summary(self, now: float, text: str) -> bool:
        if not self._info.fire(now):
            return False
        self.summary = text
        return True
