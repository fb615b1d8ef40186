# src/posepointer/pose_engine.py
# ---------------------------------------------------------------
# The per-frame pipeline. FrameScheduler owns the pointer state and
# runs one cooperative asyncio loop:
#
#   admission guard -> inference (only await) -> interpret -> map
#   -> render -> telemetry -> re-arm
#
# Inference runs on a one-thread executor so the event loop stays
# free, but cycles never overlap: the next tick is only taken after
# the current cycle has rendered and published.
# ---------------------------------------------------------------

from __future__ import annotations
import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from functools import partial
from typing import Any, Callable, List, Optional, Tuple

import numpy as np

from .analysis.landmark_interpreter import (
    depth_proxy, face_extent, format_summary, interpret, marker_color, update_target,
)
from .config import INITIAL_TARGET, MAX_SUBJECTS, PipelineProfile
from .data_models import LogicalTarget, Subject, TargetTag, TelemetryReadout
from .errors import OracleUnready
from .geometry.viewport import compute_placement, map_target_to_surface
from .metrics.telemetry import TelemetryAggregator, now_ms
from .ui.overlays import RenderSurface, render_frame

logger = logging.getLogger(__name__)


class SchedulerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    RECONFIGURING = "reconfiguring"
    STOPPED = "stopped"


class CycleOutcome(str, Enum):
    SKIPPED = "skipped"      # admission guard said no; nothing happened
    STALE = "stale"          # source/model replaced while inference ran; result dropped
    FAILED = "failed"        # inference raised
    RENDERED = "rendered"


@dataclass
class CycleReport:
    """What one rendered cycle produced. `canvas` is the live surface buffer: copy it to keep it."""
    timestamp_ms: float
    tag: TargetTag
    detected: bool
    target: LogicalTarget
    pixel: Tuple[int, int]
    depth: int
    summary: Optional[str]                   # set only when the summary throttle let it through
    telemetry: Optional[TelemetryReadout]    # set only when the stat throttle let it through
    canvas: np.ndarray
    model_name: str = ""


FramePublisher = Callable[[CycleReport], None]


class FrameScheduler:
    def __init__(
        self,
        profile: PipelineProfile,
        surface: Optional[RenderSurface] = None,
        publisher: Optional[FramePublisher] = None,
        executor: Optional[ThreadPoolExecutor] = None,
        clock: Callable[[], float] = now_ms,
    ):
        self.profile = profile
        self.surface = surface or RenderSurface(profile.surface_width, profile.surface_height)
        self.publisher = publisher
        self._clock = clock
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="inference")

        self.state = SchedulerState.IDLE
        self.target = LogicalTarget(x=INITIAL_TARGET[0], y=INITIAL_TARGET[1])
        self.telemetry = TelemetryAggregator(started_ms=clock())

        self._source: Any = None
        self._oracle: Any = None
        self._generation = 0
        self._inflight = False
        self._pending: Optional[asyncio.Future] = None
        self._last_processed: Optional[float] = None
        self.source_lost = False

    # ---------------------- Lifecycle ---------------------- #
    @property
    def generation(self) -> int:
        return self._generation

    @property
    def inflight(self) -> bool:
        return self._inflight

    def attach(self, source: Any, oracle: Any) -> None:
        """Install a new frame source / oracle pair and resume processing."""
        if self.state == SchedulerState.STOPPED:
            raise RuntimeError("Scheduler is stopped")
        self._source = source
        self._oracle = oracle
        self._generation += 1
        self._last_processed = None
        self.source_lost = False
        self.telemetry.reset(self._clock())
        if source is not None and oracle is not None:
            self.state = SchedulerState.RUNNING
            logger.info("[Scheduler] Running (generation %d)", self._generation)

    def begin_reconfigure(self) -> None:
        """Detach the current source; any inference still running becomes stale."""
        if self.state == SchedulerState.STOPPED:
            return
        self.state = SchedulerState.RECONFIGURING
        self._generation += 1
        self._source = None
        logger.info("[Scheduler] Reconfiguring")

    def stop(self) -> None:
        if self.state == SchedulerState.STOPPED:
            return
        self.state = SchedulerState.STOPPED
        self._generation += 1
        self._source = None
        self._oracle = None
        if self._owns_executor:
            self._executor.shutdown(wait=False)
        logger.info("[Scheduler] Stopped")

    async def wait_idle(self) -> None:
        """Wait until the inference call in flight, if any, has returned. Never cancels it."""
        pending = self._pending
        if pending is not None:
            await asyncio.wait({pending})

    # ---------------------- Loop ---------------------- #
    async def run(self) -> None:
        """Tick at the display refresh rate until stopped. A failing cycle never ends the loop."""
        period_ms = 1000.0 / self.profile.refresh_rate_hz
        logger.info("[Scheduler] Loop started (%.0f Hz, ceiling %s)",
                    self.profile.refresh_rate_hz, self.profile.frame_rate_ceiling or "none")
        while self.state != SchedulerState.STOPPED:
            ts = self._clock()
            try:
                await self.tick(ts)
            except Exception:
                logger.exception("[Scheduler] Cycle raised; continuing with next tick")
            elapsed = self._clock() - ts
            await asyncio.sleep(max(0.0, period_ms - elapsed) / 1000.0)
        logger.info("[Scheduler] Loop exited")

    def _admit(self, timestamp: float) -> bool:
        if self.state != SchedulerState.RUNNING or self._inflight:
            return False
        oracle, source = self._oracle, self._source
        if oracle is None or not oracle.is_ready():
            return False
        if source is None:
            return False
        if not getattr(source, "active", True):
            # reader thread is gone: the device disappeared or stopped delivering
            logger.error("[Scheduler] Frame source lost")
            self.source_lost = True
            self.stop()
            return False
        if not source.is_readable or not source.width or not source.height:
            return False
        min_interval = self.profile.min_frame_interval_ms
        if min_interval and self._last_processed is not None and timestamp - self._last_processed < min_interval:
            return False
        return True

    async def tick(self, timestamp: float) -> CycleOutcome:
        if not self._admit(timestamp):
            return CycleOutcome.SKIPPED

        frame = self._source.read_latest()
        if frame is None or frame.size == 0 or frame.shape[0] == 0 or frame.shape[1] == 0:
            return CycleOutcome.SKIPPED

        self._last_processed = timestamp
        oracle = self._oracle
        generation = self._generation
        start = self._clock()

        self._inflight = True
        try:
            loop = asyncio.get_running_loop()
            self._pending = loop.run_in_executor(self._executor, partial(oracle.infer, frame, MAX_SUBJECTS))
            # the executor future outlives a cancelled tick; wait_idle() still sees it
            subjects: List[Subject] = await asyncio.shield(self._pending)
        except OracleUnready:
            logger.debug("[Scheduler] Oracle not ready; cycle skipped")
            return CycleOutcome.SKIPPED
        except Exception:
            logger.exception("[Scheduler] Inference failed")
            return CycleOutcome.FAILED
        finally:
            self._inflight = False
            if self._pending is not None and self._pending.done():
                self._pending = None

        if generation != self._generation or self.state != SchedulerState.RUNNING:
            logger.debug("[Scheduler] Dropping stale result (generation %d, now %d)", generation, self._generation)
            return CycleOutcome.STALE

        report = self._complete_cycle(frame, subjects, start, timestamp, oracle)
        if self.publisher is not None:
            self.publisher(report)
        return CycleOutcome.RENDERED

    def _complete_cycle(
        self, frame: np.ndarray, subjects: List[Subject], start: float, timestamp: float, oracle: Any,
    ) -> CycleReport:
        p = self.profile
        subject = subjects[0] if subjects else None
        frame_h, frame_w = frame.shape[:2]

        result = interpret(subject, frame_w, frame_h, p.confidence_threshold, p.split_wrist_tags)
        self.target = update_target(self.target, result)

        placement = compute_placement(frame_w, frame_h, self.surface.width, self.surface.height)
        pixel = map_target_to_surface(self.target, placement)
        render_frame(self.surface, frame, placement, pixel, p.marker_radius, marker_color(result.tag))

        depth = depth_proxy(face_extent(subject, p.confidence_threshold), p.depth_constant, p.depth_normalization)

        end = self._clock()
        tm = self.telemetry
        summary_published = tm.publish_summary(end, format_summary(result.detected, pixel[0], pixel[1], depth))
        tm.record_cycle(start, end)
        stats_published = tm.publish_stats(end)

        return CycleReport(
            timestamp_ms=timestamp,
            tag=result.tag,
            detected=result.detected,
            target=self.target,
            pixel=pixel,
            depth=depth,
            summary=tm.summary if summary_published else None,
            telemetry=tm.readout if stats_published else None,
            canvas=self.surface.canvas,
            model_name=oracle.name() if hasattr(oracle, "name") else "",
        )
