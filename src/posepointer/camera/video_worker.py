# src/posepointer/camera/video_worker.py
import asyncio
import logging
from typing import Optional

from PySide6 import QtCore

from ..config import PipelineProfile
from ..errors import ModelLoadError, SourceUnavailable
from ..pose_engine import CycleReport, FrameScheduler
from ..session import SessionController

logger = logging.getLogger(__name__)


class VideoWorker(QtCore.QObject):
    """
    Hosts the asyncio pipeline inside a QThread. Results cross back to the
    UI thread only through queued signals; UI requests enter the loop via
    run_coroutine_threadsafe, so the scheduler stays the single owner of
    pointer and telemetry state.
    """

    # Define Qt signals for inter-thread communication
    frame_ready       = QtCore.Signal(object)            # rendered surface (a private copy)
    summary_changed   = QtCore.Signal(str)               # detection summary line
    telemetry_changed = QtCore.Signal(str, str, str)     # cpu, fps, detect time
    devices_ready     = QtCore.Signal(list, str)         # [(id, label)], active id
    status            = QtCore.Signal(str)               # session status messages
    error             = QtCore.Signal(str)               # fatal start errors
    finished          = QtCore.Signal()

    def __init__(self, profile: PipelineProfile, preferred_camera: Optional[str] = None):
        super().__init__()
        self.profile = profile
        self.preferred_camera = preferred_camera
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self.controller: Optional[SessionController] = None

    def _publish(self, report: CycleReport) -> None:
        self.frame_ready.emit(report.canvas.copy())
        if report.summary is not None:
            self.summary_changed.emit(report.summary)
        if report.telemetry is not None:
            t = report.telemetry
            self.telemetry_changed.emit(t.cpu, t.fps, t.detect_time)

    @QtCore.Slot()
    def start(self):
        try:
            asyncio.run(self._main())
        finally:
            self._loop = None
            self.finished.emit()

    async def _main(self):
        self._loop = asyncio.get_running_loop()
        scheduler = FrameScheduler(self.profile, publisher=self._publish)
        self.controller = SessionController(self.profile, scheduler, on_status=self.status.emit)
        try:
            state = await self.controller.start(self.preferred_camera)
        except (SourceUnavailable, ModelLoadError) as e:
            self.error.emit(str(e))
            await self.controller.shutdown()
            return
        self.devices_ready.emit([(d.id, d.label) for d in self.controller.devices], state.active_device_id or "")
        await self.controller.run()

    def _submit(self, coro) -> None:
        if self._loop is None:
            coro.close()
            return
        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        future.add_done_callback(self._report_failure)

    def _report_failure(self, future) -> None:
        if future.cancelled():
            return
        exc = future.exception()
        if exc is not None:
            logger.error("[VideoWorker] Request failed: %s", exc)
            self.status.emit(f"Error: {exc}")

    def select_camera(self, device_id: str) -> None:
        # called from the UI thread
        if self.controller is not None:
            self._submit(self.controller.select_device(device_id))

    def stop(self) -> None:
        if self.controller is not None:
            self._submit(self.controller.shutdown())
