# src/posepointer/session.py
# ---------------------------------------------------------------
# Session lifecycle: which camera is active, which model is loaded,
# and the teardown / setup sequence when the user picks another
# camera. A switch is done in place: the scheduler is put into
# RECONFIGURING, the old stream is fully closed, the new stream is
# opened and the scheduler resumes with the new pair.
# ---------------------------------------------------------------

from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional

from .backends.loader import load_backend
from .config import ModelReload, PipelineProfile
from .data_models import CameraDevice, CaptureConstraints
from .errors import ModelLoadError, SourceUnavailable
from .pose_engine import FrameScheduler, SchedulerState
from .utils.camera_scan import sort_devices

logger = logging.getLogger(__name__)

MSG_SWITCHING = "Switching camera and reloading models..."
MSG_DETECTING = "Detecting..."
MSG_NO_CAMERA = "No usable camera found."


@dataclass(frozen=True)
class SessionState:
    active_device_id: Optional[str] = None
    model_handle: Any = None
    stream_handle: Any = None


StatusCallback = Callable[[str], None]


class SessionController:
    def __init__(
        self,
        profile: PipelineProfile,
        scheduler: FrameScheduler,
        provider: Any = None,
        backend_loader: Callable = load_backend,
        on_status: Optional[StatusCallback] = None,
    ):
        if provider is None:
            from .camera.capture import CameraProvider
            provider = CameraProvider()
        self.profile = profile
        self.scheduler = scheduler
        self.provider = provider
        self.backend_loader = backend_loader
        self.on_status = on_status
        self.state = SessionState()
        self.devices: List[CameraDevice] = []
        self.status_message = ""
        self._lock = asyncio.Lock()   # start / switch / shutdown never interleave

    # ---------------------- Helpers ---------------------- #
    def _status(self, message: str) -> None:
        self.status_message = message
        logger.info("[Session] %s", message)
        if self.on_status is not None:
            self.on_status(message)

    @property
    def constraints(self) -> CaptureConstraints:
        c = self.profile.capture
        return CaptureConstraints(
            ideal_width=c.ideal_width, ideal_height=c.ideal_height,
            min_width=c.min_width, min_height=c.min_height,
        )

    async def _blocking(self, func, *args):
        # camera open/close and model load block; keep the event loop (and its ticks) free
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)

    def resolve_device(self, preferred: Optional[str]) -> Optional[str]:
        """Preferred id if it was enumerated, else the first device, else None."""
        if preferred is not None and any(d.id == preferred for d in self.devices):
            return preferred
        return self.devices[0].id if self.devices else None

    # ---------------------- Devices ---------------------- #
    async def list_devices(self) -> List[CameraDevice]:
        """Enumerate and sort devices. The camera this session streams from is never opened again."""
        active = self.state.active_device_id if self.state.stream_handle is not None else None
        if active is None:
            found = await self._blocking(self.provider.enumerate)
        else:
            found = await self._blocking(self.provider.enumerate, (active,))
            known = next((d for d in self.devices if d.id == active), None)
            found.append(known or CameraDevice(id=active, label=f"Camera {active}"))
        self.devices = sort_devices(found, self.profile.device_sort_order)
        return self.devices

    # ---------------------- Lifecycle ---------------------- #
    async def start(self, preferred_device_id: Optional[str] = None) -> SessionState:
        async with self._lock:
            await self.list_devices()
            device_id = self.resolve_device(preferred_device_id)
            if device_id is None:
                self._status(MSG_NO_CAMERA)
                raise SourceUnavailable(MSG_NO_CAMERA)
            if preferred_device_id is not None and device_id != preferred_device_id:
                logger.warning("[Session] Camera %s not found, using %s", preferred_device_id, device_id)
            await self._activate(device_id)
            return self.state

    async def select_device(self, device_id: str) -> SessionState:
        async with self._lock:
            current = self.state
            if (current.active_device_id == device_id and current.stream_handle is not None
                    and self.scheduler.state == SchedulerState.RUNNING):
                return current
            await self._activate(device_id)
            return self.state

    async def _activate(self, device_id: str) -> None:
        self._status(MSG_SWITCHING)
        if self.scheduler.state == SchedulerState.STOPPED:
            raise RuntimeError("Session has been shut down")
        self.scheduler.begin_reconfigure()

        old = self.state
        if old.stream_handle is not None:
            # every track of the old stream is released before the new device is requested
            await self._blocking(self.provider.close, old.stream_handle)

        model = old.model_handle
        if model is not None and (self.profile.model_reload == ModelReload.ALWAYS or not model.is_ready()):
            await self.scheduler.wait_idle()   # an inference still running keeps using this model
            await self._blocking(model.close)
            model = None
        self.state = SessionState(active_device_id=device_id, model_handle=model, stream_handle=None)

        try:
            stream = await self._blocking(self.provider.open, device_id, self.constraints)
        except SourceUnavailable as e:
            self._status(f"Camera error: {e}")
            raise

        if model is None:
            try:
                model = await self._blocking(self.backend_loader, self.profile.backend)
            except ModelLoadError as e:
                await self._blocking(self.provider.close, stream)
                self._status(f"Model error: {e}")
                raise

        self.state = SessionState(active_device_id=device_id, model_handle=model, stream_handle=stream)
        self.scheduler.attach(stream, model)
        self._status(MSG_DETECTING)

    async def run(self) -> None:
        """Drive the scheduler until it stops (shutdown or lost camera), then release everything."""
        try:
            await self.scheduler.run()
        finally:
            if self.scheduler.source_lost:
                self._status("Camera disconnected.")
            await self._release()

    async def shutdown(self) -> None:
        async with self._lock:
            self.scheduler.stop()
            await self._release()

    async def _release(self) -> None:
        state, self.state = self.state, SessionState()
        if state.stream_handle is not None:
            await self._blocking(self.provider.close, state.stream_handle)
        if state.model_handle is not None:
            await self.scheduler.wait_idle()
            await self._blocking(state.model_handle.close)
