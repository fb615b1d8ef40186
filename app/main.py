# app/main.py

import asyncio
import base64
import dataclasses
import logging
import os
from typing import List, Optional

from fastapi import FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware

from posepointer.config import get_profile
from posepointer.data_models import (
    CameraDevice, FramePayload, SelectCameraRequest, SessionStatus, StartSessionRequest, StatusResponse,
    TelemetryReadout,
)
from posepointer.errors import ModelLoadError, SourceUnavailable
from posepointer.pose_engine import CycleReport, FrameScheduler
from posepointer.session import SessionController
from posepointer.ui.overlays import encode_jpeg

logger = logging.getLogger("posepointer.app")

# --- APP SETUP ---
app = FastAPI(title="PosePointer")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class StreamHub:
    """
    Holds the latest cycle and fans it out to connected websockets.
    The scheduler only ever overwrites the slot, so a slow client never
    holds back the pipeline. JPEG encoding happens in the broadcaster,
    off the event loop.
    """

    def __init__(self):
        self.sockets: List[WebSocket] = []
        self.latest: Optional[FramePayload] = None
        self.summary = "No detection"
        self.telemetry = TelemetryReadout()
        self._report: Optional[CycleReport] = None
        self._event: Optional[asyncio.Event] = None   # created by the broadcaster, on its loop

    def publish(self, report: CycleReport) -> None:
        if report.summary is not None:
            self.summary = report.summary
        if report.telemetry is not None:
            self.telemetry = report.telemetry
        if not self.sockets or self._event is None:
            return
        # the surface is redrawn next cycle; keep a private copy for encoding
        self._report = dataclasses.replace(report, canvas=report.canvas.copy())
        self._event.set()

    def _encode(self, report: CycleReport, summary: str, telemetry: TelemetryReadout) -> FramePayload:
        return FramePayload(
            timestamp=report.timestamp_ms,
            frame_base64=base64.b64encode(encode_jpeg(report.canvas)).decode("utf-8"),
            summary=summary,
            telemetry=telemetry,
            tag=report.tag,
            pixel_x=report.pixel[0],
            pixel_y=report.pixel[1],
            depth=report.depth,
            model_name=report.model_name,
        )

    async def broadcast_forever(self) -> None:
        self._event = asyncio.Event()
        loop = asyncio.get_running_loop()
        try:
            while True:
                await self._event.wait()
                self._event.clear()
                report, self._report = self._report, None
                if report is None:
                    continue
                self.latest = await loop.run_in_executor(None, self._encode, report, self.summary, self.telemetry)
                data = self.latest.model_dump_json()
                for ws in list(self.sockets):
                    try:
                        await ws.send_text(data)
                    except (WebSocketDisconnect, RuntimeError):
                        if ws in self.sockets:
                            self.sockets.remove(ws)
        finally:
            self._event = None


# --- GLOBAL STATE ---
hub = StreamHub()
controller: Optional[SessionController] = None
session_task: Optional[asyncio.Task] = None
broadcast_task: Optional[asyncio.Task] = None


def _build_controller(profile_name: str) -> SessionController:
    profile = get_profile(profile_name)
    scheduler = FrameScheduler(profile, publisher=hub.publish)
    return SessionController(profile, scheduler)


async def stop_session() -> None:
    global controller, session_task
    if controller is not None:
        await controller.shutdown()
    if session_task is not None and not session_task.done():
        try:
            await asyncio.wait_for(session_task, timeout=2.0)
        except asyncio.TimeoutError:
            logger.warning("[App] Session loop did not exit in time; cancelling")
            session_task.cancel()
    controller = None
    session_task = None


# --- ENDPOINTS ---
@app.on_event("startup")
async def startup():
    global broadcast_task
    broadcast_task = asyncio.create_task(hub.broadcast_forever())


@app.get("/cameras", response_model=List[CameraDevice])
async def list_cameras(profile: str = "hd"):
    if controller is not None:
        return await controller.list_devices()
    try:
        lister = _build_controller(profile)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    try:
        return await lister.list_devices()
    finally:
        lister.scheduler.stop()


@app.post("/session/start", response_model=StatusResponse)
async def start_session(req: StartSessionRequest):
    global controller, session_task
    # Ensure clean stop before start
    await stop_session()
    controller = _build_controller(req.profile)
    try:
        state = await controller.start(req.camera_id)
    except (SourceUnavailable, ModelLoadError) as e:
        await stop_session()
        return StatusResponse(status="error", message=str(e))
    session_task = asyncio.create_task(controller.run())
    return StatusResponse(status="success", message=f"Started camera {state.active_device_id}")


@app.post("/session/camera", response_model=StatusResponse)
async def select_camera(req: SelectCameraRequest):
    if controller is None:
        raise HTTPException(status_code=409, detail="No active session")
    try:
        await controller.select_device(req.camera_id)
    except (SourceUnavailable, ModelLoadError) as e:
        return StatusResponse(status="error", message=str(e))
    return StatusResponse(status="success", message=f"Switched to camera {req.camera_id}")


@app.post("/session/stop", response_model=StatusResponse)
async def stop_camera():
    await stop_session()
    return StatusResponse(status="success", message="Stopped")


@app.get("/session/status", response_model=SessionStatus)
async def session_status():
    if controller is None:
        return SessionStatus(state="idle", message="No active session")
    model = controller.state.model_handle
    return SessionStatus(
        state=controller.scheduler.state.value,
        active_device_id=controller.state.active_device_id,
        model_name=model.name() if model is not None else None,
        message=controller.status_message,
    )


@app.websocket("/pose/stream")
async def ws_endpoint(ws: WebSocket):
    await ws.accept()
    hub.sockets.append(ws)
    try:
        while True:
            await ws.receive_text()  # clients don't send; this just waits for disconnect
    except WebSocketDisconnect:
        pass
    finally:
        if ws in hub.sockets:
            hub.sockets.remove(ws)


@app.on_event("shutdown")
async def shutdown():
    await stop_session()
    if broadcast_task is not None:
        broadcast_task.cancel()


if __name__ == "__main__":
    import uvicorn
    logging.basicConfig(level=os.environ.get("POSEPOINTER_LOG", "INFO"),
                        format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(app, host="127.0.0.1", port=int(os.environ.get("POSEPOINTER_PORT", "8000")))
