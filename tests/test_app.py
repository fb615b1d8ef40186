from __future__ import annotations

import asyncio
import base64
import json

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from app import main as app_main
from fakes import CountingLoader, FakeOracle, FakeProvider, make_subject
from posepointer.config import get_profile
from posepointer.data_models import CameraDevice, LogicalTarget, TargetTag
from posepointer.pose_engine import CycleReport, FrameScheduler
from posepointer.session import SessionController
from posepointer.ui.overlays import RenderSurface

DEVICES = [CameraDevice(id="1", label="USB Camera"), CameraDevice(id="0", label="Integrated Camera")]


class EyesLoader(CountingLoader):
    def __call__(self, choice):
        oracle = FakeOracle([[make_subject({"left_eye": (150, 120, 0.9), "right_eye": (170, 120, 0.9)})]])
        self.loaded.append(oracle)
        return oracle


@pytest.fixture
def client(monkeypatch):
    providers = []

    def build(profile_name):
        profile = get_profile(profile_name)
        provider = FakeProvider(DEVICES)
        providers.append(provider)
        scheduler = FrameScheduler(profile, surface=RenderSurface(64, 36), publisher=app_main.hub.publish)
        return SessionController(profile, scheduler, provider=provider, backend_loader=EyesLoader())

    monkeypatch.setattr(app_main, "_build_controller", build)
    with TestClient(app_main.app) as c:
        c.providers = providers
        yield c
    app_main.controller = None
    app_main.session_task = None


def test_status_is_idle_without_session(client) -> None:
    r = client.get("/session/status")

    assert r.status_code == 200
    assert r.json()["state"] == "idle"


def test_switching_camera_needs_a_session(client) -> None:
    r = client.post("/session/camera", json={"camera_id": "0"})

    assert r.status_code == 409


def test_cameras_are_listed_in_profile_order(client) -> None:
    r = client.get("/cameras", params={"profile": "hd"})

    assert r.status_code == 200
    assert [d["label"] for d in r.json()] == ["Integrated Camera", "USB Camera"]


def test_unknown_profile_is_rejected(client) -> None:
    assert client.get("/cameras", params={"profile": "8k"}).status_code == 400
    assert client.post("/session/start", json={"profile": "8k"}).status_code == 422


def test_session_start_switch_stop(client) -> None:
    r = client.post("/session/start", json={"camera_id": "1", "profile": "hd"})
    assert r.json() == {"status": "success", "message": "Started camera 1"}

    status = client.get("/session/status").json()
    assert status["active_device_id"] == "1"
    assert status["model_name"] == "FakePose"

    r = client.post("/session/camera", json={"camera_id": "0"})
    assert r.json()["status"] == "success"
    assert client.get("/session/status").json()["active_device_id"] == "0"

    r = client.post("/session/stop")
    assert r.json()["status"] == "success"
    assert client.get("/session/status").json()["state"] == "idle"

    provider = client.providers[-1]
    assert provider.events == [("open", "1"), ("close", "1"), ("open", "0"), ("close", "0")]


def test_start_falls_back_to_first_camera(client) -> None:
    # "9" is not enumerated, so the first device in uhd (descending) order is used
    r = client.post("/session/start", json={"camera_id": "9", "profile": "uhd"})
    assert r.json()["message"] == "Started camera 1"
    client.post("/session/stop")


class RecordingSocket:
    def __init__(self):
        self.sent = []

    async def send_text(self, data: str) -> None:
        self.sent.append(data)


def test_hub_encodes_frames_in_the_broadcaster() -> None:
    hub = app_main.StreamHub()
    socket = RecordingSocket()
    hub.sockets.append(socket)
    canvas = np.zeros((36, 64, 3), dtype=np.uint8)
    report = CycleReport(
        timestamp_ms=12.0, tag=TargetTag.EYES, detected=True, target=LogicalTarget(x=0.5, y=0.5),
        pixel=(32, 18), depth=100, summary="x:32 y:18 z:100", telemetry=None, canvas=canvas,
        model_name="FakePose",
    )

    async def scenario():
        broadcaster = asyncio.create_task(hub.broadcast_forever())
        await asyncio.sleep(0)
        hub.publish(report)
        published_synchronously = hub.latest is not None
        canvas[:] = 255   # next cycle redraws the live surface
        for _ in range(200):
            if socket.sent:
                break
            await asyncio.sleep(0.01)
        broadcaster.cancel()
        return published_synchronously

    assert not asyncio.run(scenario())

    message = json.loads(socket.sent[0])
    assert message["summary"] == "x:32 y:18 z:100"
    assert message["tag"] == "eyes"
    assert (message["pixel_x"], message["pixel_y"], message["depth"]) == (32, 18, 100)
    jpeg = base64.b64decode(message["frame_base64"])
    assert jpeg[:2] == b"\xff\xd8"
    # encoded from the copy taken at publish time, not the redrawn surface
    assert cv2.imdecode(np.frombuffer(jpeg, np.uint8), cv2.IMREAD_COLOR).max() < 16
