from __future__ import annotations

import asyncio
import dataclasses

import pytest

from fakes import BlockingOracle, CountingLoader, FakeOracle, FakeProvider
from posepointer.config import HD_PROFILE, UHD_PROFILE, ModelReload
from posepointer.data_models import CameraDevice
from posepointer.errors import ModelLoadError, SourceUnavailable
from posepointer.pose_engine import CycleOutcome, FrameScheduler, SchedulerState
from posepointer.session import MSG_DETECTING, MSG_SWITCHING, SessionController
from posepointer.ui.overlays import RenderSurface

DEVICES = [
    CameraDevice(id="b", label="Webcam B"),
    CameraDevice(id="a", label="webcam A"),
    CameraDevice(id="c", label="Zoom capture"),
]


def make_controller(profile=HD_PROFILE, devices=DEVICES, unavailable=(), loader=None):
    scheduler = FrameScheduler(profile, surface=RenderSurface(32, 18))
    provider = FakeProvider(list(devices), unavailable=unavailable)
    messages = []
    controller = SessionController(
        profile, scheduler, provider=provider,
        backend_loader=loader or CountingLoader(), on_status=messages.append,
    )
    return controller, provider, messages


def test_preferred_device_is_used_when_present() -> None:
    controller, provider, messages = make_controller()

    async def scenario():
        state = await controller.start("c")
        await controller.shutdown()
        return state

    state = asyncio.run(scenario())

    assert state.active_device_id == "c"
    assert provider.events[0] == ("open", "c")
    assert messages[:2] == [MSG_SWITCHING, MSG_DETECTING]


def test_unknown_preference_falls_back_to_first_sorted_device() -> None:
    controller, provider, _ = make_controller()

    async def scenario():
        state = await controller.start("zzz")
        await controller.shutdown()
        return state

    assert asyncio.run(scenario()).active_device_id == "a"


@pytest.mark.parametrize(
    "profile,expected",
    [(HD_PROFILE, ["webcam A", "Webcam B", "Zoom capture"]),
     (UHD_PROFILE, ["Zoom capture", "Webcam B", "webcam A"])],
)
def test_device_listing_is_sorted_per_profile(profile, expected) -> None:
    controller, _, _ = make_controller(profile)

    devices = asyncio.run(controller.list_devices())

    assert [d.label for d in devices] == expected
    controller.scheduler.stop()


def test_switch_closes_old_stream_before_opening_new() -> None:
    controller, provider, _ = make_controller()

    async def scenario():
        await controller.start("a")
        first_stream = controller.state.stream_handle
        await controller.select_device("b")
        await controller.shutdown()
        return first_stream

    first_stream = asyncio.run(scenario())

    assert provider.events[:3] == [("open", "a"), ("close", "a"), ("open", "b")]
    assert first_stream.closed


def test_selecting_active_device_is_a_no_op() -> None:
    controller, provider, _ = make_controller()

    async def scenario():
        await controller.start("a")
        await controller.select_device("a")
        await controller.shutdown()

    asyncio.run(scenario())

    assert provider.events == [("open", "a"), ("close", "a")]


@pytest.mark.parametrize("policy,expected_loads", [(ModelReload.ALWAYS, 2), (ModelReload.IF_UNLOADED, 1)])
def test_model_reload_policy(policy, expected_loads) -> None:
    loader = CountingLoader()
    profile = dataclasses.replace(HD_PROFILE, model_reload=policy)
    controller, _, _ = make_controller(profile, loader=loader)

    async def scenario():
        await controller.start("a")
        await controller.select_device("b")
        await controller.shutdown()

    asyncio.run(scenario())

    assert len(loader.loaded) == expected_loads
    assert all(oracle.closed for oracle in loader.loaded)


def test_no_cameras_raises_source_unavailable() -> None:
    controller, _, messages = make_controller(devices=[])

    with pytest.raises(SourceUnavailable):
        asyncio.run(controller.start())
    assert messages[-1] == "No usable camera found."
    controller.scheduler.stop()


def test_busy_camera_raises_and_reports() -> None:
    controller, _, messages = make_controller(unavailable=("a",))

    with pytest.raises(SourceUnavailable):
        asyncio.run(controller.start("a"))
    assert messages[-1].startswith("Camera error:")
    assert controller.scheduler.state == SchedulerState.RECONFIGURING
    controller.scheduler.stop()


def test_model_load_failure_releases_stream() -> None:
    def failing_loader(choice):
        raise ModelLoadError("weights missing")

    controller, provider, messages = make_controller(loader=failing_loader)

    with pytest.raises(ModelLoadError):
        asyncio.run(controller.start("a"))
    assert provider.events == [("open", "a"), ("close", "a")]
    assert messages[-1] == "Model error: weights missing"
    controller.scheduler.stop()


def test_shutdown_releases_everything() -> None:
    loader = CountingLoader()
    controller, provider, _ = make_controller(loader=loader)

    async def scenario():
        await controller.start("a")
        stream = controller.state.stream_handle
        await controller.shutdown()
        return stream

    stream = asyncio.run(scenario())

    assert stream.closed
    assert loader.loaded[0].closed
    assert controller.state.stream_handle is None
    assert controller.scheduler.state == SchedulerState.STOPPED


def test_run_releases_after_lost_camera() -> None:
    controller, provider, messages = make_controller()

    async def scenario():
        await controller.start("a")
        controller.state.stream_handle.active = False
        await asyncio.wait_for(controller.run(), timeout=5)

    asyncio.run(scenario())

    assert messages[-1] == "Camera disconnected."
    assert provider.events == [("open", "a"), ("close", "a")]


class TrackingOracle(BlockingOracle):
    """Remembers whether close() arrived while infer() was still running."""

    def __init__(self):
        super().__init__()
        self.busy = False
        self.closed_while_busy = False

    def infer(self, frame, max_subjects: int = 1):
        self.busy = True
        try:
            return super().infer(frame, max_subjects)
        finally:
            self.busy = False

    def close(self) -> None:
        self.closed_while_busy = self.busy
        super().close()


@pytest.mark.parametrize("action", ["switch", "shutdown"])
def test_model_is_closed_only_after_running_inference_returns(action) -> None:
    busy = TrackingOracle()
    queued = [busy]
    controller, _, _ = make_controller(loader=lambda choice: queued.pop(0) if queued else FakeOracle())

    async def scenario():
        await controller.start("a")
        tick = asyncio.create_task(controller.scheduler.tick(0))
        await asyncio.get_running_loop().run_in_executor(None, busy.entered.wait, 5.0)
        if action == "switch":
            change = asyncio.create_task(controller.select_device("b"))
        else:
            change = asyncio.create_task(controller.shutdown())
        await asyncio.sleep(0.05)
        closed_early = busy.closed
        busy.release.set()
        outcome = await tick
        await asyncio.wait_for(change, timeout=5)
        await controller.shutdown()
        return closed_early, outcome

    closed_early, outcome = asyncio.run(scenario())

    assert not closed_early
    assert outcome == CycleOutcome.STALE
    assert busy.closed
    assert not busy.closed_while_busy


def test_listing_during_session_leaves_active_camera_alone() -> None:
    controller, provider, _ = make_controller()

    async def scenario():
        await controller.start("a")
        devices = await controller.list_devices()
        await controller.shutdown()
        return devices

    devices = asyncio.run(scenario())

    assert provider.skips == [(), ("a",)]
    assert [d.label for d in devices] == ["webcam A", "Webcam B", "Zoom capture"]
