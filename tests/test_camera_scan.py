from __future__ import annotations

import numpy as np

from posepointer.config import SortOrder
from posepointer.data_models import CameraDevice
from posepointer.utils import camera_scan


class FakeCap:
    working = {0, 2}
    opened = []

    def __init__(self, index, api=None):
        self.index = index
        self.opened.append(index)
        self.released = False

    def isOpened(self):
        return self.index in self.working

    def read(self):
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self):
        self.released = True


def test_enumerate_keeps_only_working_indices(monkeypatch) -> None:
    monkeypatch.setattr(camera_scan.cv2, "VideoCapture", FakeCap)
    monkeypatch.setattr(camera_scan, "_device_label", lambda i: "HD Webcam" if i == 2 else "")

    devices = camera_scan.enumerate_cameras(max_index=3)

    assert [d.id for d in devices] == ["0", "2"]
    assert devices[0].label == "Camera 1"
    assert devices[1].label == "HD Webcam"


def test_held_camera_is_not_reopened(monkeypatch) -> None:
    monkeypatch.setattr(camera_scan.cv2, "VideoCapture", FakeCap)
    monkeypatch.setattr(FakeCap, "opened", [])
    monkeypatch.setattr(camera_scan, "_device_label", lambda i: "")

    devices = camera_scan.enumerate_cameras(max_index=3, skip=("0",))

    assert 0 not in FakeCap.opened
    # the held camera keeps its slot in the numbering
    assert [(d.id, d.label) for d in devices] == [("2", "Camera 2")]


def test_sort_is_case_insensitive_and_stable() -> None:
    devices = [
        CameraDevice(id="0", label="b cam"),
        CameraDevice(id="1", label="A cam"),
        CameraDevice(id="2", label="B CAM"),
    ]

    asc = camera_scan.sort_devices(devices, SortOrder.ASCENDING)
    desc = camera_scan.sort_devices(devices, SortOrder.DESCENDING)

    assert [d.id for d in asc] == ["1", "0", "2"]
    assert [d.id for d in desc] == ["0", "2", "1"]
