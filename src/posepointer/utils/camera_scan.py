# src/posepointer/utils/camera_scan.py
# ---------------------------------------------------------------
# This module provides utilities to detect and list available cameras.
# It helps identify which camera indices are valid for OpenCV to use,
# and orders them by their display label.
# ---------------------------------------------------------------

import os
import cv2                          # OpenCV, used for accessing and testing camera devices
from typing import Iterable, List

from ..config import MAX_CAMERA_INDEX, SortOrder
from ..data_models import CameraDevice


def _device_label(index: int) -> str:
    """Human-readable name from V4L2 sysfs when available (Linux); empty otherwise."""
    path = f"/sys/class/video4linux/video{index}/name"
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().strip()
    except OSError:
        return ""


def enumerate_cameras(max_index: int = MAX_CAMERA_INDEX, skip: Iterable[str] = ()) -> List[CameraDevice]:
    """
    Scans through camera indices (0 to max_index) and returns the devices
    that can successfully capture a frame, in index order.

    Ids in `skip` are devices already held open by a session: they are not
    opened again and are left out of the result, but still count towards
    the "Camera {n}" numbering of unlabeled devices.
    """
    cams: List[CameraDevice] = []
    held = set(skip)
    position = 0

    for i in range(max_index + 1):
        if str(i) in held:
            position += 1
            continue
        # Let OpenCV pick the best available backend
        cap = cv2.VideoCapture(i, cv2.CAP_ANY)
        ok_read = False
        if cap.isOpened():
            # Confirm the camera is actually producing data
            ok_read, _ = cap.read()
        # Release immediately to avoid locking the device
        cap.release()

        if ok_read:
            position += 1
            label = _device_label(i) if os.name != "nt" else ""
            cams.append(CameraDevice(id=str(i), label=label or f"Camera {position}"))

    return cams


def sort_devices(devices: Iterable[CameraDevice], order: SortOrder = SortOrder.ASCENDING) -> List[CameraDevice]:
    """Case-insensitive sort by label; stable so equal labels keep enumeration order."""
    return sorted(devices, key=lambda d: (d.label or "").lower(), reverse=(order == SortOrder.DESCENDING))
