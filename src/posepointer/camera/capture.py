# src/posepointer/camera/capture.py
# --------------------------------------------------------------------
# Capture streams: an OpenCV VideoCapture plus a reader thread that
# keeps only the most recent frame, so the scheduler always sees the
# live image without blocking on the device.
# --------------------------------------------------------------------

from __future__ import annotations
import logging
import threading
from typing import Iterable, List, Optional

import cv2
import numpy as np

from ..config import MAX_CAMERA_INDEX
from ..data_models import CameraDevice, CaptureConstraints
from ..errors import SourceUnavailable
from ..utils.camera_scan import enumerate_cameras

logger = logging.getLogger(__name__)


class CaptureStream:
    """Live frame source for one opened camera."""

    def __init__(self, device_id: str, cap: cv2.VideoCapture):
        self.device_id = device_id
        self._cap = cap
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None
        self._running = True
        self._thread = threading.Thread(target=self._reader, name=f"capture-{device_id}", daemon=True)
        self._thread.start()

    def _reader(self) -> None:
        while self._running:
            ok, frame = self._cap.read()
            if not ok:
                logger.warning("[Capture] Camera %s stopped delivering frames", self.device_id)
                self._running = False
                break
            with self._lock:
                self._frame = frame

    @property
    def active(self) -> bool:
        return self._running

    @property
    def is_readable(self) -> bool:
        with self._lock:
            return self._frame is not None

    @property
    def width(self) -> int:
        with self._lock:
            return 0 if self._frame is None else int(self._frame.shape[1])

    @property
    def height(self) -> int:
        with self._lock:
            return 0 if self._frame is None else int(self._frame.shape[0])

    def read_latest(self) -> Optional[np.ndarray]:
        with self._lock:
            return self._frame

    def close(self) -> None:
        # stop the reader first so the device is not read after release
        self._running = False
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout=2.0)
        if self._cap is not None:
            self._cap.release()
            self._cap = None
        with self._lock:
            self._frame = None
        logger.info("[Capture] Released camera %s", self.device_id)


class CameraProvider:
    """Enumerates, opens and closes OpenCV cameras."""

    def __init__(self, max_index: int = MAX_CAMERA_INDEX):
        self.max_index = max_index

    def enumerate(self, skip: Iterable[str] = ()) -> List[CameraDevice]:
        return enumerate_cameras(self.max_index, skip)

    def open(self, device_id: Optional[str], constraints: CaptureConstraints) -> CaptureStream:
        try:
            index = int(device_id) if device_id is not None else 0
        except ValueError:
            raise SourceUnavailable(f"Unknown camera id '{device_id}'", device_id)
        cap = cv2.VideoCapture(index, cv2.CAP_ANY)
        if not cap.isOpened():
            cap.release()
            raise SourceUnavailable(f"Camera {index} could not be opened (missing, busy or permission denied)", device_id)

        # request the ideal resolution; the driver may pick something else
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, constraints.ideal_width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, constraints.ideal_height)
        w = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        h = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if w < constraints.min_width or h < constraints.min_height:
            cap.release()
            raise SourceUnavailable(
                f"Camera {index} delivers {w}x{h}, below the minimum "
                f"{constraints.min_width}x{constraints.min_height}", device_id)

        logger.info("[Capture] Opened camera %s at %dx%d", index, w, h)
        return CaptureStream(str(index), cap)

    def close(self, stream: Optional[CaptureStream]) -> None:
        if stream is not None:
            stream.close()
