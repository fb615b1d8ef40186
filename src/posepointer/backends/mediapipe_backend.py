# src/posepointer/backends/mediapipe_backend.py
import logging
from typing import List

import cv2
import numpy as np
import mediapipe as mp

from ..config import MAX_SUBJECTS
from ..data_models import Landmark, Subject
from ..errors import ModelLoadError, OracleUnready
from .base import PoseBackend

logger = logging.getLogger(__name__)

# Initialize MediaPipe Pose solution handle
mp_pose = mp.solutions.pose

# Map landmark indices to the MoveNet / COCO keypoint names
POSE_NAMES = {
    0:  "nose",
    2:  "left_eye",      5:  "right_eye",
    7:  "left_ear",      8:  "right_ear",
    11: "left_shoulder", 12: "right_shoulder",
    13: "left_elbow",    14: "right_elbow",
    15: "left_wrist",    16: "right_wrist",
    23: "left_hip",      24: "right_hip",
    25: "left_knee",     26: "right_knee",
    27: "left_ankle",    28: "right_ankle",
}

COMPLEXITY = {"lite": 0, "full": 1, "heavy": 2}


class MediaPipeBackend(PoseBackend):
    """
    MediaPipe Pose backend (single person by construction).

    Landmark visibility is used as the confidence score; normalized
    coordinates are scaled to the input frame's pixel size.
    """

    def __init__(self, variant: str = "full"):
        self.variant = variant
        try:
            self.pose = mp_pose.Pose(
                static_image_mode=False,
                model_complexity=COMPLEXITY.get(variant, 1),
                smooth_landmarks=True,
                enable_segmentation=False,
                min_detection_confidence=0.5,
                min_tracking_confidence=0.5,
            )
        except Exception as e:
            raise ModelLoadError(f"MediaPipe Pose init failed: {e}") from e
        self._closed = False
        logger.info("[MediaPipe] Loaded Pose (%s)", variant)

    def name(self) -> str:
        return f"MediaPipe-{self.variant.capitalize()}"

    def is_ready(self) -> bool:
        return not self._closed

    def infer(self, frame_bgr: np.ndarray, max_subjects: int = MAX_SUBJECTS) -> List[Subject]:
        if self._closed:
            raise OracleUnready("MediaPipe backend is closed")
        if max_subjects < 1:
            return []

        rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)  # MediaPipe expects RGB
        res = self.pose.process(rgb)
        if not res.pose_landmarks:
            return []

        h, w = frame_bgr.shape[:2]
        landmarks: List[Landmark] = []
        for idx, lm in enumerate(res.pose_landmarks.landmark):
            name = POSE_NAMES.get(idx)
            if name is None:
                continue
            landmarks.append(Landmark(
                name=name,
                x=float(np.clip(lm.x, 0.0, 1.0)) * w,
                y=float(np.clip(lm.y, 0.0, 1.0)) * h,
                score=float(np.clip(getattr(lm, "visibility", 1.0), 0.0, 1.0)),
            ))
        return [Subject(landmarks=landmarks)]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.pose.close()
