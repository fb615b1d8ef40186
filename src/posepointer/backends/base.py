# src/posepointer/backends/base.py
from typing import List

import numpy as np

from ..config import MAX_SUBJECTS
from ..data_models import Subject

# MoveNet / COCO keypoint order; MediaPipe results are renamed onto these names
KEYPOINT_NAMES = [
    "nose", "left_eye", "right_eye", "left_ear", "right_ear",
    "left_shoulder", "right_shoulder", "left_elbow", "right_elbow",
    "left_wrist", "right_wrist", "left_hip", "right_hip",
    "left_knee", "right_knee", "left_ankle", "right_ankle",
]


class PoseBackend:
    """Abstract base class (interface) for pose-estimation backends like MoveNet or MediaPipe."""

    def name(self) -> str:
        # Returns a human-readable backend name (e.g., "MoveNet-Lightning")
        raise NotImplementedError

    def is_ready(self) -> bool:
        """True once the model is loaded and until close() is called."""
        return True

    def infer(self, frame_bgr: np.ndarray, max_subjects: int = MAX_SUBJECTS) -> List[Subject]:
        """
        Run pose inference on a single BGR frame.

        Returns:
            up to `max_subjects` subjects (possibly none); landmark x/y are
            pixel coordinates on the given frame.
        Raises:
            OracleUnready if called before the model is loaded or after close().
        """
        raise NotImplementedError

    def close(self) -> None:
        # Optional cleanup or resource release (e.g., model unloading)
        pass
