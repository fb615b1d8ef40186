# src/posepointer/backends/loader.py
from ..config import BACKEND_MEDIAPIPE, BACKEND_MOVENET, MEDIAPIPE_VARIANTS, MOVENET_VARIANTS, BackendChoice
from ..errors import ModelLoadError
from .base import PoseBackend


def load_backend(choice: BackendChoice) -> PoseBackend:
    """Build the pose backend for (model kind, variant). Heavy imports stay local."""
    kind = choice.name.lower()
    if kind == BACKEND_MOVENET:
        if choice.variant not in MOVENET_VARIANTS:
            raise ModelLoadError(f"Unknown MoveNet variant '{choice.variant}'")
        from .movenet_backend import MoveNetTFLiteBackend
        return MoveNetTFLiteBackend(variant=choice.variant)
    if kind == BACKEND_MEDIAPIPE:
        if choice.variant not in MEDIAPIPE_VARIANTS:
            raise ModelLoadError(f"Unknown MediaPipe variant '{choice.variant}'")
        from .mediapipe_backend import MediaPipeBackend
        return MediaPipeBackend(variant=choice.variant)
    raise ModelLoadError(f"Unknown pose backend '{choice.name}'")
