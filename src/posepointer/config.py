# src/posepointer/config.py
# ---------------------------------------------------------------
# This file contains all the global configuration parameters
# used across PosePointer: render surface sizes, confidence
# thresholds, pacing, depth-proxy constants, camera constraints
# and model selection.
# The two pipeline profiles (HD and UHD) live here so the rest of
# the code only ever reads a PipelineProfile.
# ---------------------------------------------------------------

from dataclasses import dataclass, field   # Used to define lightweight configuration classes
from enum import Enum
from typing import Dict, Optional

from .utils.resources import resource_path

# ------------------ Model File Paths ------------------
# TensorFlow Lite MoveNet single-pose models used for local inference.
# They can be replaced with custom models if needed.

MOVENET_LIGHTNING_PATH = resource_path("models/movenet_singlepose_lightning.tflite")  # Low-latency variant
MOVENET_THUNDER_PATH   = resource_path("models/movenet_singlepose_thunder.tflite")    # Heavier, more accurate variant

# ------------------ Backend Options ------------------

BACKEND_MOVENET = "movenet"          # TensorFlow Lite MoveNet single pose
BACKEND_MEDIAPIPE = "mediapipe"      # Google MediaPipe Pose, CPU-only backend

MOVENET_VARIANTS = ("lightning", "thunder")
MEDIAPIPE_VARIANTS = ("lite", "full", "heavy")   # maps to model_complexity 0/1/2

# ------------------ Interpretation Defaults ------------------

FACE_LANDMARKS = ("left_eye", "right_eye", "nose", "left_ear", "right_ear")
DEPTH_FALLBACK = 40                  # Depth value reported when no face extent is available
INITIAL_TARGET = (0.5, 0.5)          # Pointer starts at the centre of the frame

# ------------------ Telemetry ------------------

INFO_INTERVAL_MS = 100.0             # Min spacing between detection-summary updates
STAT_INTERVAL_MS = 250.0             # Min spacing between telemetry triple updates
NOT_MEASURED = "nm"                  # Placeholder shown before the first publication

# ------------------ Scheduling ------------------

DISPLAY_REFRESH_HZ = 120.0           # Tick rate standing in for the display's vertical refresh
MAX_SUBJECTS = 1                     # Only one tracked subject is ever considered

# ------------------ Camera ------------------

MAX_CAMERA_INDEX = 10                # Highest OpenCV index scanned during enumeration
JPEG_QUALITY = 80                    # Quality of frames streamed over the WebSocket

WINDOW_TITLE = "PosePointer"


class SortOrder(str, Enum):
    ASCENDING = "ascending"
    DESCENDING = "descending"


class DepthNormalization(str, Enum):
    WIDTH = "width"                          # depth = K / face width
    WIDTH_PLUS_HEIGHT = "width_plus_height"  # depth = K / (face width + face height)


class ModelReload(str, Enum):
    ALWAYS = "always"                # Reload the model on every camera switch
    IF_UNLOADED = "if_unloaded"      # Reuse a loaded model across camera switches


# ------------------ BackendChoice Dataclass ------------------
# Represents the selected pose-detection backend as an object,
# making it easy to pass around between the controller and loaders.

@dataclass
class BackendChoice:
    name: str = BACKEND_MOVENET      # 'movenet' or 'mediapipe'
    variant: str = "lightning"       # 'lightning' | 'thunder' (MoveNet) or 'lite' | 'full' | 'heavy' (MediaPipe)

    def label(self) -> str:
        return f"{self.name}:{self.variant}"


@dataclass(frozen=True)
class CaptureSize:
    ideal_width: int
    ideal_height: int
    min_width: int
    min_height: int


# ------------------ PipelineProfile Dataclass ------------------
# One profile parameterizes the whole per-frame pipeline. Everything
# that differed between the HD and UHD builds of the overlay is here.

@dataclass(frozen=True)
class PipelineProfile:
    name: str
    surface_width: int
    surface_height: int
    confidence_threshold: float
    frame_rate_ceiling: Optional[float]          # None = process every tick
    depth_constant: float
    depth_normalization: DepthNormalization
    device_sort_order: SortOrder
    model_reload: ModelReload
    split_wrist_tags: bool                       # False collapses left/right wrist into one "wrist" tag
    marker_radius: int
    capture: CaptureSize
    backend: BackendChoice = field(default_factory=BackendChoice)
    refresh_rate_hz: float = DISPLAY_REFRESH_HZ

    @property
    def min_frame_interval_ms(self) -> float:
        if not self.frame_rate_ceiling:
            return 0.0
        return 1000.0 / self.frame_rate_ceiling


HD_PROFILE = PipelineProfile(
    name="hd",
    surface_width=1920,
    surface_height=1080,
    confidence_threshold=0.2,
    frame_rate_ceiling=70.0,
    depth_constant=2000.0,
    depth_normalization=DepthNormalization.WIDTH,
    device_sort_order=SortOrder.ASCENDING,
    model_reload=ModelReload.ALWAYS,
    split_wrist_tags=True,
    marker_radius=6,
    capture=CaptureSize(ideal_width=1920, ideal_height=1080, min_width=1280, min_height=720),
)

UHD_PROFILE = PipelineProfile(
    name="uhd",
    surface_width=3840,
    surface_height=2160,
    confidence_threshold=0.4,
    frame_rate_ceiling=None,
    depth_constant=4000.0,
    depth_normalization=DepthNormalization.WIDTH_PLUS_HEIGHT,
    device_sort_order=SortOrder.DESCENDING,
    model_reload=ModelReload.IF_UNLOADED,
    split_wrist_tags=False,
    marker_radius=12,
    capture=CaptureSize(ideal_width=3840, ideal_height=2160, min_width=1920, min_height=1080),
    backend=BackendChoice(name=BACKEND_MOVENET, variant="thunder"),
)

PROFILES: Dict[str, PipelineProfile] = {p.name: p for p in (HD_PROFILE, UHD_PROFILE)}
DEFAULT_PROFILE = HD_PROFILE.name


def get_profile(name: Optional[str]) -> PipelineProfile:
    """Look up a profile by name; None selects the default."""
    key = (name or DEFAULT_PROFILE).lower()
    if key not in PROFILES:
        valid = ", ".join(sorted(PROFILES))
        raise ValueError(f"Unknown profile '{name}'. Expected one of: {valid}")
    return PROFILES[key]
