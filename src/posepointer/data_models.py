# src/posepointer/data_models.py

from __future__ import annotations
from enum import Enum
from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field, confloat

from .config import NOT_MEASURED

# --- Base Structures ---

class Landmark(BaseModel):
    """Named keypoint in source-frame pixel space with confidence."""
    model_config = ConfigDict(frozen=True)

    name: str = Field(description="Canonical keypoint name (e.g. left_eye).")
    x: float = Field(description="X in source-frame pixels.")
    y: float = Field(description="Y in source-frame pixels.")
    score: confloat(ge=0.0, le=1.0) = Field(description="Confidence.")


class Subject(BaseModel):
    """One detected person: its landmarks in the order the model reported them."""
    model_config = ConfigDict(frozen=True)

    landmarks: List[Landmark] = []

    def find(self, name: str, threshold: float) -> Optional[Landmark]:
        # first landmark with this name whose score strictly clears the threshold
        for lm in self.landmarks:
            if lm.name == name and lm.score > threshold:
                return lm
        return None


class LogicalTarget(BaseModel):
    """Pointer position normalized to the source frame."""
    model_config = ConfigDict(frozen=True)

    x: confloat(ge=0.0, le=1.0)
    y: confloat(ge=0.0, le=1.0)


class Placement(BaseModel):
    """Rectangle of the render surface the source frame is drawn into."""
    model_config = ConfigDict(frozen=True)

    offset_x: float
    offset_y: float
    width: float
    height: float


class TargetTag(str, Enum):
    EYES = "eyes"
    RIGHT_WRIST = "right_wrist"
    LEFT_WRIST = "left_wrist"
    WRIST = "wrist"
    NONE = "none"


# --- Telemetry ---

class Metrics(BaseModel):
    processing_duration_ms: int = 0
    frames_per_second: int = 0
    load_ratio: float = 0.0


class TelemetryReadout(BaseModel):
    """The three published display strings."""
    cpu: str = NOT_MEASURED
    fps: str = NOT_MEASURED
    detect_time: str = NOT_MEASURED


# --- Devices ---

class CameraDevice(BaseModel):
    id: str
    label: str


class CaptureConstraints(BaseModel):
    ideal_width: int = 1920
    ideal_height: int = 1080
    min_width: int = 1280
    min_height: int = 720


# --- WebSocket Payload ---

class FramePayload(BaseModel):
    timestamp: float
    frame_base64: str
    summary: str
    telemetry: TelemetryReadout
    tag: TargetTag = TargetTag.NONE
    pixel_x: int
    pixel_y: int
    depth: int
    model_name: str = "Unknown"


# --- API Requests ---

class StartSessionRequest(BaseModel):
    camera_id: Optional[str] = None
    profile: Literal["hd", "uhd"] = "hd"


class SelectCameraRequest(BaseModel):
    camera_id: str


class StatusResponse(BaseModel):
    status: Literal["success", "error"]
    message: str


class SessionStatus(BaseModel):
    state: str
    active_device_id: Optional[str] = None
    model_name: Optional[str] = None
    message: str = ""
