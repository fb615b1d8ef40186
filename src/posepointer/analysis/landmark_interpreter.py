# src/posepointer/analysis/landmark_interpreter.py
# ---------------------------------------------------------------
# Turns the landmarks of one detected subject into a single pointer
# target. Tiers are evaluated in priority order:
#   1. both eyes  -> their midpoint
#   2. a wrist    -> right wrist preferred over left
#   3. nothing    -> no target; caller keeps the last-known-good one
# Also estimates a rough depth value from the size of the face.
# ---------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from ..config import DEPTH_FALLBACK, FACE_LANDMARKS, DepthNormalization
from ..data_models import LogicalTarget, Subject, TargetTag
from ..geometry.viewport import round_half_away

# BGR colours used for the on-screen marker
TAG_COLORS = {
    TargetTag.EYES: (0, 255, 0),           # green
    TargetTag.RIGHT_WRIST: (255, 0, 0),    # blue
    TargetTag.LEFT_WRIST: (0, 0, 255),     # red
    TargetTag.WRIST: (255, 0, 0),          # blue
    TargetTag.NONE: (0, 0, 255),           # red
}


@dataclass(frozen=True)
class Interpretation:
    target: Optional[LogicalTarget]
    tag: TargetTag

    @property
    def detected(self) -> bool:
        return self.target is not None


@dataclass(frozen=True)
class FaceExtent:
    width: float
    height: float


def _clamp01(v: float) -> float:
    return max(0.0, min(1.0, v))


def _normalized(x: float, y: float, frame_width: float, frame_height: float) -> LogicalTarget:
    return LogicalTarget(x=_clamp01(x / frame_width), y=_clamp01(y / frame_height))


def interpret(
    subject: Optional[Subject],
    frame_width: float,
    frame_height: float,
    confidence_threshold: float,
    split_wrist_tags: bool = True,
) -> Interpretation:
    """Pick the pointer target for this cycle, or none (tag NONE)."""
    if subject is None or frame_width <= 0 or frame_height <= 0:
        return Interpretation(None, TargetTag.NONE)

    left_eye = subject.find("left_eye", confidence_threshold)
    right_eye = subject.find("right_eye", confidence_threshold)
    if left_eye and right_eye:
        mid_x = (left_eye.x + right_eye.x) / 2
        mid_y = (left_eye.y + right_eye.y) / 2
        return Interpretation(_normalized(mid_x, mid_y, frame_width, frame_height), TargetTag.EYES)

    right_wrist = subject.find("right_wrist", confidence_threshold)
    left_wrist = subject.find("left_wrist", confidence_threshold)
    wrist = right_wrist or left_wrist
    if wrist:
        if not split_wrist_tags:
            tag = TargetTag.WRIST
        else:
            tag = TargetTag.RIGHT_WRIST if right_wrist else TargetTag.LEFT_WRIST
        return Interpretation(_normalized(wrist.x, wrist.y, frame_width, frame_height), tag)

    return Interpretation(None, TargetTag.NONE)


def update_target(previous: LogicalTarget, result: Interpretation) -> LogicalTarget:
    # last-known-good: a cycle without a target leaves the pointer where it was
    return result.target if result.target is not None else previous


def face_extent(subject: Optional[Subject], confidence_threshold: float) -> Optional[FaceExtent]:
    """Bounding-box size of the confident facial landmarks; None if fewer than two qualify."""
    if subject is None:
        return None
    found = [subject.find(name, confidence_threshold) for name in FACE_LANDMARKS]
    pts = [lm for lm in found if lm is not None]
    if len(pts) < 2:
        return None
    xs = [lm.x for lm in pts]
    ys = [lm.y for lm in pts]
    return FaceExtent(width=max(xs) - min(xs), height=max(ys) - min(ys))


def depth_proxy(
    extent: Optional[FaceExtent],
    constant: float,
    normalization: DepthNormalization = DepthNormalization.WIDTH,
) -> int:
    """Inverse face size as a rough distance-to-camera value."""
    if extent is None:
        return DEPTH_FALLBACK
    if normalization == DepthNormalization.WIDTH_PLUS_HEIGHT:
        size = extent.width + extent.height
    else:
        size = extent.width
    if size <= 0:
        return DEPTH_FALLBACK
    return round_half_away(constant / size)


def marker_color(tag: TargetTag) -> Tuple[int, int, int]:
    return TAG_COLORS.get(tag, TAG_COLORS[TargetTag.NONE])


def format_summary(detected: bool, x: int, y: int, z: int) -> str:
    return f"x:{x} y:{y} z:{z}" if detected else "No detection"
