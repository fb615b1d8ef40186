# src/posepointer/geometry/viewport.py
# --------------------------------------------------------------------
# Letterbox / pillarbox placement of a source frame inside a fixed
# render surface, and conversion of normalized pointer coordinates
# into surface pixels.
# --------------------------------------------------------------------

from __future__ import annotations
import math
from typing import Tuple

from ..data_models import LogicalTarget, Placement


def round_half_away(value: float) -> int:
    """Round to the nearest integer, ties away from zero (2.5 -> 3, -2.5 -> -3)."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def compute_placement(frame_w: float, frame_h: float, surface_w: float, surface_h: float) -> Placement:
    """
    Fit the frame inside the surface preserving its aspect ratio.

    A strictly wider frame fills the surface width and is centred vertically;
    otherwise (equal ratios included) it fills the height and is centred horizontally.
    """
    if frame_w <= 0 or frame_h <= 0 or surface_w <= 0 or surface_h <= 0:
        raise ValueError(
            f"Placement needs positive dimensions, got frame {frame_w}x{frame_h} "
            f"and surface {surface_w}x{surface_h}"
        )

    frame_ratio = frame_w / frame_h
    surface_ratio = surface_w / surface_h

    if frame_ratio > surface_ratio:
        width = float(surface_w)
        height = min(surface_w * frame_h / frame_w, float(surface_h))  # multiply first: exact for common sizes
        offset_x = 0.0
        offset_y = (surface_h - height) / 2
    else:
        height = float(surface_h)
        width = min(surface_h * frame_w / frame_h, float(surface_w))
        offset_x = (surface_w - width) / 2
        offset_y = 0.0

    return Placement(offset_x=offset_x, offset_y=offset_y, width=width, height=height)


def map_target_to_surface(target: LogicalTarget, placement: Placement) -> Tuple[int, int]:
    x = round_half_away(placement.offset_x + target.x * placement.width)
    y = round_half_away(placement.offset_y + target.y * placement.height)
    return x, y
