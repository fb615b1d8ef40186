from __future__ import annotations

import numpy as np
import pytest

from posepointer.data_models import Placement
from posepointer.geometry.viewport import compute_placement
from posepointer.ui.overlays import RenderSurface, encode_jpeg, render_frame


def test_surface_rejects_empty_size() -> None:
    with pytest.raises(ValueError):
        RenderSurface(0, 10)


def test_image_fills_only_its_placement() -> None:
    surface = RenderSurface(160, 90)
    frame = np.full((60, 80, 3), 200, dtype=np.uint8)   # 4:3 -> pillarboxed to 120x90 at x=20

    surface.draw_image(frame, compute_placement(80, 60, 160, 90))

    assert surface.canvas[:, 20:140].min() == 200
    assert surface.canvas[:, :20].max() == 0
    assert surface.canvas[:, 140:].max() == 0


def test_render_frame_clears_previous_cycle() -> None:
    surface = RenderSurface(40, 40)
    surface.fill((255, 255, 255))
    frame = np.zeros((10, 10, 3), dtype=np.uint8)

    render_frame(surface, frame, Placement(offset_x=0, offset_y=0, width=40, height=40), (20, 20), 3, (0, 255, 0))

    assert tuple(surface.canvas[20, 20]) == (0, 255, 0)
    assert tuple(surface.canvas[0, 0]) == (0, 0, 0)


def test_marker_may_overlap_letterbox_bars() -> None:
    surface = RenderSurface(100, 50)
    surface.draw_circle((2, 25), 6, (0, 0, 255))

    assert tuple(surface.canvas[25, 2]) == (0, 0, 255)


def test_jpeg_encoding() -> None:
    surface = RenderSurface(64, 36)

    data = surface.encode_jpeg(quality=70)

    assert data[:2] == b"\xff\xd8"
    assert encode_jpeg(surface.canvas)[:2] == b"\xff\xd8"
