# src/posepointer/ui/overlays.py
# --------------------------------------------------------------------
# Drawing utilities for PosePointer. The render surface is a fixed-size
# BGR NumPy canvas that is fully redrawn every cycle:
#   • black fill
#   • the camera frame scaled into its letterboxed Placement
#   • a filled circle marking the pointer target
# --------------------------------------------------------------------

from typing import Tuple
import numpy as np, cv2                     # OpenCV for drawing; NumPy for the canvas

from ..config import JPEG_QUALITY
from ..data_models import Placement
from ..geometry.viewport import round_half_away

Color = Tuple[int, int, int]


class RenderSurface:
    """Fixed-resolution drawing target with no state carried between cycles."""

    def __init__(self, width: int, height: int):
        if width <= 0 or height <= 0:
            raise ValueError(f"Surface size must be positive, got {width}x{height}")
        self.width = int(width)
        self.height = int(height)
        self.canvas = np.zeros((self.height, self.width, 3), dtype=np.uint8)

    def fill(self, color: Color = (0, 0, 0)) -> None:
        self.canvas[:, :] = color

    def _pixel_rect(self, placement: Placement) -> Tuple[int, int, int, int]:
        # snap the float rectangle to whole pixels, never leaving the canvas
        x0 = max(0, round_half_away(placement.offset_x))
        y0 = max(0, round_half_away(placement.offset_y))
        x1 = min(self.width, round_half_away(placement.offset_x + placement.width))
        y1 = min(self.height, round_half_away(placement.offset_y + placement.height))
        return x0, y0, x1, y1

    def draw_image(self, image: np.ndarray, placement: Placement) -> None:
        """Scale the whole source image into the placement rectangle."""
        x0, y0, x1, y1 = self._pixel_rect(placement)
        if x1 <= x0 or y1 <= y0:
            return
        if image.ndim == 2:
            image = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)
        dst_w, dst_h = x1 - x0, y1 - y0
        if image.shape[1] == dst_w and image.shape[0] == dst_h:
            scaled = image
        else:
            scaled = cv2.resize(image, (dst_w, dst_h), interpolation=cv2.INTER_LINEAR)
        self.canvas[y0:y1, x0:x1] = scaled

    def draw_circle(self, center: Tuple[int, int], radius: int, color: Color) -> None:
        cv2.circle(self.canvas, (int(center[0]), int(center[1])), int(radius), color, -1, cv2.LINE_AA)

    def encode_jpeg(self, quality: int = JPEG_QUALITY) -> bytes:
        return encode_jpeg(self.canvas, quality)


def encode_jpeg(canvas: np.ndarray, quality: int = JPEG_QUALITY) -> bytes:
    ok, buffer = cv2.imencode(".jpg", canvas, [int(cv2.IMWRITE_JPEG_QUALITY), int(quality)])
    if not ok:
        raise RuntimeError("JPEG encoding of the render surface failed")
    return buffer.tobytes()


def render_frame(
    surface: RenderSurface,
    frame: np.ndarray,
    placement: Placement,
    marker: Tuple[int, int],
    radius: int,
    color: Color,
) -> None:
    """One full redraw: background, frame, marker."""
    surface.fill((0, 0, 0))
    surface.draw_image(frame, placement)
    surface.draw_circle(marker, radius, color)
