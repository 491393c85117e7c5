"""
e_freehand_drawing.py

Freehand drawing on a cutout. The drawing surface samples the pointer of an
interactive canvas at a fixed interval and paints (or erases, while the modifier
key is held) a line from the previous sample to the current one into a boolean
stroke layer. The surface ends when the canvas is closed by the user.
"""
import time
from dataclasses import dataclass
from enum import Enum

import numpy as np
from scipy.ndimage import binary_dilation
from skimage.draw import line


class DrawMode(Enum):
    PAINT = "paint"
    ERASE = "erase"


@dataclass(frozen=True)
class PointerSample:
    """Pointer snapshot in cutout pixel coordinates."""
    x: float
    y: float
    button_down: bool = False
    modifier_down: bool = False


def brush_footprint(width):
    """Round brush exactly `width` pixels across, for odd and even widths."""
    center = (width - 1) / 2
    rows, cols = np.mgrid[:width, :width]
    return (rows - center) ** 2 + (cols - center) ** 2 <= (width / 2) ** 2


def paint_segment(layer, start, end, value=True, width=1):
    """
    Rasterize the line from `start` to `end` (both (x, y)) into `layer`, thickened to
    `width` pixels. Pixels falling outside the layer are ignored.

    Returns:
        int: number of layer pixels written.
    """
    height, width_px = layer.shape
    r0, c0 = int(round(start[1])), int(round(start[0]))
    r1, c1 = int(round(end[1])), int(round(end[0]))
    rr, cc = line(r0, c0, r1, c1)

    if width > 1:
        # pad so that the brush around points just outside the layer still reaches it
        pad = width // 2
        segment = np.zeros((height + 2 * pad, width_px + 2 * pad), dtype=bool)
        inside = (rr >= -pad) & (rr < height + pad) & (cc >= -pad) & (cc < width_px + pad)
        segment[rr[inside] + pad, cc[inside] + pad] = True
        segment = binary_dilation(segment, structure=brush_footprint(width))[pad:pad + height, pad:pad + width_px]
    else:
        segment = np.zeros(layer.shape, dtype=bool)
        inside = (rr >= 0) & (rr < height) & (cc >= 0) & (cc < width_px)
        segment[rr[inside], cc[inside]] = True

    layer[segment] = value
    return int(segment.sum())


class FreehandDrawingSurface:
    """
    Cooperative polling loop over a canvas.

    The canvas must provide `process_events()`, `is_open()`, `poll()` returning a
    PointerSample (or None while the pointer is not over the cutout) and
    `refresh(layer)` to redisplay the stroke layer.
    """

    def __init__(self, stroke_layer, canvas, stroke_width=1, poll_interval=0.03, verbose=False):
        self.stroke_layer = stroke_layer
        self.canvas = canvas
        self.stroke_width = stroke_width
        self.poll_interval = poll_interval
        self.verbose = verbose
        self.mode = DrawMode.PAINT
        self.segments_drawn = 0
        self._last_position = None

    def apply(self, sample):
        """Process one pointer sample. Returns True if the stroke layer was written."""
        if sample is None:
            self._last_position = None
            return False

        self.mode = DrawMode.ERASE if sample.modifier_down else DrawMode.PAINT
        position = (sample.x, sample.y)
        painted = False
        if sample.button_down:
            start = self._last_position if self._last_position is not None else position
            paint_segment(self.stroke_layer, start, position,
                          value=self.mode is DrawMode.PAINT, width=self.stroke_width)
            self.segments_drawn += 1
            painted = True
        self._last_position = position
        return painted

    def run(self):
        """Sample the pointer until the canvas is closed; returns the stroke layer."""
        while True:
            self.canvas.process_events()
            if not self.canvas.is_open():
                break
            if self.apply(self.canvas.poll()):
                self.canvas.refresh(self.stroke_layer)
            time.sleep(self.poll_interval)
        if self.verbose:
            print(f"[FreehandDrawingSurface] closed after {self.segments_drawn} segments, "
                  f"{int(self.stroke_layer.sum())} stroke pixels")
        return self.stroke_layer
