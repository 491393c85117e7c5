"""
d_cutout_session.py

One cutout session per cell: crop a fixed-size square around the cell, then
repeat draw -> measure -> transfer rounds until the user closes the cutout view.

    OPENING -> AWAITING_DRAW -> MEASURING -> TRANSFERRING -> AWAITING_DRAW ...
                                                          \-> CLOSED

Closing the drawing surface ends a round, closing the cutout view ends the
session. If the cutout view is closed in the middle of a round, whatever was
drawn so far is still measured and transferred before the session closes.
"""
from enum import Enum

import numpy as np
from skimage.draw import circle_perimeter

from pipeline.e_freehand_drawing import FreehandDrawingSurface
from pipeline.f_filament_analysis import analyze_stroke_layer, clamped_rectangles, transfer_to_master
from pipeline.models import CutoutPlacementOffset


class CutoutState(Enum):
    OPENING = "opening"
    AWAITING_DRAW = "awaiting_draw"
    MEASURING = "measuring"
    TRANSFERRING = "transferring"
    CLOSED = "closed"


def compute_placement_offset(cell, cutout_size):
    """Top-left of a cutout centered on the cell. Not clamped to the image."""
    half = cutout_size // 2
    return CutoutPlacementOffset(x=cell.center_x - half, y=cell.center_y - half)


def crop_cutout(raster, offset, cutout_size):
    """
    `cutout_size` x `cutout_size` crop at `offset`; the part outside the raster is
    filled with zeros.
    """
    raster = np.asarray(raster)
    cutout = np.zeros((cutout_size, cutout_size) + raster.shape[2:], dtype=raster.dtype)
    rectangles = clamped_rectangles(offset, cutout.shape, raster.shape)
    if rectangles is not None:
        raster_slices, cutout_slices = rectangles
        cutout[cutout_slices] = raster[raster_slices]
    return cutout


def mark_cell(cutout_size, cell, offset, margin=3):
    """Ring around the cell in cutout coordinates, plus a dot at its center."""
    marker = np.zeros((cutout_size, cutout_size), dtype=bool)
    row, col = cell.center_y - offset.y, cell.center_x - offset.x
    radius = max(cell.width, cell.height) // 2 + margin
    rr, cc = circle_perimeter(row, col, radius, shape=marker.shape)
    marker[rr, cc] = True
    if 0 <= row < cutout_size and 0 <= col < cutout_size:
        marker[row, col] = True
    return marker


class CutoutSession:
    """
    Drives the tracing rounds for one cell.

    `view_factory(channels, cell_marker, measured, cell, zoom)` opens the cutout view.
    The view provides `is_open()`, `drawing_canvas(stroke_layer)` (opens the drawing
    surface for one round), `show_measured(measured)` and `close()`.
    """

    def __init__(self, cell, overview_channels, master_canvas, ledger, view_factory,
                 cutout_size=100, stroke_width=1, poll_interval=0.03, zoom=4.0,
                 pixel_size_um=None, on_round_measured=None, verbose=False):
        self.cell = cell
        self.overview_channels = overview_channels
        self.master_canvas = master_canvas
        self.ledger = ledger
        self.view_factory = view_factory
        self.cutout_size = cutout_size
        self.stroke_width = stroke_width
        self.poll_interval = poll_interval
        self.zoom = zoom
        self.pixel_size_um = pixel_size_um
        self.on_round_measured = on_round_measured
        self.verbose = verbose

        self.offset = compute_placement_offset(cell, cutout_size)
        self.stroke_layer = np.zeros((cutout_size, cutout_size), dtype=bool)
        self.state = None
        self.states_visited = []
        self.rounds = 0
        self.filaments_measured = 0

    def _enter(self, state):
        self.state = state
        self.states_visited.append(state)

    def _open(self):
        self._enter(CutoutState.OPENING)
        channels = {name: crop_cutout(raster, self.offset, self.cutout_size)
                    for name, raster in self.overview_channels.items()}
        # filaments already measured for neighbouring cells stay visible
        self.measured = crop_cutout(self.master_canvas, self.offset, self.cutout_size).astype(bool)
        marker = mark_cell(self.cutout_size, self.cell, self.offset)
        if self.verbose:
            print(f"[CutoutSession] cell {self.cell.index}: cutout at ({self.offset.x}, {self.offset.y})")
        return self.view_factory(channels, marker, self.measured, self.cell, self.zoom)

    def _draw_round(self, view):
        self._enter(CutoutState.AWAITING_DRAW)
        self.stroke_layer[...] = False
        canvas = view.drawing_canvas(self.stroke_layer)
        FreehandDrawingSurface(self.stroke_layer, canvas, stroke_width=self.stroke_width,
                               poll_interval=self.poll_interval, verbose=self.verbose).run()

        self._enter(CutoutState.MEASURING)
        count, skeleton = analyze_stroke_layer(self.stroke_layer, self.cell.index, self.ledger,
                                               pixel_size_um=self.pixel_size_um, verbose=self.verbose)

        self._enter(CutoutState.TRANSFERRING)
        transfer_to_master(self.master_canvas, skeleton, self.offset)
        self.measured |= skeleton
        if view.is_open():
            view.show_measured(self.measured)

        self.rounds += 1
        self.filaments_measured += count
        if self.on_round_measured is not None:
            self.on_round_measured(self.cell, count)
        return count

    def run(self):
        """Run rounds until the cutout view is closed. Returns the filaments measured."""
        view = self._open()
        while view.is_open():
            self._draw_round(view)
        self._enter(CutoutState.CLOSED)
        view.close()
        if self.verbose:
            print(f"[CutoutSession] cell {self.cell.index} closed after {self.rounds} rounds, "
                  f"{self.filaments_measured} filaments")
        return self.filaments_measured
