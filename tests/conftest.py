import numpy as np
import pytest

from pipeline.e_freehand_drawing import PointerSample
from pipeline.models import CellRecord


class ScriptedCanvas:
    """Replays pointer samples; closes itself once all samples were consumed."""

    def __init__(self, samples, on_closed=None):
        self.samples = list(samples)
        self.on_closed = on_closed
        self.refreshes = 0

    def process_events(self):
        pass

    def is_open(self):
        if self.samples:
            return True
        if self.on_closed is not None:
            self.on_closed()
            self.on_closed = None
        return False

    def poll(self):
        return self.samples.pop(0)

    def refresh(self, layer):
        self.refreshes += 1


class ScriptedCutoutView:
    """
    Cutout view that serves one scripted round per drawing surface. The user "closes"
    the view after seeing the result of the last round, or, with
    `close_during_last_round`, while the last round is still being drawn.
    """

    def __init__(self, rounds, close_during_last_round=False):
        self.rounds = list(rounds)
        self.close_during_last_round = close_during_last_round
        self.open = bool(self.rounds)
        self.measured_updates = []
        self.close_calls = 0
        self.opened_with = None

    def is_open(self):
        return self.open

    def _close_window(self):
        self.open = False

    def drawing_canvas(self, stroke_layer):
        samples = self.rounds.pop(0)
        on_closed = self._close_window if (not self.rounds and self.close_during_last_round) else None
        return ScriptedCanvas(samples, on_closed=on_closed)

    def show_measured(self, measured):
        self.measured_updates.append(measured.copy())
        if not self.rounds:
            self.open = False

    def close(self):
        self.close_calls += 1
        self.open = False


def stroke(points, erase=False):
    """Pointer samples for one press-drag-release gesture through `points` ((x, y) tuples)."""
    first, last = points[0], points[-1]
    samples = [PointerSample(first[0], first[1], button_down=False, modifier_down=erase)]
    samples += [PointerSample(x, y, button_down=True, modifier_down=erase) for x, y in points]
    samples.append(PointerSample(last[0], last[1], button_down=False, modifier_down=erase))
    return samples


@pytest.fixture
def make_stroke():
    return stroke


@pytest.fixture
def scripted_view_factory():
    """
    Build a view factory from {cell_index: [round samples, ...]}. Cells not listed get
    a view that is closed right away. The created views are exposed as `factory.views`.
    """
    def build(rounds_by_cell, interrupted_cells=()):
        views = {}

        def factory(channels, cell_marker, measured, cell, zoom):
            view = ScriptedCutoutView(rounds_by_cell.get(cell.index, []),
                                      close_during_last_round=cell.index in interrupted_cells)
            view.opened_with = dict(channels=channels, cell_marker=cell_marker, measured=measured, zoom=zoom)
            views[cell.index] = view
            return view

        factory.views = views
        return factory

    return build


@pytest.fixture
def centered_cell():
    return CellRecord(index=1, x=45, y=45, width=10, height=10, center_x=50, center_y=50)


@pytest.fixture
def cell_labels():
    """120 x 120 label image with three 10 x 10 cells and sparse ids 2, 5, 9."""
    labels = np.zeros((120, 120), dtype=np.int32)
    labels[25:35, 25:35] = 2
    labels[55:65, 55:65] = 5
    labels[85:95, 85:95] = 9
    return labels
