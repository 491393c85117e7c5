"""
napari_canvas.py

Napari implementation of the interactive cutout view and its drawing canvas.

The cutout view is a Napari viewer showing the cropped channels, the cell marker,
the filaments already measured and the strokes of the current round. For every
drawing round a small, non-modal instruction box is opened; closing that box
ends the round, closing the viewer ends the cell.

Pointer state is sampled, not pushed: mouse drag callbacks only record whether
the left button and the erase modifier are held, the drawing surface reads that
state together with the cursor position at its own pace.
"""
import numpy as np
import napari
from magicgui.widgets import CheckBox
from qtpy.QtWidgets import QApplication, QMessageBox

from pipeline.e_freehand_drawing import PointerSample

ERASE_MODIFIER = 'Alt'


def _window_is_open(qt_widget):
    try:
        return qt_widget.isVisible()
    except RuntimeError:
        # the wrapped Qt object has already been deleted
        return False


class NapariDrawingCanvas:
    """Pointer source for one drawing round on a NapariCutoutView."""

    def __init__(self, view):
        self.view = view
        self.dialog = QMessageBox()
        self.dialog.setWindowTitle(f"Cell {view.cell.index}: draw filaments")
        self.dialog.setText(
            "Trace every filament touching the marked cell with the left mouse button.\n"
            f"Hold {ERASE_MODIFIER} (or tick 'Erase') to erase.\n\n"
            "Close this box to measure the drawn filaments.\n"
            "Close the cutout window to continue with the next cell."
        )
        self.dialog.setModal(False)
        self.dialog.show()

    def process_events(self):
        QApplication.processEvents()

    def is_open(self):
        if not self.view.is_open():
            if _window_is_open(self.dialog):
                self.dialog.close()
            return False
        return _window_is_open(self.dialog)

    def poll(self):
        position = self.view.viewer.cursor.position
        if position is None or len(position) < 2:
            return None
        y, x = position[-2], position[-1]
        return PointerSample(x=float(x), y=float(y), button_down=self.view.button_down,
                             modifier_down=self.view.modifier_down or self.view.erase_checkbox.value)

    def refresh(self, layer):
        self.view.drawing_layer.data = layer.astype(np.float32)


class NapariCutoutView:
    def __init__(self, channels, cell_marker, measured, cell, zoom=4.0):
        self.cell = cell
        self.button_down = False
        self.modifier_down = False

        self.viewer = napari.Viewer(title=f"Cell {cell.index} - close this window to go to the next cell")
        colormaps = {'Bacteria': 'gray', 'Filaments': 'green'}
        for name, raster in channels.items():
            if name == 'Cells':
                self.viewer.add_labels(raster.astype(np.int32), name=name, opacity=0.3)
            else:
                self.viewer.add_image(raster.astype(np.float32), name=name, colormap=colormaps.get(name, 'gray'),
                                      blending='additive', visible=name in colormaps)
        self.measured_layer = self.viewer.add_image(measured.astype(np.float32), name='Measured filaments',
                                                    colormap='magenta', blending='additive',
                                                    contrast_limits=(0, 1))
        self.viewer.add_image(cell_marker.astype(np.float32), name='Cell', colormap='yellow',
                              blending='additive', contrast_limits=(0, 1))
        self.drawing_layer = self.viewer.add_image(np.zeros(measured.shape, dtype=np.float32), name='Drawing',
                                                   colormap='cyan', blending='additive', contrast_limits=(0, 1))

        # left drag draws instead of panning the camera
        for layer in self.viewer.layers:
            layer.mouse_pan = False

        self.erase_checkbox = CheckBox(value=False, text="Erase")
        self.viewer.window.add_dock_widget(self.erase_checkbox, name="Erase mode", area="right")

        self.viewer.mouse_drag_callbacks.append(self._track_buttons)
        self.viewer.camera.zoom = zoom
        self._qt_window = self.viewer.window._qt_window
        self.viewer.show()

    def _track_buttons(self, viewer, event):
        self.button_down = event.button == 1
        self.modifier_down = ERASE_MODIFIER in event.modifiers
        yield
        while event.type == 'mouse_move':
            self.modifier_down = ERASE_MODIFIER in event.modifiers
            yield
        self.button_down = False

    def is_open(self):
        return _window_is_open(self._qt_window)

    def drawing_canvas(self, stroke_layer):
        self.drawing_layer.data = stroke_layer.astype(np.float32)
        return NapariDrawingCanvas(self)

    def show_measured(self, measured):
        self.measured_layer.data = measured.astype(np.float32)
        self.drawing_layer.data = np.zeros(measured.shape, dtype=np.float32)

    def close(self):
        if self.is_open():
            self.viewer.close()


def napari_cutout_view_factory(channels, cell_marker, measured, cell, zoom):
    return NapariCutoutView(channels, cell_marker, measured, cell, zoom=zoom)
