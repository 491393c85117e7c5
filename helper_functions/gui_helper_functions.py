from qtpy.QtWidgets import (
    QDialog, QWidget, QVBoxLayout, QListWidget, QPushButton,
    QListWidgetItem, QMenu, QLabel, QMessageBox)
from qtpy.QtCore import Qt
import os


# ### DragDropWidget
# A custom QWidget that enables drag-and-drop functionality for file input.
# Dropped files are displayed in a QListWidget, and users can remove them via a right-click context menu.
# Checked items can be retrieved using `get_file_paths()` to determine which files are selected for further processing.

class DragDropWidget(QWidget):
    def __init__(self, extensions=None):
        super().__init__()
        self.layout = QVBoxLayout()
        self.setAcceptDrops(True)
        self.extensions = tuple(ext.lower() for ext in extensions) if extensions else None
        self.file_list = QListWidget()
        self.layout.addWidget(self.file_list)
        self.setLayout(self.layout)
        self.file_paths = []

        self.file_list.setSelectionMode(QListWidget.SingleSelection)
        self.file_list.setContextMenuPolicy(Qt.CustomContextMenu)
        self.file_list.customContextMenuRequested.connect(self.show_context_menu)

    def dragEnterEvent(self, event):
        if event.mimeData().hasUrls():
            event.acceptProposedAction()

    def dropEvent(self, event):
        for url in event.mimeData().urls():
            path = url.toLocalFile()
            if os.path.isfile(path) and (self.extensions is None or path.lower().endswith(self.extensions)):
                self.file_paths.append(path)
                item = QListWidgetItem(os.path.basename(path))
                item.setToolTip(path)
                item.setFlags(item.flags() | Qt.ItemIsUserCheckable)
                item.setCheckState(Qt.Checked)
                self.file_list.addItem(item)

    def get_file_paths(self):
        return [
            item.toolTip()
            for i in range(self.file_list.count())
            if (item := self.file_list.item(i)).checkState() == Qt.Checked
        ]

    def show_context_menu(self, pos):
        menu = QMenu(self)
        remove_action = menu.addAction("Remove selected")
        action = menu.exec_(self.file_list.mapToGlobal(pos))
        if action == remove_action:
            for item in self.file_list.selectedItems():
                self.file_paths.remove(item.toolTip())
                self.file_list.takeItem(self.file_list.row(item))


class LabeledDropArea(QWidget):
    def __init__(self, label_text, extensions=None):
        super().__init__()
        self.layout = QVBoxLayout()
        self.label = QLabel(label_text)
        self.drop_area = DragDropWidget(extensions=extensions)
        self.layout.addWidget(self.label)
        self.layout.addWidget(self.drop_area)
        self.setLayout(self.layout)

    def get_file_paths(self):
        return self.drop_area.get_file_paths()


# ### FilamentInputGUI
# Dialog for selecting the z-stack to analyse and, optionally, a JSON run configuration.
# "Start Tracing" is only enabled once an image has been dropped. Results are always
# written to a `results` folder beside the image.

class FilamentInputGUI(QDialog):
    def __init__(self):
        super().__init__()
        self.selected_paths = None
        self.setWindowTitle("Filament Length Tracer")
        self.resize(500, 500)
        self.layout = QVBoxLayout()

        self.image_input = LabeledDropArea("Drop multi-channel z-stack (bacteria + filament channel):")
        self.config_input = LabeledDropArea("Optional: drop run configuration (.json):", extensions=[".json"])
        self.run_button = QPushButton("Start Tracing")
        self.run_button.clicked.connect(self.run_analysis)

        self.layout.addWidget(self.image_input)
        self.layout.addWidget(self.config_input)
        self.layout.addWidget(self.run_button)
        self.setLayout(self.layout)

        # Disable run button initially
        self.run_button.setEnabled(False)
        self.image_input.drop_area.file_list.itemChanged.connect(self.check_ready)
        self.image_input.drop_area.file_list.model().rowsInserted.connect(self.check_ready)

    def run_analysis(self):
        image_paths = self.image_input.get_file_paths()
        if not image_paths:
            QMessageBox.warning(self, "Missing Input", "Please drop an image to analyse.")
            return
        config_paths = self.config_input.get_file_paths()
        self.selected_paths = (image_paths[0], config_paths[0] if config_paths else None)
        self.accept()

    def check_ready(self, *args):
        self.run_button.setEnabled(len(self.image_input.get_file_paths()) > 0)


def pick_input_paths():
    """
    Show the drag-and-drop picker; return (path to image, path to config or None), or None if cancelled.
    """
    dialog = FilamentInputGUI()
    result = dialog.exec_()
    if result == QDialog.Accepted:
        return dialog.selected_paths
    return None


def show_finished_message(results_dir):
    QMessageBox.information(None, "Filament tracing finished", f"Results saved to:\n{results_dir}")
