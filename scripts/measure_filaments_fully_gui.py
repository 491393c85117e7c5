import sys
import os

# Determine base path depending on whether we're in a PyInstaller bundle
if getattr(sys, 'frozen', False):
    # PyInstaller sets this when running as a bundled app
    base_path = sys._MEIPASS
else:
    # Running from source
    base_path = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))

# Ensure bundled folders like 'pipeline' and 'helper_functions' are discoverable
if base_path not in sys.path:
    sys.path.insert(0, base_path)

from qtpy.QtWidgets import QApplication

from helper_functions.gui_helper_functions import pick_input_paths, show_finished_message
from helper_functions.run_config import FilamentConfig
from pipeline.i_session_orchestrator import SessionOrchestrator


app = QApplication.instance() or QApplication(sys.argv)

# Pick files via GUI
picked = pick_input_paths()
if picked is None:
    print("No image selected, nothing to do.")
    sys.exit(0)
image_path, config_path = picked

config = FilamentConfig.from_json(config_path) if config_path else FilamentConfig()

# Run pipeline
SessionOrchestrator(config=config, notify_fn=show_finished_message).run(image_path)
