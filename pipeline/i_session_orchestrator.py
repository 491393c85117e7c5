"""
i_session_orchestrator.py

Runs the whole filament tracing workflow for one image:

    load -> guidance rasters -> segmentation -> label curation
         -> one cutout session per cell (draw / measure / transfer rounds)
         -> summary statistics -> results folder

Everything runs on one thread. The orchestrator owns the run state, the
measurement ledger and the master canvas of measured filaments and hands them
to the stages explicitly. Results are written once, at the very end.
"""
import numpy as np
from tqdm import tqdm

from helper_functions.image_utils import (is_tiff, load_image, normalize_to_unit_range, split_channels_and_project,
                                          view_overview_with_napari)
from helper_functions.run_config import FilamentConfig
from pipeline.a_image_preprocessing import preprocess_channels
from pipeline.b_cell_segmentation import segment_bacteria_with_cellpose, segment_cells
from pipeline.c_label_curation import curate_labels
from pipeline.d_cutout_session import CutoutSession
from pipeline.g_result_aggregation import summarize_measurements
from pipeline.h_result_persistence import OVERVIEW_CHANNEL_NAMES, compose_overview_stack, persist_results
from pipeline.models import MeasurementLedger, RunResult, RunState


def _print_finished(results_dir):
    print(f"Filament tracing finished. Results saved to: {results_dir}")


class SessionOrchestrator:
    """
    Args:
        config (FilamentConfig): Run configuration, fixed for the whole run.
        segment_fn (callable): `segment_fn(image, diameter) -> labels`; Cellpose if None.
        review_fn (callable): `review_fn(labels, overview) -> labels`; Napari review if None.
        view_factory (callable): Opens a cutout view; Napari cutout view if None.
        notify_fn (callable): Called once with the results folder at the end.
        show_results_fn (callable): Shows the overview stack when results are kept open.
        verbose (bool): Print progress information.
    """

    def __init__(self, config=None, segment_fn=None, review_fn=None, view_factory=None,
                 notify_fn=None, show_results_fn=None, verbose=True):
        self.config = (config or FilamentConfig()).validate()
        self.verbose = verbose

        if segment_fn is None:
            segment_fn = lambda image, diameter: segment_bacteria_with_cellpose(
                image, diameter=diameter, model_type=self.config.cellpose_model_type,
                use_gpu=self.config.use_gpu, verbose=verbose)
        if view_factory is None:
            from helper_functions.napari_canvas import napari_cutout_view_factory
            view_factory = napari_cutout_view_factory
        if show_results_fn is None:
            show_results_fn = view_overview_with_napari

        self.segment_fn = segment_fn
        self.review_fn = review_fn
        self.view_factory = view_factory
        self.notify_fn = notify_fn or _print_finished
        self.show_results_fn = show_results_fn

        self.state = RunState()
        self.ledger = MeasurementLedger()
        self.master_canvas = None
        self.cells = []

    def _on_round_measured(self, cell, count):
        self.state.filaments_total += count

    def trace_cell(self, cell, overview_channels):
        """Run one cutout session and book its result into the run state."""
        self.state.current_cell_index = cell.index
        session = CutoutSession(
            cell, overview_channels, self.master_canvas, self.ledger, self.view_factory,
            cutout_size=self.config.cutout_size, stroke_width=self.config.stroke_width,
            poll_interval=self.config.poll_interval, zoom=self.config.cutout_zoom,
            pixel_size_um=self.config.pixel_size_um, on_round_measured=self._on_round_measured,
            verbose=self.verbose)
        cell.filament_count += session.run()
        self.state.cells_processed += 1
        self.state.current_cell_index = None
        return session

    def run(self, image_path, channels=None):
        """
        Trace filaments for one image.

        Args:
            image_path (str): Input z-stack; also decides where `results` is written.
            channels (tuple): Optional (bacteria, filaments) projections to use instead
                of loading `image_path`.

        Returns:
            RunResult
        """
        cfg = self.config
        self.state = RunState()
        self.ledger = MeasurementLedger()
        self.cells = []

        if channels is None:
            image = load_image(image_path, verbose=self.verbose)
            # non-tiff formats come back as CZYX
            channel_axis = None if is_tiff(image_path) else 0
            bacteria, filaments = split_channels_and_project(image, cfg.bacteria_channel, cfg.filament_channel,
                                                             channel_axis=channel_axis, verbose=self.verbose)
        else:
            bacteria, filaments = (np.asarray(c, dtype=np.float32) for c in channels)

        guidance = preprocess_channels(bacteria, filaments, surroundings_margin=cfg.surroundings_margin,
                                       min_filtered_component_size=cfg.min_filtered_component_size,
                                       blur_sigma=cfg.blur_sigma, verbose=self.verbose)

        # blocking; SegmentationUnavailable ends the run here
        labels = segment_cells(guidance.bacteria_for_segmentation, diameter=cfg.cell_diameter,
                               min_region_size=cfg.min_region_size, segment_fn=self.segment_fn,
                               verbose=self.verbose)

        overview = np.stack([normalize_to_unit_range(bacteria), normalize_to_unit_range(filaments),
                             guidance.attached_filaments.astype(np.float32)])
        labels, self.cells = curate_labels(labels, overview, review_fn=self.review_fn, verbose=self.verbose)

        self.master_canvas = np.zeros(bacteria.shape, dtype=bool)
        overview_channels = {
            'Bacteria': bacteria,
            'Filaments': filaments,
            'Filament skeleton': guidance.skeleton,
            'Attached filaments': guidance.attached_filaments,
            'Bacteria surroundings': guidance.bacteria_mask,
            'Cells': labels,
        }
        for cell in tqdm(self.cells, desc="Tracing cells", disable=not self.verbose):
            self.trace_cell(cell, overview_channels)

        summary = summarize_measurements(self.ledger, len(self.cells), verbose=self.verbose)
        overview_stack = compose_overview_stack(bacteria, filaments, self.master_canvas, labels)
        output_paths = persist_results(image_path, self.ledger, summary, overview_stack, config=cfg,
                                       cell_mask=labels if cfg.save_cell_mask else None,
                                       overwrite=cfg.overwrite_results, verbose=self.verbose)
        self.notify_fn(output_paths["results_dir"])

        if not cfg.close_results_on_finish:
            self.show_results_fn(overview_stack, OVERVIEW_CHANNEL_NAMES, label_channel=3)

        return RunResult(cells=self.cells, ledger=self.ledger, summary=summary,
                         master_canvas=self.master_canvas, labels=labels, state=self.state,
                         output_paths=output_paths)
