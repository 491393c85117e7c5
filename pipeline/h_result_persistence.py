import os

import numpy as np
import pandas as pd
import tifffile

from helper_functions.file_handling_helpers import image_basename, resolve_output_path, results_directory_for
from pipeline.b_cell_segmentation import save_label_mask

OVERVIEW_CHANNEL_NAMES = ["Bacteria", "Filaments", "Measured filaments", "Cells"]


def _ramp_lut(red, green, blue):
    ramp = np.arange(256, dtype=np.uint16)
    return np.stack([ramp * red, ramp * green, ramp * blue]).astype(np.uint8)


def categorical_lut(seed=0):
    """Random but reproducible colors per label value; 0 stays black."""
    rng = np.random.default_rng(seed)
    lut = rng.integers(64, 256, size=(3, 256)).astype(np.uint8)
    lut[:, 0] = 0
    return lut


def compose_overview_stack(bacteria, filaments, master_canvas, labels):
    """
    (4, Y, X) uint16 stack: bacteria, filaments, measured filament skeleton (255 where
    measured) and the curated label image.

    Float intensities within [0, 1] are scaled to the full 16-bit range; float
    intensities outside [0, 65535] are min-max scaled into it.
    """
    def to_uint16(raster):
        raster = np.asarray(raster)
        if raster.dtype.kind == 'f' and raster.size:
            low, high = float(raster.min()), float(raster.max())
            if low >= 0 and high <= 1:
                raster = raster * 65535
            elif low < 0 or high > 65535:
                raster = (raster - low) / (high - low) * 65535
        return np.clip(np.rint(np.asarray(raster, dtype=np.float64)), 0, 65535).astype(np.uint16)

    measured = np.asarray(master_canvas, dtype=bool).astype(np.uint16) * 255
    return np.stack([to_uint16(bacteria), to_uint16(filaments), measured, to_uint16(labels)])


def save_overview_stack(path, stack, channel_names=OVERVIEW_CHANNEL_NAMES, verbose=False):
    """Save the overview as a multi-page ImageJ composite, one page per channel."""
    luts = [_ramp_lut(1, 1, 1), _ramp_lut(0, 1, 0), _ramp_lut(1, 0, 1), categorical_lut()]
    tifffile.imwrite(path, stack, imagej=True,
                     metadata={'axes': 'CYX', 'mode': 'composite', 'LUTs': luts[:len(stack)],
                               'Labels': list(channel_names)[:len(stack)]})
    if verbose:
        print(f"Saved overview stack {stack.shape} to {path}")
    return path


def write_measurement_table(ledger, path, verbose=False):
    df = ledger.to_dataframe()
    df.to_csv(path, index=False)
    if verbose:
        print(f"Exported {len(df)} filament lengths to {path}")
    return path


def write_summary_table(summary, path, image_name, config=None, verbose=False):
    row = {"image": image_name}
    row.update(summary.as_row())
    if config is not None:
        row.update(config.to_summary_dict())
    pd.DataFrame([row]).to_csv(path, index=False)
    if verbose:
        print(f"Exported summary to {path}")
    return path


def persist_results(image_path, ledger, summary, overview_stack, config=None, cell_mask=None, overwrite=False,
                    verbose=False):
    """
    Write the filament table, the summary table and the overview stack into the
    `results` folder beside the input image, plus the 16-bit cell mask when
    `cell_mask` is given. Returns a dict of the written paths.
    """
    results_dir = results_directory_for(image_path)
    name = image_basename(image_path)

    paths = {
        "measurements": resolve_output_path(os.path.join(results_dir, f"{name}_filament_lengths.csv"),
                                            overwrite=overwrite, verbose=verbose),
        "summary": resolve_output_path(os.path.join(results_dir, f"{name}_summary.csv"),
                                       overwrite=overwrite, verbose=verbose),
        "overview": resolve_output_path(os.path.join(results_dir, f"{name}_overview.tif"),
                                        overwrite=overwrite, verbose=verbose),
    }
    write_measurement_table(ledger, paths["measurements"], verbose=verbose)
    write_summary_table(summary, paths["summary"], image_name=name, config=config, verbose=verbose)
    save_overview_stack(paths["overview"], overview_stack, verbose=verbose)
    if cell_mask is not None:
        paths["cell_mask"] = resolve_output_path(os.path.join(results_dir, f"{name}_cell_mask.tif"),
                                                 overwrite=overwrite, verbose=verbose)
        save_label_mask(paths["cell_mask"], cell_mask, verbose=verbose)
    paths["results_dir"] = results_dir
    return paths
