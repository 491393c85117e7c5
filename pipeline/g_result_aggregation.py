import numpy as np

from pipeline.models import RunSummary


def _mean_and_sd(values):
    """Mean and sample standard deviation; NaN where undefined."""
    values = np.asarray([v for v in values if v is not None], dtype=float)
    mean = float(values.mean()) if values.size else float('nan')
    sd = float(values.std(ddof=1)) if values.size > 1 else float('nan')
    return mean, sd


def summarize_measurements(ledger, total_cells, verbose=False):
    """
    Per-image statistics over the measurement ledger.

    Rates that would divide by zero (no cell with filaments, empty population)
    are reported as 0.0; mean and SD of an empty ledger are NaN.
    """
    cell_indices = ledger.cell_indices()
    filaments_total = len(cell_indices)
    cells_with_filaments = len(set(cell_indices))

    mean_length, sd_length = _mean_and_sd(ledger.lengths())
    lengths_um = [row.length_um for row in ledger]
    if filaments_total and all(v is not None for v in lengths_um):
        mean_um, sd_um = _mean_and_sd(lengths_um)
    else:
        mean_um, sd_um = None, None

    summary = RunSummary(
        total_cells=total_cells,
        cells_with_filaments=cells_with_filaments,
        cells_without_filaments=max(total_cells - cells_with_filaments, 0),
        filaments_total=filaments_total,
        mean_length=mean_length,
        sd_length=sd_length,
        filaments_per_cell=filaments_total / cells_with_filaments if cells_with_filaments else 0.0,
        filaments_per_population=filaments_total / total_cells if total_cells else 0.0,
        mean_length_um=mean_um,
        sd_length_um=sd_um,
    )
    if verbose:
        print(f"[summarize_measurements] {filaments_total} filaments on {cells_with_filaments} / "
              f"{total_cells} cells, mean length {mean_length:.2f} px")
    return summary
