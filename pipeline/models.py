"""
models.py

Data classes shared by the pipeline stages: segmented cells, cutout placement,
filament measurements and the per-run counters.
"""
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
import pandas as pd


@dataclass
class CellRecord:
    """One curated cell; bounding box and center are in full-image pixels."""
    index: int
    x: int
    y: int
    width: int
    height: int
    center_x: int
    center_y: int
    filament_count: int = 0


@dataclass(frozen=True)
class CutoutPlacementOffset:
    """Top-left corner of a cutout in full-image coordinates (may lie outside the image)."""
    x: int
    y: int


@dataclass(frozen=True)
class FilamentMeasurement:
    cell_index: int
    length: float
    length_um: Optional[float] = None


class MeasurementLedger:
    """Append-only, ordered record of every measured filament."""

    def __init__(self):
        self._rows: List[FilamentMeasurement] = []

    def append(self, measurement: FilamentMeasurement):
        self._rows.append(measurement)

    def __len__(self):
        return len(self._rows)

    def __iter__(self):
        return iter(self._rows)

    def __getitem__(self, index):
        return self._rows[index]

    def cell_indices(self):
        return [row.cell_index for row in self._rows]

    def lengths(self):
        return np.array([row.length for row in self._rows], dtype=float)

    def to_dataframe(self):
        return pd.DataFrame(
            {
                "cell_number": [row.cell_index for row in self._rows],
                "length_px": [row.length for row in self._rows],
                "length_um": [row.length_um for row in self._rows],
            },
            columns=["cell_number", "length_px", "length_um"],
        )


@dataclass
class RunState:
    """Counters owned by the orchestrator; updated at round and session ends only."""
    cells_processed: int = 0
    filaments_total: int = 0
    current_cell_index: Optional[int] = None


@dataclass
class RunSummary:
    total_cells: int
    cells_with_filaments: int
    cells_without_filaments: int
    filaments_total: int
    mean_length: float
    sd_length: float
    filaments_per_cell: float
    filaments_per_population: float
    mean_length_um: Optional[float] = None
    sd_length_um: Optional[float] = None

    def as_row(self):
        return dict(self.__dict__)


@dataclass
class GuidanceRasters:
    """Non-measured visual aids derived from the two channel projections."""
    skeleton: np.ndarray
    bacteria_mask: np.ndarray
    attached_filaments: np.ndarray
    bacteria_for_segmentation: np.ndarray


@dataclass
class RunResult:
    cells: List[CellRecord]
    ledger: MeasurementLedger
    summary: RunSummary
    master_canvas: np.ndarray
    labels: np.ndarray
    state: RunState
    output_paths: dict = field(default_factory=dict)
