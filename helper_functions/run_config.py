"""
run_config.py

Run configuration for the filament tracing workflow. All values are fixed at
the start of a run; there is no reconfiguration while cells are being traced.
"""

import json
import os
from dataclasses import dataclass, asdict, fields
from typing import Optional


@dataclass
class FilamentConfig:
    # channels of the input stack
    bacteria_channel: int = 0
    filament_channel: int = 1

    # guidance rasters
    surroundings_margin: int = 5
    min_filtered_component_size: int = 20
    blur_sigma: float = 1.0

    # segmentation
    cell_diameter: float = 30
    min_region_size: int = 50
    cellpose_model_type: str = 'cyto3'
    use_gpu: bool = False

    # cutout and drawing
    cutout_size: int = 100
    cutout_zoom: float = 4.0
    stroke_width: int = 1
    poll_interval: float = 0.03

    # results
    pixel_size_um: Optional[float] = None
    close_results_on_finish: bool = True
    overwrite_results: bool = False
    save_cell_mask: bool = False

    def validate(self):
        """
        Check value ranges. Raises ValueError on the first invalid field.
        """
        if self.bacteria_channel < 0 or self.filament_channel < 0:
            raise ValueError("Channel indices must be >= 0.")
        if self.bacteria_channel == self.filament_channel:
            raise ValueError("Bacteria and filament channel must differ.")
        if self.surroundings_margin < 0:
            raise ValueError("surroundings_margin must be >= 0.")
        if self.cutout_size < 1:
            raise ValueError("cutout_size must be a positive number of pixels.")
        if self.stroke_width < 1:
            raise ValueError("stroke_width must be at least 1 pixel.")
        if self.cell_diameter <= 0:
            raise ValueError("cell_diameter must be > 0.")
        if self.min_region_size < 0 or self.min_filtered_component_size < 0:
            raise ValueError("Minimum sizes must be >= 0.")
        if self.cutout_zoom <= 0 or self.poll_interval < 0:
            raise ValueError("cutout_zoom must be > 0 and poll_interval >= 0.")
        if self.pixel_size_um is not None and self.pixel_size_um <= 0:
            raise ValueError("pixel_size_um must be > 0 when given.")
        return self

    def to_summary_dict(self):
        """Configuration echo written next to the summary statistics."""
        return {f"config_{key}": value for key, value in asdict(self).items()}

    @classmethod
    def from_dict(cls, values):
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
        return cls(**values).validate()

    @classmethod
    def from_json(cls, path):
        if not os.path.isfile(path):
            raise FileNotFoundError(f"No such config file: {path}")
        with open(path, 'r') as f:
            return cls.from_dict(json.load(f))
