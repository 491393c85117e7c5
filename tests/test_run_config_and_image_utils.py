import json

import numpy as np
import pytest
import tifffile

from helper_functions.image_utils import (find_channel_axis, load_image, max_intensity_projection,
                                          normalize_to_unit_range, split_channels_and_project)
from helper_functions.run_config import FilamentConfig


def test_defaults_are_valid():
    config = FilamentConfig().validate()
    assert config.bacteria_channel != config.filament_channel
    assert config.close_results_on_finish


@pytest.mark.parametrize("values", [
    {"bacteria_channel": 1, "filament_channel": 1},
    {"cutout_size": 0},
    {"stroke_width": 0},
    {"pixel_size_um": -0.1},
    {"surroundings_margin": -1},
])
def test_invalid_values_are_rejected(values):
    with pytest.raises(ValueError):
        FilamentConfig(**values).validate()


def test_from_json(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"cutout_size": 80, "stroke_width": 3, "pixel_size_um": 0.065}))
    config = FilamentConfig.from_json(str(path))
    assert config.cutout_size == 80
    assert config.stroke_width == 3
    assert config.to_summary_dict()["config_pixel_size_um"] == 0.065


def test_unknown_keys_are_rejected():
    with pytest.raises(ValueError):
        FilamentConfig.from_dict({"cutout_sise": 80})


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        FilamentConfig.from_json(str(tmp_path / "missing.json"))


def test_split_channels_projects_over_z():
    image = np.zeros((3, 4, 8, 8), dtype=np.uint16)
    image[0, 2, 1, 1] = 50
    image[1, 3, 5, 5] = 70
    bacteria, filaments = split_channels_and_project(image, bacteria_channel=0, filament_channel=1)
    assert bacteria.shape == (8, 8)
    assert bacteria[1, 1] == 50 and filaments[5, 5] == 70
    assert bacteria.dtype == np.float32


def test_split_channels_with_channel_axis_last_and_no_z():
    image = np.zeros((8, 8, 2))
    image[..., 1] = 4.0
    bacteria, filaments = split_channels_and_project(image, 0, 1, channel_axis=-1)
    assert not bacteria.any()
    assert (filaments == 4.0).all()


@pytest.mark.parametrize("image, channel", [
    (np.zeros((1, 3, 8, 8)), 1),
    (np.zeros((2, 3, 8, 8)), 2),
])
def test_split_channels_rejects_bad_input(image, channel):
    with pytest.raises(ValueError):
        split_channels_and_project(image, 0, channel, channel_axis=0)


@pytest.mark.parametrize("shape, axis", [
    ((2, 7, 16, 16), 0),
    ((7, 2, 16, 16), 1),
    ((1, 5, 3, 16, 16), 2),
    ((3, 16, 16), 0),
])
def test_find_channel_axis(shape, axis):
    assert find_channel_axis(shape) == axis


def test_find_channel_axis_needs_a_candidate():
    with pytest.raises(ValueError):
        find_channel_axis((1, 1, 16, 16))


def test_split_channels_locates_channel_axis():
    image = np.zeros((6, 2, 8, 8), dtype=np.uint16)
    image[4, 1, 2, 3] = 90
    bacteria, filaments = split_channels_and_project(image, 0, 1)
    assert filaments[2, 3] == 90
    assert not bacteria.any()


def test_tiff_is_loaded_as_stored_and_split(tmp_path):
    path = tmp_path / "stack.tif"
    image = np.zeros((5, 2, 12, 12), dtype=np.uint16)
    image[3, 0, 4, 4] = 200
    image[1, 1, 6, 7] = 300
    tifffile.imwrite(str(path), image)

    loaded = load_image(str(path))
    assert loaded.shape == image.shape
    bacteria, filaments = split_channels_and_project(loaded, 0, 1)
    assert bacteria[4, 4] == 200 and filaments[6, 7] == 300


def test_missing_image_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_image(str(tmp_path / "missing.tif"))


def test_max_projection_passes_2d_through():
    plane = np.arange(4).reshape(2, 2)
    assert max_intensity_projection(plane) is plane


def test_normalize_to_unit_range():
    out = normalize_to_unit_range(np.array([[2.0, 4.0], [6.0, 10.0]]))
    assert out.min() == 0.0 and out.max() == 1.0
    assert not normalize_to_unit_range(np.full((3, 3), 5.0)).any()
