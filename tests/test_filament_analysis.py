import numpy as np
import pytest
from skimage.draw import line

from pipeline.f_filament_analysis import (analyze_stroke_layer, clamped_rectangles, longest_path_length,
                                          measure_filaments, transfer_to_master)
from pipeline.models import CutoutPlacementOffset, MeasurementLedger


def draw_line(layer, r0, c0, r1, c1):
    rr, cc = line(r0, c0, r1, c1)
    layer[rr, cc] = True
    return layer


def test_longest_path_of_straight_line():
    skeleton = draw_line(np.zeros((5, 40), dtype=bool), 2, 5, 2, 25)
    assert longest_path_length(skeleton) == pytest.approx(20.0)


def test_longest_path_of_diagonal_line():
    skeleton = draw_line(np.zeros((30, 30), dtype=bool), 0, 0, 20, 20)
    assert longest_path_length(skeleton) == pytest.approx(20 * np.sqrt(2), abs=0.5)


def test_longest_path_ignores_short_side_branch():
    skeleton = draw_line(np.zeros((30, 40), dtype=bool), 10, 5, 10, 25)
    draw_line(skeleton, 11, 15, 15, 15)
    assert longest_path_length(skeleton) == pytest.approx(20.0, abs=1.5)


def test_single_pixel_has_zero_length():
    skeleton = np.zeros((5, 5), dtype=bool)
    skeleton[2, 2] = True
    assert longest_path_length(skeleton) == 0.0


def test_measure_filaments_one_length_per_component():
    layer = draw_line(np.zeros((50, 50), dtype=bool), 5, 5, 5, 15)
    draw_line(layer, 30, 5, 30, 20)
    skeleton, lengths = measure_filaments(layer)
    assert sorted(lengths) == pytest.approx([10.0, 15.0])
    assert skeleton.sum() == layer.sum()


def test_thick_stroke_measures_close_to_drawn_length():
    layer = np.zeros((40, 60), dtype=bool)
    layer[19:22, 10:41] = True
    _, lengths = measure_filaments(layer)
    assert len(lengths) == 1
    assert lengths[0] == pytest.approx(30.0, abs=3.0)


def test_empty_stroke_layer_leaves_ledger_unchanged():
    ledger = MeasurementLedger()
    layer = np.zeros((20, 20), dtype=bool)
    count, skeleton = analyze_stroke_layer(layer, cell_index=1, ledger=ledger)
    assert count == 0
    assert len(ledger) == 0
    assert not skeleton.any()


def test_analyze_stroke_layer_appends_and_clears():
    ledger = MeasurementLedger()
    layer = draw_line(np.zeros((20, 30), dtype=bool), 10, 2, 10, 22)
    count, skeleton = analyze_stroke_layer(layer, cell_index=3, ledger=ledger, pixel_size_um=0.5)
    assert count == 1
    assert ledger[0].cell_index == 3
    assert ledger[0].length == pytest.approx(20.0)
    assert ledger[0].length_um == pytest.approx(10.0)
    assert not layer.any()
    assert skeleton.sum() == 21


def test_transfer_of_empty_layer_keeps_canvas_identical():
    master = np.zeros((50, 50), dtype=bool)
    master[10, 10:20] = True
    before = master.copy()
    transfer_to_master(master, np.zeros((20, 20), dtype=bool), CutoutPlacementOffset(5, 5))
    np.testing.assert_array_equal(master, before)


def test_transfer_places_skeleton_at_offset():
    master = np.zeros((50, 50), dtype=bool)
    skeleton = np.zeros((10, 10), dtype=bool)
    skeleton[2, 3] = True
    transfer_to_master(master, skeleton, CutoutPlacementOffset(x=20, y=30))
    assert master[32, 23]
    assert master.sum() == 1


@pytest.mark.parametrize("offset", [CutoutPlacementOffset(-5, -7), CutoutPlacementOffset(45, 44)])
def test_transfer_clamps_to_canvas(offset):
    master = np.zeros((50, 50), dtype=bool)
    skeleton = np.ones((10, 10), dtype=bool)
    transfer_to_master(master, skeleton, offset)
    expected = np.zeros_like(master)
    y0, x0 = max(offset.y, 0), max(offset.x, 0)
    expected[y0:min(offset.y + 10, 50), x0:min(offset.x + 10, 50)] = True
    np.testing.assert_array_equal(master, expected)


def test_transfer_fully_outside_is_a_no_op():
    master = np.zeros((50, 50), dtype=bool)
    transfer_to_master(master, np.ones((10, 10), dtype=bool), CutoutPlacementOffset(60, -30))
    assert not master.any()


def test_clamped_rectangles():
    canvas_slices, patch_slices = clamped_rectangles(CutoutPlacementOffset(-2, 3), (10, 10), (8, 8))
    assert canvas_slices == (slice(3, 8), slice(0, 8))
    assert patch_slices == (slice(0, 5), slice(2, 10))
    assert clamped_rectangles(CutoutPlacementOffset(8, 0), (4, 4), (8, 8)) is None
