import numpy as np

from pipeline.c_label_curation import curate_labels, relabel_and_derive_cells


def test_sparse_labels_are_renumbered_contiguously(cell_labels):
    renumbered, cells = relabel_and_derive_cells(cell_labels)
    assert set(np.unique(renumbered)) == {0, 1, 2, 3}
    assert [cell.index for cell in cells] == [1, 2, 3]
    # order follows the original label ids
    assert renumbered[30, 30] == 1 and renumbered[60, 60] == 2 and renumbered[90, 90] == 3


def test_cell_records_carry_bounding_box_and_center(cell_labels):
    _, cells = relabel_and_derive_cells(cell_labels)
    first = cells[0]
    assert (first.x, first.y, first.width, first.height) == (25, 25, 10, 10)
    assert (first.center_x, first.center_y) == (30, 30)
    assert first.filament_count == 0


def test_removed_labels_leave_no_gap(cell_labels):
    def remove_middle(labels, overview):
        return np.where(labels == 5, 0, labels)

    renumbered, cells = curate_labels(cell_labels, overview=None, review_fn=remove_middle)
    assert len(cells) == 2
    assert set(np.unique(renumbered)) == {0, 1, 2}
    assert renumbered[90, 90] == 2
    assert renumbered[60, 60] == 0


def test_all_labels_removed_gives_empty_population(cell_labels):
    renumbered, cells = curate_labels(cell_labels, overview=None,
                                      review_fn=lambda labels, overview: np.zeros_like(labels))
    assert cells == []
    assert not renumbered.any()


def test_review_receives_labels_and_overview(cell_labels):
    seen = {}

    def review(labels, overview):
        seen['labels'] = labels
        seen['overview'] = overview
        return labels

    overview = np.zeros((3, 120, 120), dtype=np.float32)
    curate_labels(cell_labels, overview, review_fn=review)
    assert seen['overview'] is overview
    np.testing.assert_array_equal(seen['labels'], cell_labels)
