import napari
import numpy as np
from skimage.measure import regionprops
from skimage.segmentation import find_boundaries, relabel_sequential
from scipy.ndimage import binary_dilation

from pipeline.models import CellRecord


def review_labels_with_napari(labels, overview, verbose=False):
    """
    Shows the overview and the segmentation side by side in Napari and lets the user
    remove unwanted cells, either by clicking on them (toggles exclusion, excluded cells
    get a red outline) or by painting them away with the label eraser / fill tool.
    Blocks until the viewer is closed; closing the viewer confirms the selection.

    Args:
        labels (np.ndarray): 2D label image from segmentation.
        overview (np.ndarray): 2D or (C, Y, X) reference image shown next to the labels.
        verbose (bool): If True, print status information.

    Returns:
        np.ndarray: Label image with all removed cells set to 0.
    """
    labels = np.asarray(labels)
    excluded = set()
    exclusion_mask = np.zeros(labels.shape, dtype=bool)
    boundary_overlay = np.zeros(labels.shape, dtype=np.float32)

    if verbose:
        print(f"Started label review GUI for {len(np.unique(labels)) - 1} cells...")

    viewer = napari.Viewer(title='Remove unwanted cells, close the window when done')
    viewer.add_image(overview, name='Overview', channel_axis=0 if np.ndim(overview) == 3 else None)
    mask_layer = viewer.add_labels(labels.copy(), name='Cells')
    exclusion_boundary_layer = viewer.add_image(boundary_overlay, name="Excluded Boundaries", colormap='red',
                                                opacity=1.0, blending='additive')
    viewer.grid.enabled = True

    def update_overlay():
        excluded_boundary = find_boundaries(exclusion_mask, mode='outer')
        thick_boundary = binary_dilation(excluded_boundary, iterations=2)
        boundary_overlay[...] = 0.0
        boundary_overlay[thick_boundary] = 1.0
        exclusion_boundary_layer.data = boundary_overlay

    def on_mouse_click(viewer, event):
        if event.type == 'mouse_press' and event.button == 1 and mask_layer.mode == 'pan_zoom':
            pos = np.round(viewer.cursor.position).astype(int)
            y, x = pos[-2], pos[-1]

            # Bounds check to not get error if clicked outside of image
            if 0 <= y < labels.shape[0] and 0 <= x < labels.shape[1]:
                clicked_cell_id = int(mask_layer.data[y, x])
                if clicked_cell_id > 0:
                    if clicked_cell_id in excluded:
                        excluded.remove(clicked_cell_id)
                    else:
                        excluded.add(clicked_cell_id)
                    exclusion_mask[mask_layer.data == clicked_cell_id] = clicked_cell_id in excluded
                    update_overlay()

    viewer.mouse_drag_callbacks.append(on_mouse_click)

    napari.run()

    curated = np.asarray(mask_layer.data).copy()
    if excluded:
        curated[np.isin(curated, list(excluded))] = 0
    if verbose:
        print(f"Label review finished, {len(excluded)} cells excluded by click.")
    return curated


def relabel_and_derive_cells(labels, verbose=False):
    """
    Renumber the surviving labels to 1..k and build one CellRecord per label,
    ordered by label id. The center is the center of the bounding box.

    Returns:
        (np.ndarray, list[CellRecord]): renumbered label image and cells.
    """
    labels = np.asarray(labels)
    if labels.dtype.kind not in 'iu':
        labels = labels.astype(np.int32)
    renumbered, _, _ = relabel_sequential(labels)

    cells = []
    for region in regionprops(renumbered):
        min_row, min_col, max_row, max_col = region.bbox
        width, height = max_col - min_col, max_row - min_row
        cells.append(CellRecord(index=int(region.label), x=int(min_col), y=int(min_row),
                                width=int(width), height=int(height),
                                center_x=int(min_col + width // 2), center_y=int(min_row + height // 2)))
    if verbose:
        if cells:
            print(f"[relabel_and_derive_cells] {len(cells)} cells after curation")
        else:
            print("[relabel_and_derive_cells] no cells left after curation, continuing with an empty population")
    return renumbered, cells


def curate_labels(labels, overview, review_fn=None, verbose=False):
    """Interactive review followed by contiguous renumbering."""
    if review_fn is None:
        review_fn = lambda lab, ov: review_labels_with_napari(lab, ov, verbose=verbose)
    reviewed = review_fn(labels, overview)
    return relabel_and_derive_cells(reviewed, verbose=verbose)
