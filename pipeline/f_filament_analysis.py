import numpy as np
from scipy.sparse import coo_matrix
from scipy.sparse.csgraph import dijkstra
from skan import Skeleton
from skimage.measure import label, regionprops
from skimage.morphology import skeletonize

from pipeline.models import FilamentMeasurement


def longest_path_length(component_skeleton):
    """
    Length of the longest path between two end points of one connected skeleton.

    The skeleton is turned into a junction graph with skan (end points and junctions
    as nodes, skan path lengths as edge weights); the result is the largest finite
    shortest-path distance between any two nodes. A closed loop without end points
    measures its own perimeter path, a single pixel measures 0.
    """
    component_skeleton = np.asarray(component_skeleton, dtype=bool)
    if component_skeleton.sum() < 2:
        return 0.0

    skeleton = Skeleton(component_skeleton)
    path_lengths = np.asarray(skeleton.path_lengths(), dtype=float)
    paths = skeleton.paths_list()
    if len(paths) == 0:
        return 0.0

    src = np.array([path[0] for path in paths])
    dst = np.array([path[-1] for path in paths])
    nodes, inverse = np.unique(np.concatenate([src, dst]), return_inverse=True)
    n_paths = len(paths)
    src_id, dst_id = inverse[:n_paths], inverse[n_paths:]

    # self loops carry no distance in the junction graph
    open_paths = src_id != dst_id
    longest = float(path_lengths[~open_paths].max()) if (~open_paths).any() else 0.0
    if open_paths.any():
        # parallel paths between the same two nodes: keep the shortest one
        edges = {}
        for a, b, length in zip(src_id[open_paths], dst_id[open_paths], path_lengths[open_paths]):
            key = (min(a, b), max(a, b))
            edges[key] = min(length, edges.get(key, np.inf))
        rows, cols = zip(*edges.keys())
        weights = coo_matrix((list(edges.values()), (rows, cols)), shape=(len(nodes), len(nodes))).tocsr()
        distances = dijkstra(weights, directed=False)
        finite = distances[np.isfinite(distances)]
        if finite.size:
            longest = max(longest, float(finite.max()))
    return longest


def measure_filaments(stroke_layer, verbose=False):
    """
    Skeletonize the drawn strokes and return the skeleton plus one longest-path
    length per 8-connected skeleton component, ordered by component label.
    """
    stroke_layer = np.asarray(stroke_layer, dtype=bool)
    if not stroke_layer.any():
        return np.zeros(stroke_layer.shape, dtype=bool), []

    skeleton = skeletonize(stroke_layer)
    components = label(skeleton, connectivity=2)
    lengths = []
    for region in regionprops(components):
        lengths.append(longest_path_length(region.image))
    if verbose:
        print(f"[measure_filaments] {len(lengths)} filaments: {[round(length, 1) for length in lengths]}")
    return skeleton, lengths


def analyze_stroke_layer(stroke_layer, cell_index, ledger, pixel_size_um=None, verbose=False):
    """
    Measure the stroke layer, append one FilamentMeasurement per filament to the
    ledger and clear the layer in place.

    Returns:
        (int, np.ndarray): number of filaments measured and their skeleton.
    """
    skeleton, lengths = measure_filaments(stroke_layer, verbose=verbose)
    for length in lengths:
        length_um = length * pixel_size_um if pixel_size_um is not None else None
        ledger.append(FilamentMeasurement(cell_index=cell_index, length=length, length_um=length_um))
    stroke_layer[...] = False
    return len(lengths), skeleton


def clamped_rectangles(offset, patch_shape, canvas_shape):
    """
    Overlap of a patch placed at `offset` (x, y) with a canvas.

    Returns:
        (canvas slices, patch slices), or None when the patch lies fully outside.
    """
    patch_h, patch_w = patch_shape[:2]
    canvas_h, canvas_w = canvas_shape[:2]
    y0, y1 = max(offset.y, 0), min(offset.y + patch_h, canvas_h)
    x0, x1 = max(offset.x, 0), min(offset.x + patch_w, canvas_w)
    if y0 >= y1 or x0 >= x1:
        return None
    canvas_slices = (slice(y0, y1), slice(x0, x1))
    patch_slices = (slice(y0 - offset.y, y1 - offset.y), slice(x0 - offset.x, x1 - offset.x))
    return canvas_slices, patch_slices


def transfer_to_master(master_canvas, skeleton, offset):
    """OR the skeleton into the master canvas at `offset`, clipped to the canvas."""
    skeleton = np.asarray(skeleton, dtype=bool)
    if not skeleton.any():
        return master_canvas
    rectangles = clamped_rectangles(offset, skeleton.shape, master_canvas.shape)
    if rectangles is None:
        return master_canvas
    canvas_slices, patch_slices = rectangles
    master_canvas[canvas_slices] |= skeleton[patch_slices]
    return master_canvas
