from skimage.io import imsave
import numpy as np
import time


class SegmentationUnavailable(RuntimeError):
    """The external cell segmenter could not be run. Fatal for the run."""


def segment_bacteria_with_cellpose(image, diameter=30, model_type='cyto3', use_gpu=False, verbose=True):
    """
    Run 2D segmentation of the bacteria projection with Cellpose.

    Parameters:
    ------------
    image : np.ndarray
        2D grayscale bacteria raster (max projection, blurred).

    diameter : float
        Expected bacterium diameter in pixels, passed to Cellpose as size hint.

    model_type : str
        Pretrained Cellpose model to load.

    use_gpu : bool
        Ask Cellpose to run on the GPU if one is available.

    Returns:
    --------
    masks : np.ndarray
        Label image, 0 = background, one positive id per cell.
    """
    try:
        from cellpose import models
    except ImportError as e:
        raise SegmentationUnavailable(f"Cellpose is not installed: {e}") from e

    if image.ndim != 2:
        raise ValueError("Unsupported image shape for 2D segmentation.")

    if verbose:
        print(f"Running Cellpose segmentation (model '{model_type}', diameter {diameter})...")
        start_time = time.time()
    try:
        model = models.CellposeModel(gpu=use_gpu, model_type=model_type)
        result = model.eval(image, diameter=diameter, channels=[0, 0])
    except Exception as e:
        raise SegmentationUnavailable(f"Cellpose segmentation failed: {e}") from e

    masks = np.asarray(result[0])
    if verbose:
        elapsed = time.time() - start_time
        print(f"Segmentation completed in {elapsed:.2f} seconds, {len(np.unique(masks)) - 1} labels found.")
    return masks


def remove_small_labels(labels, min_region_size, verbose=False):
    """Zero out every label whose pixel area is below `min_region_size`."""
    labels = np.asarray(labels).copy()
    if labels.size == 0 or labels.max() == 0:
        return labels
    areas = np.bincount(labels.ravel())
    too_small = areas < min_region_size
    too_small[0] = False
    labels[too_small[labels]] = 0
    if verbose:
        n_removed = int(np.count_nonzero(too_small & (areas > 0)))
        print(f"[remove_small_labels] removed {n_removed} labels smaller than {min_region_size} px")
    return labels


def segment_cells(image, diameter=30, min_region_size=50, segment_fn=None, save_mask_path=None, verbose=True):
    """
    Segment the bacteria raster and drop labels below the minimum size.

    `segment_fn(image, diameter)` is the external segmenter; Cellpose by default. Any
    failure to run it is reported as SegmentationUnavailable.
    """
    if segment_fn is None:
        segment_fn = lambda img, diam: segment_bacteria_with_cellpose(img, diameter=diam, verbose=verbose)

    try:
        labels = segment_fn(image, diameter)
    except SegmentationUnavailable:
        raise
    except Exception as e:
        raise SegmentationUnavailable(f"Segmentation could not be run: {e}") from e

    labels = np.asarray(labels)
    if labels.shape != np.asarray(image).shape:
        raise SegmentationUnavailable(
            f"Segmenter returned labels of shape {labels.shape} for an image of shape {np.asarray(image).shape}")
    if labels.dtype.kind not in 'iu':
        labels = labels.astype(np.int32)

    labels = remove_small_labels(labels, min_region_size, verbose=verbose)

    if save_mask_path is not None:
        save_label_mask(save_mask_path, labels, verbose=verbose)

    return labels


def save_label_mask(path, labels, verbose=False):
    """Save a label image as 16-bit tif."""
    imsave(path, np.asarray(labels).astype(np.uint16), check_contrast=False)
    if verbose:
        print(f"Segmentation mask saved to: {path}")
    return path
