import numpy as np
from scipy.ndimage import binary_fill_holes, distance_transform_edt
from skimage.filters import gaussian, threshold_otsu, threshold_triangle
from skimage.measure import label
from skimage.morphology import skeletonize

from pipeline.models import GuidanceRasters


def _threshold_or_empty(blurred, threshold_fn):
    """Binarize with an automatic threshold; flat input gives an empty mask."""
    if blurred.size == 0 or np.allclose(blurred, blurred.flat[0]):
        return np.zeros(blurred.shape, dtype=bool)
    return blurred > threshold_fn(blurred)


def skeletonize_guidance(raster, blur_sigma=1.0, verbose=False):
    """
    Blur, threshold (triangle method, suited to sparse signal on a low-noise background)
    and thin the filament channel to a 1-pixel skeleton. Only used as a visual aid.
    """
    blurred = gaussian(np.asarray(raster, dtype=np.float32), sigma=blur_sigma, preserve_range=True)
    binary = _threshold_or_empty(blurred, threshold_triangle)
    skeleton = skeletonize(binary)
    if verbose:
        print(f"[skeletonize_guidance] skeleton pixels: {int(skeleton.sum())}")
    return skeleton


def build_bacteria_mask(raster, surroundings_margin=5, blur_sigma=1.0, verbose=False):
    """
    Blur, Otsu-threshold and hole-fill the bacteria channel, then grow the mask by
    `surroundings_margin` pixels using the euclidean distance to the mask.
    """
    blurred = gaussian(np.asarray(raster, dtype=np.float32), sigma=blur_sigma, preserve_range=True)
    binary = _threshold_or_empty(blurred, threshold_otsu)
    filled = binary_fill_holes(binary)
    if surroundings_margin > 0 and filled.any():
        # distance of each background pixel to the nearest bacteria pixel
        dilated = distance_transform_edt(~filled) <= surroundings_margin
    else:
        dilated = filled
    if verbose:
        print(f"[build_bacteria_mask] mask area {int(filled.sum())} -> {int(dilated.sum())} after dilation")
    return dilated


def filter_attached_filaments(bacteria_mask, skeleton, min_component_size=20, verbose=False):
    """
    Keep only the skeleton pieces that are connected to a bacterium.

    The bacteria mask and the skeleton are united, split into 8-connected components,
    components smaller than `min_component_size` are dropped and the skeleton is masked
    by the remaining components that overlap the bacteria mask.
    """
    bacteria_mask = np.asarray(bacteria_mask, dtype=bool)
    skeleton = np.asarray(skeleton, dtype=bool)
    union = bacteria_mask | skeleton
    if not union.any():
        return np.zeros_like(skeleton)

    components = label(union, connectivity=2)
    sizes = np.bincount(components.ravel())
    touching = np.zeros(sizes.shape, dtype=bool)
    touching[np.unique(components[bacteria_mask])] = True
    keep = touching & (sizes >= min_component_size)
    keep[0] = False

    attached = skeleton & keep[components]
    if verbose:
        print(f"[filter_attached_filaments] kept {int(keep.sum())} / {len(sizes) - 1} components, "
              f"{int(attached.sum())} skeleton pixels")
    return attached


def preprocess_channels(bacteria, filaments, surroundings_margin=5, min_filtered_component_size=20,
                        blur_sigma=1.0, verbose=False):
    """Build all guidance rasters from the two channel projections."""
    skeleton = skeletonize_guidance(filaments, blur_sigma=blur_sigma, verbose=verbose)
    bacteria_mask = build_bacteria_mask(bacteria, surroundings_margin=surroundings_margin,
                                        blur_sigma=blur_sigma, verbose=verbose)
    attached = filter_attached_filaments(bacteria_mask, skeleton,
                                         min_component_size=min_filtered_component_size, verbose=verbose)
    bacteria_for_segmentation = gaussian(np.asarray(bacteria, dtype=np.float32), sigma=blur_sigma,
                                         preserve_range=True).astype(np.float32)
    return GuidanceRasters(skeleton=skeleton, bacteria_mask=bacteria_mask,
                           attached_filaments=attached,
                           bacteria_for_segmentation=bacteria_for_segmentation)
