"""
image_utils.py

Helper functions for microscopy image handling: loading multi-channel z-stacks,
max-intensity projection of the bacteria and filament channels, intensity
normalisation, and Napari visualization of the final overview.
"""

import os

import numpy as np

# Image handling
from skimage import io
from aicsimageio import AICSImage

# Visualization
import napari


TIFF_EXTENSIONS = ('.tif', '.tiff')


def is_tiff(image_path):
    return image_path.lower().endswith(TIFF_EXTENSIONS)


def load_image(image_path, verbose=False):
    """
    Load a multi-channel microscopy image.

    Plain .tif/.tiff files are read as stored, so the caller has to locate the
    channel axis (see `split_channels_and_project(channel_axis=None)`). Other
    microscopy formats (.dv, .czi, ...) are read with AICSImage and returned with
    axes (C, Z, Y, X) for the first time point.

    Args:
        image_path (str): Path to image file.
        verbose (bool): If True, print image info.

    Returns:
        np.ndarray: Image data.
    """
    if not os.path.isfile(image_path):
        raise FileNotFoundError(f"No such file: {image_path}")
    if is_tiff(image_path):
        image = io.imread(image_path)
    else:
        image = AICSImage(image_path).get_image_data("CZYX", T=0)
    if verbose:
        print(f'loading image from path {image_path}')
        print(f"Image shape: {image.shape}")
    return image


def max_intensity_projection(channel_stack):
    """
    Collapse every axis in front of (Y, X) by maximum projection. 2D input passes through.
    """
    channel_stack = np.asarray(channel_stack)
    if channel_stack.ndim == 2:
        return channel_stack
    if channel_stack.ndim > 2:
        return channel_stack.reshape(-1, *channel_stack.shape[-2:]).max(axis=0)
    raise ValueError(f"Expected at least a 2D channel, got shape {channel_stack.shape}")


def find_channel_axis(shape):
    """
    Smallest axis of size >= 2 in front of the trailing (Y, X) axes; the first one on ties.
    """
    candidates = [(size, axis) for axis, size in enumerate(shape[:-2]) if size >= 2]
    if not candidates:
        raise ValueError(f"Cannot find a channel axis in image of shape {tuple(shape)}")
    return min(candidates)[1]


def split_channels_and_project(image, bacteria_channel=0, filament_channel=1, channel_axis=None, verbose=False):
    """
    Pick the bacteria and filament channels and max-project each of them over z.

    Args:
        image (np.ndarray): Multi-channel image, channels along `channel_axis`.
        bacteria_channel (int): Index of the bacteria-body stain.
        filament_channel (int): Index of the filament stain.
        channel_axis (int): Axis holding the channels; located with `find_channel_axis` if None.

    Returns:
        tuple: (bacteria projection, filament projection), both 2D float arrays.
    """
    image = np.asarray(image)
    if image.ndim < 3:
        raise ValueError(f"Need at least 2 channels, got image of shape {image.shape}")
    if channel_axis is None:
        channel_axis = find_channel_axis(image.shape)
    image = np.moveaxis(image, channel_axis, 0)
    n_channels = image.shape[0]
    if n_channels < 2:
        raise ValueError(f"Need at least 2 channels, got image of shape {image.shape}")
    for name, idx in (("bacteria", bacteria_channel), ("filament", filament_channel)):
        if not 0 <= idx < n_channels:
            raise ValueError(f"{name} channel {idx} out of range for {n_channels} channels")

    bacteria = max_intensity_projection(image[bacteria_channel]).astype(np.float32)
    filaments = max_intensity_projection(image[filament_channel]).astype(np.float32)
    if verbose:
        print(f"[split_channels_and_project] bacteria channel {bacteria_channel}, "
              f"filament channel {filament_channel}, projection shape {bacteria.shape}")
    return bacteria, filaments


def normalize_to_unit_range(raster):
    """Min-max scale to [0, 1]; a flat raster becomes all zeros."""
    raster = np.asarray(raster, dtype=np.float32)
    if raster.size == 0:
        return raster
    low, high = float(raster.min()), float(raster.max())
    if high <= low:
        return np.zeros_like(raster, dtype=np.float32)
    return (raster - low) / (high - low)


def view_overview_with_napari(overview_stack, channel_names, label_channel=None):
    """
    Display the saved overview stack in a Napari viewer, one layer per channel.

    Args:
        overview_stack (np.ndarray): (C, Y, X) stack.
        channel_names (list): Layer names, one per channel.
        label_channel (int): Channel to show as a labels layer, if any.
    """
    viewer = napari.Viewer(title='Filament tracing results')
    for idx, name in enumerate(channel_names):
        if idx == label_channel:
            viewer.add_labels(overview_stack[idx].astype(np.int32), name=name, opacity=0.5)
        else:
            viewer.add_image(overview_stack[idx], name=name, colormap='gray', blending='additive')
    napari.run()
