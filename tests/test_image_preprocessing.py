import numpy as np

from pipeline.a_image_preprocessing import (build_bacteria_mask, filter_attached_filaments, preprocess_channels,
                                            skeletonize_guidance)


def bacteria_image():
    image = np.zeros((80, 80), dtype=np.float32)
    image[30:50, 30:50] = 100.0
    return image


def test_bacteria_mask_is_dilated_by_margin():
    mask = build_bacteria_mask(bacteria_image(), surroundings_margin=5)
    assert mask[40, 40]
    assert mask[40, 52]
    assert not mask[40, 60]
    assert not mask[5, 5]


def test_bacteria_mask_fills_holes():
    image = np.zeros((60, 60), dtype=np.float32)
    image[10:50, 10:50] = 100.0
    image[22:38, 22:38] = 0.0
    mask = build_bacteria_mask(image, surroundings_margin=0)
    assert mask[30, 30]
    assert not mask[2, 2]


def test_flat_input_gives_empty_rasters():
    flat = np.full((30, 30), 7.0, dtype=np.float32)
    assert not build_bacteria_mask(flat).any()
    assert not skeletonize_guidance(flat).any()


def test_guidance_skeleton_is_thin():
    image = np.zeros((40, 60), dtype=np.float32)
    image[18:23, 10:50] = 200.0
    skeleton = skeletonize_guidance(image)
    assert skeleton.any()
    assert skeleton.sum() < (image > 0).sum()
    # one pixel per column along the body of the line
    assert (skeleton[:, 20:40].sum(axis=0) == 1).all()


def test_filter_keeps_only_filaments_touching_bacteria():
    mask = np.zeros((60, 60), dtype=bool)
    mask[10:20, 10:20] = True
    skeleton = np.zeros((60, 60), dtype=bool)
    skeleton[15, 20:45] = True
    skeleton[50, 5:55] = True
    attached = filter_attached_filaments(mask, skeleton, min_component_size=20)
    assert attached[15, 20:45].all()
    assert not attached[50].any()


def test_filter_drops_small_components():
    mask = np.zeros((30, 30), dtype=bool)
    mask[10, 10] = True
    skeleton = np.zeros((30, 30), dtype=bool)
    skeleton[10, 11:14] = True
    assert not filter_attached_filaments(mask, skeleton, min_component_size=20).any()
    assert filter_attached_filaments(mask, skeleton, min_component_size=2).sum() == 3


def test_filter_with_empty_inputs():
    empty = np.zeros((10, 10), dtype=bool)
    assert not filter_attached_filaments(empty, empty).any()


def test_preprocess_channels_bundle():
    filaments = np.zeros((80, 80), dtype=np.float32)
    filaments[40, 45:75] = 150.0
    rasters = preprocess_channels(bacteria_image(), filaments, surroundings_margin=3)
    assert rasters.bacteria_mask.shape == (80, 80)
    assert rasters.attached_filaments.any()
    assert not (rasters.attached_filaments & ~rasters.skeleton).any()
    assert rasters.bacteria_for_segmentation.dtype == np.float32
