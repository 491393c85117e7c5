import os


def get_next_available_version(path, base_suffix="_v"):
    base, ext = os.path.splitext(path)
    i = 2
    new_path = f"{base}{base_suffix}{i}{ext}"
    while os.path.exists(new_path):
        i += 1
        new_path = f"{base}{base_suffix}{i}{ext}"
    return new_path


def resolve_output_path(output_path, overwrite=False, verbose=False):
    """
    Return `output_path`, or the next free `_vN` version of it when the file exists
    and overwriting is not allowed.
    """
    if os.path.exists(output_path) and not overwrite:
        new_path = get_next_available_version(output_path)
        if verbose:
            print(f"{os.path.basename(output_path)} already exists, saving as {os.path.basename(new_path)}")
        return new_path
    return output_path


def results_directory_for(image_path, create=True):
    """`results` folder beside the input image."""
    results_dir = os.path.join(os.path.dirname(os.path.abspath(image_path)), "results")
    if create:
        os.makedirs(results_dir, exist_ok=True)
    return results_dir


def image_basename(image_path):
    return os.path.splitext(os.path.basename(image_path))[0]
