"""
Image Discovery
================
Finds the images the pipeline should recognise.

Documentation trees keep screenshots in folders named ``_images``; every
such folder below the scanned roots is collected, and the PNG/JPEG files
directly inside them are listed.

Design notes:
    - The discovery step **never writes** anything.
    - Results are absolute and sorted so repeated runs index images in the
      same order.
    - A missing root or an unreadable folder is logged and skipped rather
      than aborting the whole scan.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Union

logger = logging.getLogger(__name__)

IMAGE_FOLDER_NAME = "_images"
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg"}


def find_image_folders(base_dir: Union[str, Path]) -> List[str]:
    """Return every ``_images`` directory below *base_dir*."""
    base = Path(base_dir).expanduser().resolve()
    logger.info("Searching for %s folders in %s", IMAGE_FOLDER_NAME, base)
    if not base.is_dir():
        logger.warning("Directory not found: %s", base)
        return []

    folders = sorted(str(p) for p in base.rglob(IMAGE_FOLDER_NAME) if p.is_dir())
    if not folders:
        logger.warning("No %s folders found in %s", IMAGE_FOLDER_NAME, base)
    return folders


def find_image_files(image_dirs: Iterable[Union[str, Path]]) -> List[str]:
    """Return PNG and JPEG files (case-insensitive) directly inside *image_dirs*."""
    image_files: List[str] = []
    for folder in image_dirs:
        try:
            entries = sorted(Path(folder).iterdir())
        except OSError as exc:
            logger.error("Error reading directory %s: %s", folder, exc)
            continue
        image_files.extend(
            str(p.resolve()) for p in entries
            if p.is_file() and p.suffix.lower() in IMAGE_EXTENSIONS
        )
    return image_files


def discover_images(base_dir: Union[str, Path], scan_dirs: Iterable[str]) -> List[str]:
    """
    Collect image files from the ``_images`` folders of each scan directory
    (e.g. ``docs`` and ``releasenotes``) under *base_dir*.
    """
    base = Path(base_dir)
    folders: List[str] = []
    for name in scan_dirs:
        folders.extend(find_image_folders(base / name))
    images = find_image_files(folders)
    logger.info("Found %d images in %d folders", len(images), len(folders))
    return images
