import os
import shutil
from pathlib import Path

from loguru import logger
from PIL import Image

from .errors import MetadataError, OutputDirectoryError
from .metadata import MetadataBackend, drop_pil_metadata
from .models import Photo

THUMB_SIZE = 300    # bounding box, aspect ratio kept

# Formats that can't carry an alpha channel or palette as-is
_RGB_ONLY_FORMATS = {"JPEG"}


def make_thumbnail(src: Path, dst: Path, size: int = THUMB_SIZE):
    """Shrink src to fit a size x size box and save it in the same format."""
    with Image.open(src) as img:
        fmt = img.format
        img.thumbnail((size, size), Image.LANCZOS)
        if fmt in _RGB_ONLY_FORMATS and img.mode != "RGB":
            img = img.convert("RGB")
        drop_pil_metadata(img)
        img.save(dst, fmt)


def _reset_dir(target_dir: Path, root: Path | None = None):
    # Only ever wipe a direct child of root, whatever the name says
    normalized = Path(os.path.abspath(target_dir))
    if root is None:
        root = target_dir.parent
    if normalized.parent != Path(os.path.abspath(root)) or normalized.name in ("", ".", ".."):
        raise OutputDirectoryError(target_dir, f"refusing to replace a directory outside {root}")
    try:
        if target_dir.exists():
            shutil.rmtree(target_dir)
        (target_dir / "thumbnails").mkdir(parents=True)
    except OSError as e:
        raise OutputDirectoryError(target_dir, f"cannot prepare output directory: {e}") from e


def materialize(photos: tuple[Photo, ...], target_dir: Path, backend: MetadataBackend,
                thumbnail_size: int = THUMB_SIZE, root: Path | None = None) -> tuple[list[str], int]:
    """Copy matched photos into target_dir as 1.ext .. N.ext, with thumbnails.

    target_dir is wiped first so a rerun over the same inputs leaves exactly
    the same files; it has to be a direct child of root (default: its own
    parent, taken literally). Numbers only go to photos that were copied and
    thumbnailed, so there are never gaps: a failing photo is logged, its
    partial output removed, and the next photo takes its number.

    Returns the published file names and the number of photos that failed.
    """
    target_dir = Path(target_dir)
    thumbs_dir = target_dir / "thumbnails"
    _reset_dir(target_dir, root)

    copied: list[str] = []
    failures = 0
    total = len(photos)

    for i, photo in enumerate(photos):
        ext = photo.source_path.suffix.lower()
        name = f"{len(copied) + 1}{ext}"
        full = target_dir / name
        thumb = thumbs_dir / name

        try:
            shutil.copyfile(photo.source_path, full)
        except OSError as e:
            logger.error("[{}/{}] unable to copy {}: {}", i + 1, total, photo.source_path, e)
            failures += 1
            continue

        try:
            make_thumbnail(full, thumb, thumbnail_size)
        except (OSError, ValueError) as e:
            # Pillow raises UnidentifiedImageError (an OSError) for undecodable files
            logger.error("[{}/{}] thumbnail failed for {}: {}", i + 1, total, photo.source_path, e)
            full.unlink(missing_ok=True)
            thumb.unlink(missing_ok=True)
            failures += 1
            continue

        # Location and device details must not end up on the public site
        try:
            if backend.clear_metadata(full):
                logger.debug("stripped metadata from {}", full)
        except (MetadataError, OSError) as e:
            logger.warning("[{}/{}] could not strip metadata from {}: {}", i + 1, total, full, e)
            failures += 1

        copied.append(name)

    logger.info("Copied {}/{} photos to {}", len(copied), total, target_dir)
    return copied, failures
