from pathlib import Path

from loguru import logger

from .errors import MetadataError
from .metadata import MetadataBackend
from .models import Photo


def build_catalog(directory: Path, backend: MetadataBackend) -> tuple[Photo, ...]:
    """Index every photo in directory by its embedded capture time.

    Files without a readable timestamp are logged and left out. Entries are
    visited in filename order so the catalog comes out the same on every run.
    """
    photos = []
    skipped = 0
    for path in sorted(Path(directory).iterdir()):
        if path.name.startswith(".") or not path.is_file():
            continue
        try:
            captured_at = backend.read_capture_time(path)
        except (MetadataError, OSError) as e:
            logger.warning("skipping {}: {}", path, e)
            skipped += 1
            continue
        if captured_at is None:
            logger.warning("skipping {}: no capture time in metadata", path)
            skipped += 1
            continue
        photos.append(Photo(source_path=path, captured_at=captured_at))

    logger.info("Catalogued {} photos from {} ({} skipped)", len(photos), directory, skipped)
    return tuple(photos)
