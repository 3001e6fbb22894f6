"""
Two interchangeable ways of reading a photo's capture time and scrubbing its
embedded metadata. Pick one with ``pipeline.metadata_backend``.

Capture times are read as the EXIF standard ``YYYY:MM:DD HH:MM:SS`` string
and returned as naive datetimes in camera local time.
"""

import io
from datetime import datetime
from pathlib import Path
from typing import Protocol

import exifread
import piexif
from PIL import Image

from .errors import FatalConfigError, MetadataError

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

# Image.info keys Pillow fills in for embedded metadata blocks
_PIL_METADATA_KEYS = ("exif", "xmp", "XML:com.adobe.xmp", "comment")
_XMP_APP1_PREFIX = b"http://ns.adobe.com/xap/1.0/"


def drop_pil_metadata(img: Image.Image) -> bool:
    """Forget img's metadata blocks so a later save doesn't write them back."""
    found = False
    for key in _PIL_METADATA_KEYS:
        if img.info.pop(key, None) is not None:
            found = True
    return found


def _has_metadata(img: Image.Image) -> bool:
    if any(key in img.info for key in _PIL_METADATA_KEYS):
        return True
    # JPEG APP segments as read, in case this Pillow doesn't surface XMP in info
    return any(marker == "COM" or (marker == "APP1" and content.startswith(_XMP_APP1_PREFIX))
               for marker, content in getattr(img, "applist", []))


def resave_without_metadata(path: Path) -> bool:
    """Rewrite path without EXIF, XMP or comments; False if it had none."""
    path = Path(path)
    data = path.read_bytes()
    try:
        with Image.open(io.BytesIO(data)) as img:
            if not _has_metadata(img):
                return False
            img.load()
            drop_pil_metadata(img)
            options = {}
            if img.format == "JPEG":
                # Re-use the source quantization so the pixels don't degrade
                options = {"quality": "keep", "subsampling": "keep"}
            img.save(path, format=img.format, **options)
    except OSError as e:
        raise MetadataError(path, f"cannot re-save without metadata: {e}") from e
    return True


def parse_capture_time(raw: str | bytes, path: Path) -> datetime:
    if isinstance(raw, bytes):
        raw = raw.decode("ascii", errors="replace")
    text = raw.strip().strip("\x00").strip()
    try:
        return datetime.strptime(text, EXIF_DATETIME_FORMAT)
    except ValueError as e:
        raise MetadataError(path, f"unparseable capture time {text!r}") from e


class MetadataBackend(Protocol):
    name: str

    def read_capture_time(self, path: Path) -> datetime | None:
        """Capture time, or None when the file carries no timestamp."""

    def clear_metadata(self, path: Path) -> bool:
        """Strip embedded metadata in place; False when there was nothing to strip."""


class ExifreadBackend:
    name = "exifread"

    TAGS = ("EXIF DateTimeOriginal", "Image DateTime")

    def read_capture_time(self, path: Path) -> datetime | None:
        with open(path, "rb") as f:
            try:
                tags = exifread.process_file(f, details=False)
            except Exception as e:
                raise MetadataError(path, f"exifread failed: {e}") from e

        for key in self.TAGS:
            tag = tags.get(key)
            if tag is not None:
                return parse_capture_time(str(tag), path)
        return None

    def clear_metadata(self, path: Path) -> bool:
        return resave_without_metadata(path)


class PiexifBackend:
    name = "piexif"

    def _load(self, path: Path) -> dict:
        try:
            return piexif.load(str(path))
        except Exception as e:
            raise MetadataError(path, f"piexif failed: {e}") from e

    def read_capture_time(self, path: Path) -> datetime | None:
        exif_dict = self._load(path)
        raw = exif_dict.get("Exif", {}).get(piexif.ExifIFD.DateTimeOriginal)
        if raw is None:
            raw = exif_dict.get("0th", {}).get(piexif.ImageIFD.DateTime)
        if raw is None:
            return None
        return parse_capture_time(raw, path)

    def clear_metadata(self, path: Path) -> bool:
        exif_dict = self._load(path)
        removed = False
        has_exif = any(exif_dict.get(ifd) for ifd in ("0th", "Exif", "GPS", "Interop", "1st"))
        if has_exif or exif_dict.get("thumbnail"):
            try:
                piexif.remove(str(path))
            except Exception as e:
                raise MetadataError(path, f"piexif could not remove metadata: {e}") from e
            removed = True
        # piexif only knows the Exif segment; XMP can carry the same GPS data
        return resave_without_metadata(path) or removed


BACKENDS = {
    ExifreadBackend.name: ExifreadBackend,
    PiexifBackend.name: PiexifBackend,
}


def get_backend(name: str) -> MetadataBackend:
    try:
        return BACKENDS[name]()
    except KeyError:
        raise FatalConfigError(f"unknown metadata backend: {name!r}") from None
