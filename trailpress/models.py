import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path

# Anything that isn't safe unescaped in a path segment or a URL
_SLUG_UNSAFE = re.compile(r"[^\w.-]", re.ASCII)
_LEADING_DOTS = re.compile(r"^\.+")


def slugify(title: str) -> str:
    """Make a track title usable as a directory name and a URL segment.

    Leading dots become underscores too, so "." and ".." can't climb out
    of the photo directory and no slug names a hidden file.
    """
    slug = _SLUG_UNSAFE.sub("_", title)
    slug = _LEADING_DOTS.sub(lambda m: "_" * len(m.group()), slug)
    return slug or "_"


@dataclass(frozen=True)
class Coordinate:
    lon: float
    lat: float


@dataclass(frozen=True)
class Photo:
    source_path: Path
    captured_at: datetime    # naive, camera local time


@dataclass(frozen=True)
class TrackWindow:
    """One parsed track: its route, time window and summary numbers.

    ``start_time`` and ``end_time`` are taken from the first and last point
    as recorded, not from a min/max over the segment. The centroid is the
    plain mean of longitudes and latitudes, which is good enough for a map
    center and a country lookup but is not a geodesic centroid.
    """
    source_path: Path
    title: str
    slug: str
    points: tuple[Coordinate, ...]
    start_time: datetime     # aware, UTC
    end_time: datetime
    centroid: Coordinate
    distance_km: float = 0.0

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class Article:
    title: str
    slug: str
    photo_count: int
    place_name: str
    start_time: datetime
    end_time: datetime
    centroid: Coordinate
    distance_km: float = 0.0
    photos: tuple[str, ...] = field(default=(), compare=False)

    @property
    def url(self) -> str:
        return f"tracks/{self.slug}.html"
