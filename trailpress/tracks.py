from datetime import datetime, timezone
from pathlib import Path

import gpxpy
import gpxpy.gpx

from .errors import EmptyTrackError, MissingTimestampError, TrackParseError
from .models import Coordinate, TrackWindow, slugify


def _as_utc(value: datetime) -> datetime:
    # GPX times without an offset are UTC by definition
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def summarize_track(path: Path) -> TrackWindow:
    """Read the first segment of the first track in a GPX file."""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            gpx = gpxpy.parse(f)
    except (OSError, UnicodeDecodeError, gpxpy.gpx.GPXException) as e:
        raise TrackParseError(path, f"cannot parse GPX: {e}") from e

    if not gpx.tracks:
        raise EmptyTrackError(path, "no tracks")
    track = gpx.tracks[0]
    if not track.segments:
        raise EmptyTrackError(path, "first track has no segments")
    segment = track.segments[0]
    if not segment.points:
        raise EmptyTrackError(path, "first segment has no points")

    first, last = segment.points[0], segment.points[-1]
    if first.time is None:
        raise MissingTimestampError(path, "first point has no time")
    if last.time is None:
        raise MissingTimestampError(path, "last point has no time")

    points = tuple(Coordinate(lon=p.longitude, lat=p.latitude) for p in segment.points)
    centroid = Coordinate(
        lon=sum(p.lon for p in points) / len(points),
        lat=sum(p.lat for p in points) / len(points),
    )

    title = (track.name or gpx.name or "").strip() or path.stem

    return TrackWindow(
        source_path=path,
        title=title,
        slug=slugify(title),
        points=points,
        start_time=_as_utc(first.time),
        end_time=_as_utc(last.time),
        centroid=centroid,
        distance_km=(segment.length_2d() or 0.0) / 1000,
    )
