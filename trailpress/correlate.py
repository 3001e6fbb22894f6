import math
from datetime import datetime, timedelta, timezone
from typing import Iterable

from .models import Photo, TrackWindow


def _epoch_seconds(value: datetime) -> int:
    return math.floor(value.timestamp())


def correlate(catalog: Iterable[Photo], window: TrackWindow,
              utc_offset: timedelta = timedelta(0)) -> tuple[Photo, ...] | None:
    """Photos taken between the track's first and last point, both ends included.

    Camera local time minus utc_offset is compared with the UTC window at
    whole-second precision. Matches come back ordered by capture time, ties
    in catalog order; None when nothing matches.
    """
    start = _epoch_seconds(window.start_time)
    end = _epoch_seconds(window.end_time)

    matched = []
    for photo in catalog:
        taken = _epoch_seconds((photo.captured_at - utc_offset).replace(tzinfo=timezone.utc))
        if start <= taken <= end:
            matched.append((taken, photo))

    if not matched:
        return None

    # sorted() is stable, so equal timestamps keep catalog order
    matched.sort(key=lambda item: item[0])
    return tuple(photo for _, photo in matched)
