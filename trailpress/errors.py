"""Exceptions raised by the build pipeline."""

from pathlib import Path


class TrailpressError(Exception):
    pass


class FatalConfigError(TrailpressError):
    """The run cannot start: bad config or unusable input/output roots."""


# ---------------------------------------------------------------------------
# Per-track errors: abort this track, keep going with the others
# ---------------------------------------------------------------------------

class FatalTrackError(TrailpressError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class TrackParseError(FatalTrackError):
    pass


class EmptyTrackError(FatalTrackError):
    pass


class MissingTimestampError(FatalTrackError):
    pass


class SlugCollisionError(FatalTrackError):
    pass


class OutputDirectoryError(FatalTrackError):
    pass


# ---------------------------------------------------------------------------
# Per-photo and network errors: logged and absorbed
# ---------------------------------------------------------------------------

class RecoverablePhotoError(TrailpressError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"{path}: {reason}")
        self.path = Path(path)
        self.reason = reason


class MetadataError(RecoverablePhotoError):
    pass


class GeocodingError(TrailpressError):
    pass
