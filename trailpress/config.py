"""Load and check the site configuration (a single TOML document)."""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path

from .errors import FatalConfigError

DEFAULT_CONFIG = Path("config.toml")
NOMINATIM_REVERSE_URL = "https://nominatim.openstreetmap.org/reverse"
DEFAULT_USER_AGENT = "trailpress/0.3 (static site builder)"

METADATA_BACKENDS = ("exifread", "piexif")


@dataclass(frozen=True)
class Site:
    base_uri: str
    name: str
    proto: str
    description: str


@dataclass(frozen=True)
class Data:
    gpx_input: Path
    img_input: Path
    site_output: Path
    templates: Path | None = None


@dataclass(frozen=True)
class Pipeline:
    workers: int = 1
    metadata_backend: str = "exifread"
    camera_utc_offset: float = 0.0
    thumbnail_size: int = 300
    require_photos: bool = True


@dataclass(frozen=True)
class Geocoding:
    enabled: bool = True
    url: str = NOMINATIM_REVERSE_URL
    locale: str = "en"
    zoom: int = 3
    timeout: float = 10.0
    attempts: int = 2
    backoff: float = 1.0
    min_interval: float = 1.0
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class Config:
    site: Site
    data: Data
    pipeline: Pipeline = field(default_factory=Pipeline)
    geocoding: Geocoding = field(default_factory=Geocoding)

    def check_paths(self):
        """Fail fast when an input root is unusable or the output root can't be made."""
        for label, path in (("gpx_input", self.data.gpx_input), ("img_input", self.data.img_input)):
            if not path.is_dir():
                raise FatalConfigError(f"data.{label} is not a directory: {path}")
            if not os.access(path, os.R_OK | os.X_OK):
                raise FatalConfigError(f"data.{label} is not readable: {path}")
        if self.data.templates is not None and not self.data.templates.is_dir():
            raise FatalConfigError(f"data.templates is not a directory: {self.data.templates}")
        try:
            self.data.site_output.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FatalConfigError(f"cannot create data.site_output {self.data.site_output}: {e}") from e


def _section(raw: dict, name: str, required: bool) -> dict:
    value = raw.get(name)
    if value is None:
        if required:
            raise FatalConfigError(f"missing [{name}] table")
        return {}
    if not isinstance(value, dict):
        raise FatalConfigError(f"[{name}] must be a table")
    return value


def _build(cls, name: str, values: dict):
    try:
        return cls(**values)
    except TypeError as e:
        # Unknown or missing keys surface here
        raise FatalConfigError(f"[{name}]: {e}") from e


def _check_types(name: str, obj) -> None:
    for key, expected in obj.__annotations__.items():
        value = getattr(obj, key)
        if expected in ("str", str) and not isinstance(value, str):
            raise FatalConfigError(f"{name}.{key} must be a string")
        if expected in ("int", int) and (isinstance(value, bool) or not isinstance(value, int)):
            raise FatalConfigError(f"{name}.{key} must be an integer")
        if expected in ("bool", bool) and not isinstance(value, bool):
            raise FatalConfigError(f"{name}.{key} must be true or false")
        if expected in ("float", float) and (isinstance(value, bool) or not isinstance(value, (int, float))):
            raise FatalConfigError(f"{name}.{key} must be a number")


def parse_config(raw: dict, base_dir: Path = Path(".")) -> Config:
    """Turn a decoded TOML document into a Config. Relative paths resolve against base_dir."""
    site = _build(Site, "site", _section(raw, "site", required=True))
    _check_types("site", site)

    data_raw = dict(_section(raw, "data", required=True))
    for key in ("gpx_input", "img_input", "site_output", "templates"):
        if key in data_raw:
            if not isinstance(data_raw[key], str):
                raise FatalConfigError(f"data.{key} must be a path string")
            data_raw[key] = base_dir / Path(data_raw[key]).expanduser()
    data = _build(Data, "data", data_raw)

    pipeline = _build(Pipeline, "pipeline", _section(raw, "pipeline", required=False))
    _check_types("pipeline", pipeline)
    if pipeline.workers < 1:
        raise FatalConfigError("pipeline.workers must be at least 1")
    if pipeline.thumbnail_size < 1:
        raise FatalConfigError("pipeline.thumbnail_size must be positive")
    if pipeline.metadata_backend not in METADATA_BACKENDS:
        raise FatalConfigError(
            f"pipeline.metadata_backend must be one of {', '.join(METADATA_BACKENDS)}, "
            f"not {pipeline.metadata_backend!r}"
        )

    geocoding = _build(Geocoding, "geocoding", _section(raw, "geocoding", required=False))
    _check_types("geocoding", geocoding)
    if geocoding.attempts < 1:
        raise FatalConfigError("geocoding.attempts must be at least 1")
    if geocoding.min_interval < 0 or geocoding.backoff < 0:
        raise FatalConfigError("geocoding.min_interval and geocoding.backoff can't be negative")

    return Config(site=site, data=data, pipeline=pipeline, geocoding=geocoding)


def read_config(path: Path = DEFAULT_CONFIG) -> Config:
    path = Path(path)
    try:
        with open(path, "rb") as f:
            raw = tomllib.load(f)
    except FileNotFoundError as e:
        raise FatalConfigError(f"config file not found: {path}") from e
    except tomllib.TOMLDecodeError as e:
        raise FatalConfigError(f"invalid TOML in {path}: {e}") from e
    except OSError as e:
        raise FatalConfigError(f"cannot read {path}: {e}") from e
    return parse_config(raw, base_dir=path.parent)
