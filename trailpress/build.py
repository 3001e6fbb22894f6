"""
Trailpress: build a static site of outings from GPX tracks and photos.

Usage:
    trailpress [--config config.toml]

Reads every *.gpx file under data.gpx_input, pairs each track with the
photos from data.img_input taken while it was recorded, and writes the
site to data.site_output:

    index.html
    tracks/<slug>.html
    static/style.css
    static/photos/<slug>/{1..N}.<ext>
    static/photos/<slug>/thumbnails/{1..N}.<ext>

Tracks are independent of each other, so they can be processed on a
thread pool (pipeline.workers). A track writes only under its own slug;
a crash mid-track can leave that directory half-filled, and the next run
rebuilds it from scratch.
"""

import argparse
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

from loguru import logger

from . import __version__
from .catalog import build_catalog
from .config import DEFAULT_CONFIG, Config, read_config
from .correlate import correlate
from .errors import FatalConfigError, FatalTrackError, GeocodingError, SlugCollisionError
from .geocode import make_geocoder
from .logging import init_logging
from .materialize import materialize
from .metadata import MetadataBackend, get_backend
from .models import Article, Photo, TrackWindow
from .render import Renderer
from .tracks import summarize_track

PHOTOS_DIR = Path("static") / "photos"
TRACKS_DIR = Path("tracks")
DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S UTC"


class Cancelled(Exception):
    pass


@dataclass
class BuildReport:
    articles: list[Article] = field(default_factory=list)
    skipped: list[tuple[Path, str]] = field(default_factory=list)
    unmatched: list[Path] = field(default_factory=list)
    photo_failures: int = 0

    def summary(self) -> str:
        return (f"{len(self.articles)} articles, {len(self.unmatched)} tracks without photos, "
                f"{len(self.skipped)} tracks skipped, {self.photo_failures} photo failures")


@dataclass
class TrackResult:
    window: TrackWindow
    article: Article | None = None
    photo_failures: int = 0


# ---------------------------------------------------------------------------
# Article assembly
# ---------------------------------------------------------------------------

def assemble_article(window: TrackWindow, photos: tuple[Photo, ...], copied: list[str],
                     place: str) -> Article:
    if len(copied) < len(photos):
        logger.debug("{}: {} of {} matched photos published", window.slug, len(copied), len(photos))
    return Article(
        title=window.title,
        slug=window.slug,
        photo_count=len(copied),
        place_name=place,
        start_time=window.start_time,
        end_time=window.end_time,
        centroid=window.centroid,
        distance_km=window.distance_km,
        photos=tuple(copied),
    )


def _format_duration(value: timedelta) -> str:
    minutes = int(value.total_seconds()) // 60
    return f"{minutes // 60}h{minutes % 60:02d}"


def track_context(window: TrackWindow, article: Article, config: Config) -> dict:
    """Everything track.html gets to see."""
    return {
        "config": config,
        "static_dir": "../static",
        "title": window.title,
        "track_coordinates": [{"lon": p.lon, "lat": p.lat} for p in window.points],
        "route": [[p.lat, p.lon] for p in window.points],
        "lon_avg": window.centroid.lon,
        "lat_avg": window.centroid.lat,
        "start_time": window.start_time.strftime(DISPLAY_TIME_FORMAT),
        "end_time": window.end_time.strftime(DISPLAY_TIME_FORMAT),
        "duration": _format_duration(window.duration),
        "distance_km": window.distance_km,
        "place_name": article.place_name,
        "copied_photos": list(article.photos),
        "photo_dir": (PHOTOS_DIR / window.slug).as_posix(),
    }


def index_context(articles: list[Article], config: Config) -> dict:
    return {
        "config": config,
        "site": config.site,
        "static_dir": "static",
        "articles": sorted(articles, key=lambda a: (a.start_time, a.slug)),
    }


# ---------------------------------------------------------------------------
# Per-track processing
# ---------------------------------------------------------------------------

def _lookup_place(geocoder, window: TrackWindow) -> str:
    try:
        return geocoder.reverse_geocode(window.centroid)
    except GeocodingError as e:
        logger.warning("no place name for {}: {}", window.source_path, e)
        return ""


def process_track(window: TrackWindow, catalog: tuple[Photo, ...], config: Config,
                  backend: MetadataBackend, geocoder, renderer: Renderer,
                  cancel: threading.Event | None = None) -> TrackResult:
    """Correlate, materialize, geocode and render one track."""
    if cancel is not None and cancel.is_set():
        raise Cancelled()

    site_output = config.data.site_output
    utc_offset = timedelta(hours=config.pipeline.camera_utc_offset)
    photos = correlate(catalog, window, utc_offset)

    if photos is None:
        logger.info("No photos found for {}", window.source_path)
        if config.pipeline.require_photos:
            return TrackResult(window)
        copied, failures = [], 0
    else:
        photo_root = site_output / PHOTOS_DIR
        copied, failures = materialize(photos, photo_root / window.slug, backend,
                                       config.pipeline.thumbnail_size, root=photo_root)

    place = _lookup_place(geocoder, window)
    article = assemble_article(window, photos or (), copied, place)
    renderer.render_track(track_context(window, article, config),
                          site_output / TRACKS_DIR / f"{window.slug}.html", window.source_path)
    logger.info("Wrote {} ({} photos{})", article.url, article.photo_count,
                f", {place}" if place else "")
    return TrackResult(window, article, failures)


def find_tracks(directory: Path) -> list[Path]:
    return sorted(p for p in Path(directory).iterdir()
                  if p.is_file() and p.suffix.lower() == ".gpx")


def summarize_all(paths: list[Path], report: BuildReport) -> list[TrackWindow]:
    """Parse every track, reserving slugs in file order."""
    windows = []
    slugs: dict[str, Path] = {}
    for path in paths:
        try:
            window = summarize_track(path)
            if window.slug in slugs:
                raise SlugCollisionError(
                    path, f"slug {window.slug!r} already used by {slugs[window.slug].name}")
        except FatalTrackError as e:
            logger.error("Skipping {}: {}", path, e.reason)
            report.skipped.append((path, e.reason))
            continue
        slugs[window.slug] = path
        windows.append(window)
    return windows


def run(config: Config, geocoder, renderer: Renderer | None = None,
        cancel: threading.Event | None = None) -> BuildReport:
    """Build the whole site once. Per-track failures are recorded in the report."""
    if cancel is None:
        cancel = threading.Event()
    config.check_paths()
    backend = get_backend(config.pipeline.metadata_backend)
    if renderer is None:
        renderer = Renderer(config.data.templates)
    site_output = config.data.site_output
    report = BuildReport()

    logger.info("Step 1: Cataloguing photos...")
    catalog = build_catalog(config.data.img_input, backend)

    logger.info("Step 2: Reading tracks...")
    windows = summarize_all(find_tracks(config.data.gpx_input), report)

    logger.info("Step 3: Processing {} tracks ({} workers)...", len(windows), config.pipeline.workers)
    renderer.write_assets(site_output)
    with ThreadPoolExecutor(max_workers=config.pipeline.workers) as pool:
        futures = [
            (window, pool.submit(process_track, window, catalog, config, backend, geocoder,
                                 renderer, cancel))
            for window in windows
        ]
        for window, future in futures:
            try:
                result = future.result()
            except KeyboardInterrupt:
                # Running tracks finish, queued ones see the flag and bail out
                cancel.set()
                raise
            except Cancelled:
                report.skipped.append((window.source_path, "cancelled"))
                continue
            except FatalTrackError as e:
                logger.error("Skipping {}: {}", window.source_path, e.reason)
                report.skipped.append((window.source_path, e.reason))
                continue
            report.photo_failures += result.photo_failures
            if result.article is None:
                report.unmatched.append(window.source_path)
            else:
                report.articles.append(result.article)

    report.articles.sort(key=lambda a: (a.start_time, a.slug))

    logger.info("Step 4: Writing index...")
    renderer.render_page("index.html", index_context(report.articles, config),
                         site_output / "index.html")

    logger.info("Done: {}", report.summary())
    for path, reason in report.skipped:
        logger.info("  skipped {}: {}", path.name, reason)
    return report


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="trailpress", description=__doc__.splitlines()[1])
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG,
                        help="site configuration (default: %(default)s)")
    parser.add_argument("-v", "--verbose", action="store_true", help="log per-photo detail")
    parser.add_argument("--log-dir", type=Path, help="also write rotating log files here")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = parser.parse_args(argv)

    init_logging("DEBUG" if args.verbose else "INFO", args.log_dir)

    cancel = threading.Event()
    geocoder = None
    try:
        config = read_config(args.config)
        geocoder = make_geocoder(config.geocoding)
        run(config, geocoder, cancel=cancel)
    except FatalConfigError as e:
        logger.error("{}", e)
        return 1
    except KeyboardInterrupt:
        cancel.set()
        logger.warning("Interrupted")
        return 130
    finally:
        if geocoder is not None:
            geocoder.close()

    logger.info("Site written to {}/", config.data.site_output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
