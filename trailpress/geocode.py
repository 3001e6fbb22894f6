"""
Reverse geocoding of a track's centroid to a country name.

One lookup per distinct centroid (rounded to ~100 m) per run; results and
failures are not persisted between runs.
"""

import threading
import time

import httpx
from loguru import logger

from .config import Geocoding
from .errors import GeocodingError
from .models import Coordinate

CACHE_PRECISION = 3


class Geocoder:
    def __init__(self, client: httpx.Client, url: str, locale: str = "en", zoom: int = 3,
                 attempts: int = 2, backoff: float = 1.0, min_interval: float = 1.0):
        self.client = client
        self.url = url
        self.locale = locale
        self.zoom = zoom
        self.attempts = attempts
        self.backoff = backoff
        self.min_interval = min_interval
        self._last_request: float | None = None
        self._rate_lock = threading.Lock()
        self._cache: dict[tuple[float, float], str] = {}
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, settings: Geocoding) -> "Geocoder":
        client = httpx.Client(
            timeout=settings.timeout,
            headers={"User-Agent": settings.user_agent},
            follow_redirects=True,
        )
        return cls(client, settings.url, locale=settings.locale, zoom=settings.zoom,
                   attempts=settings.attempts, backoff=settings.backoff,
                   min_interval=settings.min_interval)

    def close(self):
        self.client.close()

    def reverse_geocode(self, centroid: Coordinate) -> str:
        """Country name at centroid. Raises GeocodingError on any failure."""
        key = (round(centroid.lat, CACHE_PRECISION), round(centroid.lon, CACHE_PRECISION))
        with self._lock:
            if key in self._cache:
                return self._cache[key]

        place = self._lookup(centroid)
        with self._lock:
            self._cache[key] = place
        return place

    def _wait_turn(self):
        # Nominatim allows one request per second; workers queue up here
        with self._rate_lock:
            if self._last_request is not None:
                wait = self._last_request + self.min_interval - time.monotonic()
                if wait > 0:
                    time.sleep(wait)
            self._last_request = time.monotonic()

    def _lookup(self, centroid: Coordinate) -> str:
        params = {
            "lat": f"{centroid.lat:.6f}",
            "lon": f"{centroid.lon:.6f}",
            "format": "json",
            "zoom": str(self.zoom),
            "accept-language": self.locale,
        }

        resp = None
        for attempt in range(1, self.attempts + 1):
            self._wait_turn()
            try:
                resp = self.client.get(self.url, params=params)
            except httpx.InvalidURL as e:
                raise GeocodingError(f"bad geocoding url {self.url!r}: {e}") from e
            except httpx.HTTPError as e:
                error = f"request failed: {e}"
            else:
                if resp.status_code < 500:
                    break
                error = f"HTTP {resp.status_code}"
            if attempt == self.attempts:
                raise GeocodingError(f"reverse geocoding {centroid.lat:.4f},{centroid.lon:.4f}: {error}")
            logger.debug("geocoding attempt {}/{} failed ({}), retrying", attempt, self.attempts, error)
            time.sleep(self.backoff)

        if resp.status_code != 200:
            raise GeocodingError(f"reverse geocoding {centroid.lat:.4f},{centroid.lon:.4f}: HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise GeocodingError(f"malformed geocoding response: {e}") from e

        address = data.get("address") if isinstance(data, dict) else None
        country = address.get("country") if isinstance(address, dict) else None
        if not isinstance(country, str) or not country.strip():
            raise GeocodingError("geocoding response has no address.country")
        return country.strip()


class NullGeocoder:
    """Used when geocoding is turned off."""

    def reverse_geocode(self, centroid: Coordinate) -> str:
        return ""

    def close(self):
        pass


def make_geocoder(settings: Geocoding):
    if not settings.enabled:
        return NullGeocoder()
    return Geocoder.from_config(settings)
