import sys
from datetime import datetime
from pathlib import Path

import piexif
import pytest
from loguru import logger
from PIL import Image

from trailpress.config import parse_config
from trailpress.errors import GeocodingError

GPX_HEADER = """<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="trailpress-tests" xmlns="http://www.topografix.com/GPX/1/1">
"""


def make_jpeg(path: Path, taken: str | None = "2024:06:01 10:00:00", size=(64, 48),
              color=(120, 160, 90), gps: bool = True) -> Path:
    """Write a small JPEG, with EXIF capture time and GPS position unless taken is None."""
    image = Image.new("RGB", size, color=color)
    if taken is None:
        image.save(path, format="JPEG")
        return path

    exif_dict = {
        "0th": {
            piexif.ImageIFD.Make: b"TrailCam",
            piexif.ImageIFD.DateTime: taken.encode("ascii"),
        },
        "Exif": {piexif.ExifIFD.DateTimeOriginal: taken.encode("ascii")},
        "GPS": {},
        "1st": {},
        "thumbnail": None,
    }
    if gps:
        exif_dict["GPS"] = {
            piexif.GPSIFD.GPSLatitudeRef: b"N",
            piexif.GPSIFD.GPSLatitude: ((45, 1), (30, 1), (0, 1)),
            piexif.GPSIFD.GPSLongitudeRef: b"E",
            piexif.GPSIFD.GPSLongitude: ((6, 1), (10, 1), (0, 1)),
        }
    image.save(path, format="JPEG", exif=piexif.dump(exif_dict))
    return path


def write_gpx(path: Path, times: list[str | None], name: str | None = None,
              start=(45.0, 6.0), step=0.01) -> Path:
    """One track, one segment, one point per entry in times."""
    points = []
    for i, t in enumerate(times):
        lat, lon = start[0] + i * step, start[1] + i * step
        time_tag = f"<time>{t}</time>" if t is not None else ""
        points.append(f'<trkpt lat="{lat}" lon="{lon}">{time_tag}</trkpt>')
    name_tag = f"<name>{name}</name>" if name is not None else ""
    path.write_text(
        GPX_HEADER + f"<trk>{name_tag}<trkseg>\n" + "\n".join(points) + "\n</trkseg></trk>\n</gpx>\n",
        encoding="utf-8",
    )
    return path


class FakeGeocoder:
    def __init__(self, place="France", fail=False):
        self.place = place
        self.fail = fail
        self.calls = []

    def reverse_geocode(self, centroid):
        self.calls.append(centroid)
        if self.fail:
            raise GeocodingError("connection refused")
        return self.place

    def close(self):
        pass


@pytest.fixture
def site_dirs(tmp_path):
    gpx_dir = tmp_path / "gpx"
    img_dir = tmp_path / "photos"
    out_dir = tmp_path / "public_html"
    gpx_dir.mkdir()
    img_dir.mkdir()
    return gpx_dir, img_dir, out_dir


@pytest.fixture
def make_config(site_dirs):
    gpx_dir, img_dir, out_dir = site_dirs

    def _make(pipeline=None, geocoding=None, templates=None):
        raw = {
            "site": {
                "base_uri": "hikes.example.org",
                "name": "Hikes",
                "proto": "https",
                "description": "Where we walked",
            },
            "data": {
                "gpx_input": str(gpx_dir),
                "img_input": str(img_dir),
                "site_output": str(out_dir),
            },
            "pipeline": pipeline or {},
            "geocoding": geocoding or {"enabled": False},
        }
        if templates is not None:
            raw["data"]["templates"] = str(templates)
        return parse_config(raw)

    return _make


@pytest.fixture
def log_records():
    records = []
    handler_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
    yield records
    logger.remove(handler_id)


def utc(text: str) -> datetime:
    return datetime.fromisoformat(text.replace("Z", "+00:00"))


@pytest.fixture
def restore_logging():
    yield
    logger.remove()
    logger.add(sys.stderr)


XMP_PACKET = (
    b'<x:xmpmeta xmlns:x="adobe:ns:meta/"><rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">'
    b'<rdf:Description xmlns:exif="http://ns.adobe.com/exif/1.0/" exif:GPSLatitude="45,30.0N" '
    b'exif:GPSLongitude="6,10.0E"/></rdf:RDF></x:xmpmeta>'
)


def add_xmp(path: Path, packet: bytes = XMP_PACKET) -> Path:
    """Insert an XMP APP1 segment right after the JPEG SOI marker."""
    data = path.read_bytes()
    payload = b"http://ns.adobe.com/xap/1.0/\x00" + packet
    segment = b"\xff\xe1" + (len(payload) + 2).to_bytes(2, "big") + payload
    path.write_bytes(data[:2] + segment + data[2:])
    return path
