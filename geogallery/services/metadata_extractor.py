"""
Capture time, GPS position and dimensions for one source file.

Readers are tried in a fixed order and merged field by field, first
non-empty value wins:

1. Native platform query (``mdls``), HEIC sources only, when available.
2. Embedded EXIF parsed with Pillow, from the converted JPEG for HEIC sources.
3. Filesystem mtime, capture time only, logged as a warning.

Location has no fallback: a file without GPS fails with ``MetadataError``.
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import sys
from dataclasses import dataclass, fields
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable, Iterable, Protocol

from PIL import ExifTags, Image

from geogallery.models.records import Location
from geogallery.services.errors import MetadataError
from geogallery.utils.geo import dms_to_decimal, rationals_to_decimal

LOGGER = logging.getLogger(__name__)

NATIVE_EXTENSIONS = {".heic", ".heif"}

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
MDLS_DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S %z"
MDLS_FIELDS = ("kMDItemContentCreationDate", "kMDItemLatitude", "kMDItemLongitude")


@dataclass
class MetadataReading:
    """What one reader found; any field may be missing."""

    taken_at: datetime | None = None
    location: Location | None = None
    width: int | None = None
    height: int | None = None
    source: str = ""


@dataclass
class ExtractedMetadata:
    """
    Reconciled metadata for one source.

    ``width``/``height`` are the stored pixel dimensions before EXIF orientation
    is applied; records take their size from the upright working image instead.
    """

    taken_at: datetime
    location: Location
    width: int
    height: int
    taken_at_source: str


def reconcile(readings: Iterable[MetadataReading]) -> MetadataReading:
    """Merge readings by priority order, independently per field."""
    merged = MetadataReading(source="merged")
    for reading in readings:
        for f in fields(MetadataReading):
            if f.name == "source":
                continue
            if getattr(merged, f.name) is None and getattr(reading, f.name) is not None:
                setattr(merged, f.name, getattr(reading, f.name))
    return merged


# Native query capability ---------------------------------------------------
class NativeMetadataQuery(Protocol):
    available: bool

    def query(self, path: Path) -> MetadataReading:
        """Read capture time and location using the platform's metadata index."""


class UnavailableQuery:
    """Stand-in when no platform query exists; yields nothing."""

    available = False

    def query(self, path: Path) -> MetadataReading:
        return MetadataReading(source="unavailable")


def parse_mdls_output(text: str) -> MetadataReading:
    """Parse ``mdls -name ...`` output into a reading."""
    values: dict[str, str] = {}
    for line in text.splitlines():
        match = re.match(r"\s*(kMDItem\w+)\s*=\s*(.+?)\s*$", line)
        if match:
            values[match.group(1)] = match.group(2).strip().strip('"')

    taken_at: datetime | None = None
    raw_date = values.get("kMDItemContentCreationDate")
    if raw_date and "null" not in raw_date:
        try:
            taken_at = datetime.strptime(raw_date, MDLS_DATETIME_FORMAT).astimezone(timezone.utc)
        except ValueError:
            LOGGER.debug("Unparseable mdls date: %s", raw_date)

    location: Location | None = None
    raw_lat = values.get("kMDItemLatitude")
    raw_lng = values.get("kMDItemLongitude")
    if raw_lat and raw_lng and "null" not in raw_lat and "null" not in raw_lng:
        try:
            location = Location(lat=dms_to_decimal(raw_lat), lng=dms_to_decimal(raw_lng))
        except ValueError:
            LOGGER.debug("Unparseable mdls coordinates: %s, %s", raw_lat, raw_lng)

    return MetadataReading(taken_at=taken_at, location=location, source="mdls")


class MdlsQuery:
    """macOS Spotlight metadata via the ``mdls`` subprocess."""

    available = True

    def __init__(self, runner: Callable[[list[str]], str] | None = None) -> None:
        self._runner = runner or self._run

    @staticmethod
    def _run(cmd: list[str]) -> str:
        return subprocess.run(cmd, check=True, capture_output=True, text=True).stdout

    def query(self, path: Path) -> MetadataReading:
        cmd = ["mdls"]
        for name in MDLS_FIELDS:
            cmd += ["-name", name]
        cmd.append(str(path))
        try:
            output = self._runner(cmd)
        except (OSError, subprocess.CalledProcessError) as exc:
            LOGGER.warning("mdls failed for %s: %s", path.name, exc)
            return MetadataReading(source="mdls")
        return parse_mdls_output(output)


def resolve_native_query(mode: str = "auto") -> NativeMetadataQuery:
    """``auto`` uses mdls on macOS when present; ``mdls`` forces it; ``off`` disables it."""
    mode = (mode or "auto").lower()
    if mode == "off":
        return UnavailableQuery()
    if mode == "mdls":
        return MdlsQuery()
    if mode != "auto":
        raise ValueError(f"Unknown native metadata mode: {mode}")
    if sys.platform == "darwin" and shutil.which("mdls"):
        return MdlsQuery()
    return UnavailableQuery()


# Embedded EXIF -------------------------------------------------------------
def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    text = str(value).strip("\x00").strip()
    return text or None


def parse_exif_datetime(value: Any, offset: Any = None) -> datetime | None:
    """Parse ``YYYY:MM:DD HH:MM:SS`` with an optional ``+HH:MM`` offset; naive means UTC."""
    text = _as_text(value)
    if not text:
        return None
    try:
        parsed = datetime.strptime(text[:19], EXIF_DATETIME_FORMAT)
    except ValueError:
        return None
    tz = timezone.utc
    offset_text = _as_text(offset)
    if offset_text:
        match = re.match(r"^([+-])(\d{2}):(\d{2})$", offset_text)
        if match:
            sign = -1 if match.group(1) == "-" else 1
            tz = timezone(sign * timedelta(hours=int(match.group(2)), minutes=int(match.group(3))))
    return parsed.replace(tzinfo=tz).astimezone(timezone.utc)


def _positive_int(value: Any) -> int | None:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


class EmbeddedExifReader:
    """Pillow-based EXIF/GPS parser for JPEG bytes."""

    # First populated field wins.
    DATE_TAGS = (
        (ExifTags.Base.DateTimeOriginal, ExifTags.Base.OffsetTimeOriginal),
        (ExifTags.Base.DateTimeDigitized, ExifTags.Base.OffsetTimeDigitized),
    )

    def read(self, path: Path) -> MetadataReading:
        with Image.open(path) as image:
            exif = image.getexif()
            container_size = image.size
        exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
        gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)

        taken_at = None
        for date_tag, offset_tag in self.DATE_TAGS:
            taken_at = parse_exif_datetime(exif_ifd.get(date_tag), exif_ifd.get(offset_tag))
            if taken_at is not None:
                break

        location = self._location(gps_ifd)

        width = _positive_int(exif_ifd.get(ExifTags.Base.ExifImageWidth)) or _positive_int(container_size[0])
        height = _positive_int(exif_ifd.get(ExifTags.Base.ExifImageHeight)) or _positive_int(container_size[1])
        return MetadataReading(taken_at=taken_at, location=location, width=width, height=height, source="exif")

    @staticmethod
    def _location(gps_ifd: dict[int, Any]) -> Location | None:
        lat_values = gps_ifd.get(ExifTags.GPS.GPSLatitude)
        lng_values = gps_ifd.get(ExifTags.GPS.GPSLongitude)
        if not lat_values or not lng_values:
            return None
        lat = rationals_to_decimal(lat_values, gps_ifd.get(ExifTags.GPS.GPSLatitudeRef))
        lng = rationals_to_decimal(lng_values, gps_ifd.get(ExifTags.GPS.GPSLongitudeRef))
        if lat is None or lng is None:
            return None
        return Location(lat=lat, lng=lng)


# Extractor -----------------------------------------------------------------
class MetadataExtractor:
    def __init__(
        self,
        native_query: NativeMetadataQuery | None = None,
        exif_reader: EmbeddedExifReader | None = None,
    ) -> None:
        self.native_query = native_query or UnavailableQuery()
        self.exif_reader = exif_reader or EmbeddedExifReader()

    def readings(self, source: Path, converted_path: Path | None = None) -> list[MetadataReading]:
        """Readings in priority order, excluding the mtime fallback."""
        found: list[MetadataReading] = []
        if source.suffix.lower() in NATIVE_EXTENSIONS and self.native_query.available:
            found.append(self.native_query.query(source))
        exif_source = converted_path or source
        try:
            found.append(self.exif_reader.read(exif_source))
        except Exception as exc:
            LOGGER.warning("EXIF parse failed for %s: %s", source.name, exc)
        return found

    def extract(self, source: Path, converted_path: Path | None = None) -> ExtractedMetadata:
        readings = self.readings(source, converted_path)
        merged = reconcile(readings)

        taken_at_source = next((r.source for r in readings if r.taken_at is not None), "mtime")
        taken_at = merged.taken_at
        if taken_at is None:
            LOGGER.warning("No EXIF date found for %s, using file modification time", source.name)
            taken_at = datetime.fromtimestamp(source.stat().st_mtime, tz=timezone.utc)

        if merged.location is None:
            raise MetadataError(f"No GPS coordinates found in {source.name}")

        return ExtractedMetadata(
            taken_at=taken_at,
            location=merged.location,
            width=merged.width or 0,
            height=merged.height or 0,
            taken_at_source=taken_at_source,
        )
