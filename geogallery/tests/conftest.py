from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Callable

import pytest
from PIL import ExifTags, Image
from pillow_heif import register_heif_opener

from geogallery.services.timezone_resolver import TimezoneResolver

SF_LAT = 37.7749
SF_LNG = -122.4194


def _to_dms(value: float) -> tuple[float, float, float]:
    value = abs(value)
    degrees = int(value)
    minutes = int((value - degrees) * 60)
    seconds = round((value - degrees - minutes / 60) * 3600, 4)
    return float(degrees), float(minutes), seconds


def write_photo(
    path: Path,
    size: tuple[int, int] = (40, 30),
    lat: float | None = SF_LAT,
    lng: float | None = SF_LNG,
    taken: str | None = "2026:01:03 19:19:31",
    orientation: int | None = None,
    color: str = "red",
) -> Path:
    image = Image.new("RGB", size, color=color)
    exif = Image.Exif()
    if orientation is not None:
        exif[ExifTags.Base.Orientation] = orientation
    if taken is not None:
        exif[ExifTags.IFD.Exif] = {ExifTags.Base.DateTimeOriginal: taken}
    if lat is not None and lng is not None:
        exif[ExifTags.IFD.GPSInfo] = {
            ExifTags.GPS.GPSLatitudeRef: "N" if lat >= 0 else "S",
            ExifTags.GPS.GPSLatitude: _to_dms(lat),
            ExifTags.GPS.GPSLongitudeRef: "E" if lng >= 0 else "W",
            ExifTags.GPS.GPSLongitude: _to_dms(lng),
        }
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() in (".heic", ".heif"):
        register_heif_opener()
        image.save(path, format="HEIF", exif=exif.tobytes())
    else:
        image.save(path, format="JPEG", exif=exif.tobytes())
    return path


@pytest.fixture
def make_photo() -> Callable[..., Path]:
    return write_photo


class FakeCompletions:
    def __init__(self, content: str | None = '{"alt_text": "A red billboard for coffee."}', error: Exception | None = None) -> None:
        self.content = content
        self.error = error
        self.calls: list[dict] = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, **kwargs) -> None:
        self.completions = FakeCompletions(**kwargs)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def fake_client() -> FakeClient:
    return FakeClient()


@pytest.fixture
def make_client() -> Callable[..., FakeClient]:
    return FakeClient


@pytest.fixture(scope="session")
def timezone_resolver() -> TimezoneResolver:
    return TimezoneResolver()
