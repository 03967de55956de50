from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from pathlib import Path

import pytest

from geogallery.models.records import Location
from geogallery.services.errors import MetadataError
from geogallery.services.metadata_extractor import (
    EmbeddedExifReader,
    MdlsQuery,
    MetadataExtractor,
    MetadataReading,
    UnavailableQuery,
    parse_exif_datetime,
    parse_mdls_output,
    reconcile,
    resolve_native_query,
)

MDLS_OUTPUT = """kMDItemContentCreationDate = 2025-12-24 08:00:00 +0000
kMDItemLatitude            = 40.7128
kMDItemLongitude           = -74.006
"""


class FakeNativeQuery:
    available = True

    def __init__(self, reading: MetadataReading) -> None:
        self.reading = reading
        self.paths: list[Path] = []

    def query(self, path: Path) -> MetadataReading:
        self.paths.append(path)
        return self.reading


def test_exif_reader_parses_date_gps_and_dimensions(tmp_path: Path, make_photo) -> None:
    path = make_photo(tmp_path / "a.jpg", size=(40, 30))

    reading = EmbeddedExifReader().read(path)

    assert reading.taken_at == datetime(2026, 1, 3, 19, 19, 31, tzinfo=timezone.utc)
    assert reading.location is not None
    assert reading.location.lat == pytest.approx(37.7749, abs=1e-4)
    assert reading.location.lng == pytest.approx(-122.4194, abs=1e-4)
    assert (reading.width, reading.height) == (40, 30)


def test_exif_datetime_honors_offset() -> None:
    parsed = parse_exif_datetime("2026:01:03 11:19:31", "-08:00")
    assert parsed == datetime(2026, 1, 3, 19, 19, 31, tzinfo=timezone.utc)
    assert parse_exif_datetime("0000:00:00 00:00:00") is None
    assert parse_exif_datetime(None) is None


def test_reconcile_takes_first_value_per_field() -> None:
    first = MetadataReading(taken_at=None, location=Location(1.0, 2.0), source="native")
    second = MetadataReading(
        taken_at=datetime(2020, 1, 1, tzinfo=timezone.utc), location=Location(3.0, 4.0), width=10, height=5
    )

    merged = reconcile([first, second])

    assert merged.location == Location(1.0, 2.0)
    assert merged.taken_at == datetime(2020, 1, 1, tzinfo=timezone.utc)
    assert (merged.width, merged.height) == (10, 5)


def test_native_query_wins_for_heic(tmp_path: Path, make_photo) -> None:
    source = tmp_path / "IMG_0001.HEIC"
    source.write_bytes(b"not really heic")
    converted = make_photo(tmp_path / "converted.jpg")
    native = FakeNativeQuery(
        MetadataReading(
            taken_at=datetime(2025, 12, 24, 8, 0, tzinfo=timezone.utc),
            location=Location(40.7128, -74.006),
            source="mdls",
        )
    )

    result = MetadataExtractor(native_query=native).extract(source, converted_path=converted)

    assert native.paths == [source]
    assert result.location == Location(40.7128, -74.006)
    assert result.taken_at == datetime(2025, 12, 24, 8, 0, tzinfo=timezone.utc)
    assert result.taken_at_source == "mdls"
    # Dimensions still come from the embedded reader
    assert (result.width, result.height) == (40, 30)


def test_native_query_not_used_for_jpeg(tmp_path: Path, make_photo) -> None:
    source = make_photo(tmp_path / "a.jpg")
    native = FakeNativeQuery(MetadataReading(location=Location(0.0, 0.0), source="mdls"))

    result = MetadataExtractor(native_query=native).extract(source)

    assert native.paths == []
    assert result.location.lat == pytest.approx(37.7749, abs=1e-4)


def test_unavailable_native_query_falls_back_to_exif(tmp_path: Path, make_photo) -> None:
    source = tmp_path / "b.heic"
    source.write_bytes(b"heic")
    converted = make_photo(tmp_path / "b.jpg")

    result = MetadataExtractor(native_query=UnavailableQuery()).extract(source, converted_path=converted)

    assert result.taken_at_source == "exif"
    assert result.location.lng == pytest.approx(-122.4194, abs=1e-4)


def test_missing_date_falls_back_to_mtime_with_warning(tmp_path: Path, make_photo, caplog) -> None:
    source = make_photo(tmp_path / "nodate.jpg", taken=None)
    mtime = datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc).timestamp()
    os.utime(source, (mtime, mtime))

    with caplog.at_level(logging.WARNING):
        result = MetadataExtractor().extract(source)

    assert result.taken_at == datetime(2024, 5, 6, 7, 8, 9, tzinfo=timezone.utc)
    assert result.taken_at_source == "mtime"
    assert "modification time" in caplog.text


def test_missing_gps_is_fatal(tmp_path: Path, make_photo) -> None:
    source = make_photo(tmp_path / "nogps.jpg", lat=None, lng=None)

    with pytest.raises(MetadataError, match="No GPS"):
        MetadataExtractor().extract(source)


def test_unreadable_file_without_native_data_is_fatal(tmp_path: Path) -> None:
    source = tmp_path / "broken.jpg"
    source.write_bytes(b"\x00\x01garbage")

    with pytest.raises(MetadataError):
        MetadataExtractor().extract(source)


def test_parse_mdls_output() -> None:
    reading = parse_mdls_output(MDLS_OUTPUT)

    assert reading.taken_at == datetime(2025, 12, 24, 8, 0, tzinfo=timezone.utc)
    assert reading.location == Location(40.7128, -74.006)


def test_parse_mdls_output_handles_null_and_dms() -> None:
    reading = parse_mdls_output(
        "kMDItemContentCreationDate = (null)\nkMDItemLatitude = 37,48,17.44\nkMDItemLongitude = (null)\n"
    )
    assert reading.taken_at is None
    assert reading.location is None


def test_mdls_query_uses_runner_and_survives_failures(tmp_path: Path) -> None:
    seen: list[list[str]] = []

    def runner(cmd: list[str]) -> str:
        seen.append(cmd)
        return MDLS_OUTPUT

    path = tmp_path / "x.heic"
    reading = MdlsQuery(runner=runner).query(path)
    assert seen[0][0] == "mdls" and seen[0][-1] == str(path)
    assert reading.location == Location(40.7128, -74.006)

    def failing(cmd: list[str]) -> str:
        raise FileNotFoundError("mdls")

    assert MdlsQuery(runner=failing).query(path).location is None


def test_resolve_native_query_modes() -> None:
    assert isinstance(resolve_native_query("off"), UnavailableQuery)
    assert isinstance(resolve_native_query("mdls"), MdlsQuery)
    with pytest.raises(ValueError):
        resolve_native_query("spotlight")
