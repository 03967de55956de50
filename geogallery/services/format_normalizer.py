"""
Source format normalization.

JPEG sources are read directly. HEIC sources are first converted to a
temporary JPEG, which also serves as the EXIF source for the embedded-metadata
reader; the temporary file is removed when the ``normalize`` context exits,
whether or not processing succeeded.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Protocol

from PIL import Image, ImageOps
from pillow_heif import register_heif_opener

from geogallery.services.errors import ConversionError
from geogallery.utils.imaging import WorkingImage, normalize_orientation

LOGGER = logging.getLogger(__name__)

CONVERTED_EXTENSIONS = {".heic", ".heif"}


class HeicConverter(Protocol):
    name: str

    def convert(self, source: Path, dest: Path) -> None:
        """Write a JPEG rendition of ``source`` to ``dest``."""


class SipsConverter:
    """macOS ``sips`` conversion; keeps the source EXIF block."""

    name = "sips"

    def convert(self, source: Path, dest: Path) -> None:
        cmd = ["sips", "-s", "format", "jpeg", str(source), "--out", str(dest)]
        try:
            subprocess.run(cmd, check=True, capture_output=True, text=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            stderr = getattr(exc, "stderr", "") or ""
            raise ConversionError(f"sips failed for {source.name}: {exc} {stderr}".strip()) from exc


class PillowHeifConverter:
    """Portable conversion via pillow-heif; orientation is baked into pixels."""

    name = "pillow"

    def __init__(self, quality: int = 95) -> None:
        register_heif_opener()
        self.quality = quality

    def convert(self, source: Path, dest: Path) -> None:
        try:
            with Image.open(source) as image:
                image.load()
                oriented = ImageOps.exif_transpose(image)
                exif = oriented.getexif()
                oriented.convert("RGB").save(dest, format="JPEG", quality=self.quality, exif=exif.tobytes())
        except OSError as exc:
            raise ConversionError(f"Could not decode {source.name}: {exc}") from exc


def resolve_converter(mode: str = "auto") -> HeicConverter:
    """Pick a converter: ``sips`` on macOS when available, pillow-heif otherwise."""
    mode = (mode or "auto").lower()
    if mode == "sips":
        return SipsConverter()
    if mode == "pillow":
        return PillowHeifConverter()
    if mode != "auto":
        raise ValueError(f"Unknown HEIC converter: {mode}")
    if sys.platform == "darwin" and shutil.which("sips"):
        return SipsConverter()
    return PillowHeifConverter()


@dataclass
class NormalizedSource:
    """Working buffer for one source file, plus the converted JPEG if one was made."""

    source: Path
    working: WorkingImage
    converted_path: Path | None = None


class FormatNormalizer:
    def __init__(
        self,
        converter: HeicConverter | None = None,
        working_quality: int = 95,
        scratch_dir: Path | None = None,
    ) -> None:
        self._converter = converter
        self.working_quality = working_quality
        self.scratch_dir = scratch_dir

    @property
    def converter(self) -> HeicConverter:
        if self._converter is None:
            self._converter = resolve_converter("auto")
        return self._converter

    def needs_conversion(self, source: Path) -> bool:
        return source.suffix.lower() in CONVERTED_EXTENSIONS

    @contextmanager
    def normalize(self, source: Path) -> Iterator[NormalizedSource]:
        tmp_path: Path | None = None
        try:
            if self.needs_conversion(source):
                if self.scratch_dir is not None:
                    self.scratch_dir.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix="temp_", suffix=".jpg", dir=str(self.scratch_dir) if self.scratch_dir else None
                )
                os.close(fd)
                tmp_path = Path(tmp_name)
                LOGGER.info("Converting %s to JPEG (%s)", source.name, self.converter.name)
                self.converter.convert(source, tmp_path)
                raw = tmp_path.read_bytes()
            else:
                raw = source.read_bytes()
            working = normalize_orientation(raw, quality=self.working_quality)
            yield NormalizedSource(source=source, working=working, converted_path=tmp_path)
        finally:
            if tmp_path is not None:
                tmp_path.unlink(missing_ok=True)
