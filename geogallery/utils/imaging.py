"""
Imaging utilities: EXIF orientation, working buffers, full and thumbnail derivatives.
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path

from PIL import Image, ImageOps


@dataclass
class WorkingImage:
    """Orientation-corrected JPEG buffer plus its upright dimensions."""

    data: bytes
    width: int
    height: int


def normalize_orientation(image_bytes: bytes, quality: int = 95) -> WorkingImage:
    """Apply EXIF orientation and re-encode as RGB JPEG."""
    with Image.open(BytesIO(image_bytes)) as image:
        image.load()
        oriented = ImageOps.exif_transpose(image)
        if oriented.mode != "RGB":
            oriented = oriented.convert("RGB")
        buffer = BytesIO()
        oriented.save(buffer, format="JPEG", quality=quality)
        width, height = oriented.size
    return WorkingImage(data=buffer.getvalue(), width=width, height=height)


def center_crop_box(width: int, height: int) -> tuple[int, int, int, int]:
    """Largest centered square as a PIL crop box (left, top, right, bottom)."""
    side = min(width, height)
    left = (width - side) // 2
    top = (height - side) // 2
    return left, top, left + side, top + side


def derivative_filenames(image_id: int, id_width: int = 5, extension: str = "jpg") -> tuple[str, str]:
    """Return (full, thumbnail) filenames for an image id."""
    padded = str(image_id).zfill(id_width)
    return f"{padded}.{extension}", f"{padded}_thumb.{extension}"


def write_full(image_bytes: bytes, dest: Path, quality: int = 90) -> None:
    """Re-encode the working buffer at full size."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    with Image.open(BytesIO(image_bytes)) as image:
        image.load()
        full = image.convert("RGB")
        full.save(dest, format="JPEG", quality=quality)


def write_thumbnail(image_bytes: bytes, dest: Path, quality: int = 85) -> tuple[int, int]:
    """Write the square center crop; returns its (width, height)."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    with Image.open(BytesIO(image_bytes)) as image:
        image.load()
        box = center_crop_box(*image.size)
        thumb = image.convert("RGB").crop(box)
        thumb.save(dest, format="JPEG", quality=quality)
        return thumb.size
