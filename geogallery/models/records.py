"""
Manifest data model.

Keys are serialized in snake_case because the gallery front-end reads the
manifest directly.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


def format_timestamp(value: datetime) -> str:
    """ISO-8601 UTC with millisecond precision, e.g. ``2026-01-03T19:19:31.000Z``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S.") + f"{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse a stored timestamp; naive values are treated as UTC."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Location:
    """GPS position in decimal degrees."""

    lat: float
    lng: float

    def to_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Location":
        return cls(lat=float(data["lat"]), lng=float(data["lng"]))


@dataclass
class ImageRecord:
    """One imported photo. Only ``description`` and ``tags`` are meant for manual edits."""

    id: int
    filename: str
    thumbnail_filename: str
    original_path: str
    original_hash: str
    taken_at: datetime
    imported_at: datetime
    width: int
    height: int
    location: Location
    timezone: str
    alt_text: str
    description: str = ""
    tags: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "filename": self.filename,
            "thumbnail_filename": self.thumbnail_filename,
            "original_path": self.original_path,
            "original_hash": self.original_hash,
            "taken_at": format_timestamp(self.taken_at),
            "imported_at": format_timestamp(self.imported_at),
            "width": self.width,
            "height": self.height,
            "location": self.location.to_dict(),
            "timezone": self.timezone,
            "ai_generated_alt_text": self.alt_text,
            "description": self.description,
            "tags": list(self.tags),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageRecord":
        return cls(
            id=int(data["id"]),
            filename=str(data["filename"]),
            thumbnail_filename=str(data["thumbnail_filename"]),
            original_path=str(data.get("original_path") or ""),
            original_hash=str(data["original_hash"]),
            taken_at=parse_timestamp(data["taken_at"]),
            imported_at=parse_timestamp(data["imported_at"]),
            width=int(data.get("width") or 0),
            height=int(data.get("height") or 0),
            location=Location.from_dict(data["location"]),
            timezone=str(data["timezone"]),
            alt_text=str(data.get("ai_generated_alt_text") or ""),
            description=str(data.get("description") or ""),
            tags=[str(t) for t in data.get("tags") or []],
        )
