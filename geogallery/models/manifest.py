"""
YAML manifest store for imported images.

The document is ``{"images": [...]}``. Writes go to a temp file in the same
directory and are swapped in with ``os.replace`` so readers never see a
partial document.
"""

from __future__ import annotations

import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Iterable

import yaml

from geogallery.models.records import ImageRecord

LOGGER = logging.getLogger(__name__)

COLLECTION_KEY = "images"


def sort_newest_first(records: Iterable[ImageRecord]) -> list[ImageRecord]:
    """Order by capture time, newest first; ties fall back to id descending."""
    return sorted(records, key=lambda r: (r.taken_at, r.id), reverse=True)


def existing_hashes(records: Iterable[ImageRecord]) -> set[str]:
    return {r.original_hash for r in records}


def next_image_id(records: Iterable[ImageRecord]) -> int:
    """``max(id) + 1``; ids are never reused after deletions."""
    return max((r.id for r in records), default=0) + 1


def _document_mode(path: Path) -> int:
    """Keep an existing document's mode; a new one gets the umask default."""
    if path.exists():
        return stat.S_IMODE(path.stat().st_mode)
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


class ManifestStore:
    """Load and atomically rewrite the manifest document."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def load(self) -> list[ImageRecord]:
        """Return all records; an absent document is an empty collection."""
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            document = yaml.safe_load(fh) or {}
        if not isinstance(document, dict):
            raise ValueError(f"Manifest {self.path} is not a mapping")
        raw_images = document.get(COLLECTION_KEY) or []
        if not isinstance(raw_images, list):
            raise ValueError(f"Manifest {self.path} '{COLLECTION_KEY}' is not a list")
        records: list[ImageRecord] = []
        for idx, entry in enumerate(raw_images):
            try:
                records.append(ImageRecord.from_dict(entry))
            except (KeyError, TypeError, ValueError) as exc:
                raise ValueError(f"Manifest {self.path} entry {idx} is invalid: {exc}") from exc
        return records

    def save(self, records: Iterable[ImageRecord]) -> list[ImageRecord]:
        """Sort newest first and replace the document atomically; returns the sorted list."""
        ordered = sort_newest_first(records)
        document: dict[str, Any] = {COLLECTION_KEY: [r.to_dict() for r in ordered]}
        text = yaml.safe_dump(
            document, sort_keys=False, allow_unicode=True, default_flow_style=False, width=float("inf")
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.path.parent), prefix=self.path.name + ".", suffix=".tmp")
        mode = _document_mode(self.path)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
                fh.flush()
                os.fsync(fh.fileno())
            os.chmod(tmp_name, mode)
            os.replace(tmp_name, self.path)
        finally:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
        LOGGER.info("Wrote manifest %s (%d images)", self.path, len(ordered))
        return ordered

    # Read-side queries for the gallery ----------------------------------
    def all_images(self) -> list[ImageRecord]:
        """All records, highest id first."""
        return sorted(self.load(), key=lambda r: r.id, reverse=True)

    def get_image(self, image_id: int) -> ImageRecord | None:
        for record in self.load():
            if record.id == image_id:
                return record
        return None

    def adjacent_images(self, image_id: int, depth: int = 2) -> tuple[list[ImageRecord], list[ImageRecord]]:
        """Neighbours in ``all_images`` order as (prev, next), closest first."""
        images = self.all_images()
        index = next((i for i, r in enumerate(images) if r.id == image_id), None)
        if index is None:
            return [], []
        prev = list(reversed(images[max(0, index - depth):index]))
        nxt = images[index + 1:index + 1 + depth]
        return prev, nxt
