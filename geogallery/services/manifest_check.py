"""
Manifest integrity report.

Errors: duplicate ids or hashes, missing derivative files, missing location
or timezone. Warnings: derivative files on disk that no record references.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from geogallery.models.records import ImageRecord


@dataclass
class CheckReport:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    orphans: list[str] = field(default_factory=list)
    image_count: int = 0

    @property
    def ok(self) -> bool:
        return not self.errors


def check_manifest(records: list[ImageRecord], images_dir: Path, extension: str = "jpg") -> CheckReport:
    report = CheckReport(image_count=len(records))
    seen_ids: set[int] = set()
    seen_hashes: dict[str, int] = {}
    referenced: set[str] = set()

    for record in records:
        rid = record.id
        if rid in seen_ids:
            report.errors.append(f"Duplicate id: {rid}")
        seen_ids.add(rid)

        if record.original_hash in seen_hashes:
            report.errors.append(
                f"{rid}: original_hash duplicates image {seen_hashes[record.original_hash]}"
            )
        else:
            seen_hashes[record.original_hash] = rid

        for name in (record.filename, record.thumbnail_filename):
            referenced.add(name)
            if not (images_dir / name).exists():
                report.errors.append(f"{rid}: missing file on disk: {name}")

        if record.location is None or not record.timezone:
            report.errors.append(f"{rid}: location/timezone missing")

    if images_dir.exists():
        for path in sorted(images_dir.glob(f"*.{extension}")):
            if path.name not in referenced:
                report.orphans.append(path.name)
                report.warnings.append(f"Orphan file not referenced: {path.name}")

    return report
