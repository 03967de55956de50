"""
Import orchestrator.

Per file: hash -> skip if known -> normalize -> extract metadata -> resolve
timezone -> write derivatives -> alt text -> archive original -> record.
A failure aborts only that file. The manifest is written once, after the
whole batch, and ids are consumed only by successful imports.
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from geogallery.models.manifest import ManifestStore, existing_hashes, next_image_id
from geogallery.models.records import ImageRecord, utc_now
from geogallery.services.alt_text import AltTextGenerator
from geogallery.services.errors import ArchiveConflictError, MetadataError, SourceFolderError
from geogallery.services.format_normalizer import FormatNormalizer
from geogallery.services.metadata_extractor import MetadataExtractor
from geogallery.services.timezone_resolver import TimezoneResolver
from geogallery.utils.hashing import compute_file_digest
from geogallery.utils.imaging import derivative_filenames, write_full, write_thumbnail

LOGGER = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = (".heic", ".jpg", ".jpeg")


class ImportOutcome(str, Enum):
    IMPORTED = "imported"
    SKIPPED_DUPLICATE = "skipped_duplicate"
    FAILED = "failed"


@dataclass
class FileResult:
    path: Path
    outcome: ImportOutcome
    image_id: int | None = None
    error: str | None = None


@dataclass
class ImportOptions:
    extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS
    id_width: int = 5
    extension: str = "jpg"
    full_quality: int = 90
    thumb_quality: int = 85


@dataclass
class ImportSummary:
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    errors: list[str] = field(default_factory=list)
    results: list[FileResult] = field(default_factory=list)


class ImportService:
    """Import photos from one source folder into the manifest."""

    def __init__(
        self,
        store: ManifestStore,
        images_dir: Path,
        originals_dir: Path,
        normalizer: FormatNormalizer,
        extractor: MetadataExtractor,
        timezones: TimezoneResolver,
        alt_text: AltTextGenerator,
        options: ImportOptions | None = None,
    ) -> None:
        self.store = store
        self.images_dir = images_dir
        self.originals_dir = originals_dir
        self.normalizer = normalizer
        self.extractor = extractor
        self.timezones = timezones
        self.alt_text = alt_text
        self.options = options or ImportOptions()

    def scan(self, source_dir: Path) -> list[Path]:
        """Supported files directly inside ``source_dir``, sorted by name."""
        allowed = {ext.lower() for ext in self.options.extensions}
        files = [p for p in source_dir.iterdir() if p.is_file() and p.suffix.lower() in allowed]
        return sorted(files, key=lambda p: p.name)

    def run(
        self, source_dir: Path, progress_cb: Callable[[FileResult], None] | None = None
    ) -> ImportSummary:
        if not source_dir.is_dir():
            raise SourceFolderError(f"Source folder not found: {source_dir}")

        self.images_dir.mkdir(parents=True, exist_ok=True)
        self.originals_dir.mkdir(parents=True, exist_ok=True)

        records = self.store.load()
        hashes = existing_hashes(records)
        next_id = next_image_id(records)
        LOGGER.info("Found %d existing images, next id %d", len(records), next_id)

        paths = self.scan(source_dir)
        LOGGER.info("Found %d images to process in %s", len(paths), source_dir)

        summary = ImportSummary()
        for path in paths:
            result = self._process(path, next_id, hashes, records)
            if result.outcome is ImportOutcome.IMPORTED:
                summary.imported += 1
                next_id += 1
            elif result.outcome is ImportOutcome.SKIPPED_DUPLICATE:
                summary.skipped += 1
            else:
                summary.failed += 1
                summary.errors.append(f"{path.name}: {result.error}")
            summary.results.append(result)
            if progress_cb is not None:
                progress_cb(result)

        self.store.save(records)
        summary.total = len(records)
        LOGGER.info(
            "Import finished: imported=%d skipped=%d failed=%d total=%d",
            summary.imported,
            summary.skipped,
            summary.failed,
            summary.total,
        )
        return summary

    def _process(
        self, path: Path, image_id: int, hashes: set[str], records: list[ImageRecord]
    ) -> FileResult:
        LOGGER.info("Processing: %s", path.name)
        try:
            record = self._import_one(path, image_id, hashes)
        except (MetadataError, ArchiveConflictError) as exc:
            LOGGER.error("Failed to process %s: %s", path.name, exc)
            return FileResult(path=path, outcome=ImportOutcome.FAILED, error=str(exc))
        except Exception as exc:
            LOGGER.exception("Failed to process %s", path.name)
            return FileResult(path=path, outcome=ImportOutcome.FAILED, error=str(exc))

        if record is None:
            return FileResult(path=path, outcome=ImportOutcome.SKIPPED_DUPLICATE)
        records.append(record)
        hashes.add(record.original_hash)
        return FileResult(path=path, outcome=ImportOutcome.IMPORTED, image_id=record.id)

    def _import_one(self, path: Path, image_id: int, hashes: Iterable[str]) -> ImageRecord | None:
        digest = compute_file_digest(path)
        if digest in hashes:
            LOGGER.info("Skipping %s (already imported)", path.name)
            return None

        archive_dest = self._archive_destination(path, digest)
        opts = self.options
        full_name, thumb_name = derivative_filenames(image_id, opts.id_width, opts.extension)

        with self.normalizer.normalize(path) as normalized:
            metadata = self.extractor.extract(path, normalized.converted_path)
            zone = self.timezones.resolve(metadata.location.lat, metadata.location.lng)
            working = normalized.working
            LOGGER.info("Dimensions: %dx%d", working.width, working.height)
            LOGGER.info(
                "Location: %.4f, %.4f (%s)", metadata.location.lat, metadata.location.lng, zone
            )

            derivatives = [self.images_dir / full_name, self.images_dir / thumb_name]
            try:
                write_full(working.data, derivatives[0], quality=opts.full_quality)
                LOGGER.info("Saved: %s", full_name)
                write_thumbnail(working.data, derivatives[1], quality=opts.thumb_quality)
                LOGGER.info("Saved: %s", thumb_name)

                alt_text = self.alt_text.generate(working.data, digest)

                if archive_dest is not None:
                    shutil.copy2(path, archive_dest)
                    LOGGER.info("Archived original to %s", archive_dest)
            except Exception:
                # No record will reference these; a partial archive copy would block a retry.
                written = derivatives + ([archive_dest] if archive_dest is not None else [])
                for leftover in written:
                    leftover.unlink(missing_ok=True)
                raise

        return ImageRecord(
            id=image_id,
            filename=full_name,
            thumbnail_filename=thumb_name,
            original_path=path.name,
            original_hash=digest,
            taken_at=metadata.taken_at,
            imported_at=utc_now(),
            width=working.width,
            height=working.height,
            location=metadata.location,
            timezone=zone,
            alt_text=alt_text,
        )

    def _archive_destination(self, path: Path, digest: str) -> Path | None:
        """Where to copy the original, or None when no copy is needed."""
        dest = self.originals_dir / path.name
        if path.resolve() == dest.resolve():
            return None
        if dest.exists():
            if compute_file_digest(dest) == digest:
                return None
            raise ArchiveConflictError(f"A different {path.name} is already archived in {self.originals_dir}")
        return dest
