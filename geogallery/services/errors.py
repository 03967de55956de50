"""
Import error taxonomy.

``MetadataError`` and ``ConversionError`` fail a single file; the importer
catches them at the per-file boundary. ``SourceFolderError`` aborts the batch.
"""

from __future__ import annotations


class MetadataError(Exception):
    """Required metadata (GPS, capture time, timezone) could not be derived."""


class TimezoneNotFoundError(MetadataError):
    """No timezone boundary contains the coordinates."""


class ConversionError(Exception):
    """Converting a source encoding to the working JPEG failed."""


class SourceFolderError(FileNotFoundError):
    """The operator-supplied source folder is missing or not a directory."""


class ArchiveConflictError(Exception):
    """A different file with the same base name is already in the originals archive."""
