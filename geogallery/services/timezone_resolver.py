"""
GPS -> IANA timezone lookup backed by timezonefinder's boundary dataset.
"""

from __future__ import annotations

import logging

from timezonefinder import TimezoneFinder

from geogallery.services.errors import TimezoneNotFoundError

LOGGER = logging.getLogger(__name__)


class TimezoneResolver:
    """Resolve coordinates to a zone id, failing when no zone contains the point."""

    def __init__(self, finder: TimezoneFinder | None = None) -> None:
        self._finder = finder

    @property
    def finder(self) -> TimezoneFinder:
        # Loading the polygon dataset is slow; defer until first lookup.
        if self._finder is None:
            self._finder = TimezoneFinder(in_memory=True)
        return self._finder

    def resolve(self, lat: float, lng: float) -> str:
        zone = self.finder.timezone_at(lat=lat, lng=lng)
        if not zone:
            raise TimezoneNotFoundError(f"Could not determine timezone for coordinates {lat}, {lng}")
        LOGGER.debug("Resolved %.4f, %.4f to %s", lat, lng, zone)
        return zone
