"""
Site configuration: ``geogallery.toml`` layered over ``DEFAULTS``.

Only sections present in the file are overridden; nested tables merge key by
key. The merged result is validated before anything else reads it.
"""

from __future__ import annotations

import copy
import tomllib
from pathlib import Path
from typing import Any

from geogallery.config.defaults import DEFAULTS

NATIVE_METADATA_MODES = ("auto", "mdls", "off")
HEIC_CONVERTER_MODES = ("auto", "sips", "pillow")
QUALITY_KEYS = ("full_quality", "thumb_quality", "working_quality")


def _merge_sections(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged: dict[str, Any] = copy.deepcopy(base)
    for key, value in override.items():
        current = merged.get(key)
        merged[key] = _merge_sections(current, value) if isinstance(value, dict) and isinstance(current, dict) else value
    return merged


def _normalize_extensions(values: Any) -> list[str]:
    if isinstance(values, str) or not isinstance(values, list) or not values:
        raise ValueError("import.extensions must be a non-empty list")
    normalized = []
    for value in values:
        ext = str(value).strip().lower()
        normalized.append(ext if ext.startswith(".") else f".{ext}")
    return normalized


def validate_config(config: dict[str, Any]) -> dict[str, Any]:
    """Check enumerated modes and JPEG qualities; canonicalize extensions in place."""
    import_cfg = config["import"]
    import_cfg["extensions"] = _normalize_extensions(import_cfg.get("extensions"))
    if str(import_cfg.get("native_metadata")).lower() not in NATIVE_METADATA_MODES:
        raise ValueError(f"import.native_metadata must be one of {NATIVE_METADATA_MODES}")
    if str(import_cfg.get("heic_converter")).lower() not in HEIC_CONVERTER_MODES:
        raise ValueError(f"import.heic_converter must be one of {HEIC_CONVERTER_MODES}")

    derivatives = config["derivatives"]
    for key in QUALITY_KEYS:
        quality = derivatives.get(key)
        if not isinstance(quality, int) or not 1 <= quality <= 100:
            raise ValueError(f"derivatives.{key} must be an integer between 1 and 100")
    if int(derivatives.get("id_width", 0)) < 1:
        raise ValueError("derivatives.id_width must be positive")
    return config


def load_config(path: Path | None) -> dict[str, Any]:
    """
    Read ``path`` (if given and present) and merge it over the defaults.

    A directory path raises ``IsADirectoryError``; malformed TOML or invalid
    values raise ``ValueError``.
    """
    site_config: dict[str, Any] = {}
    if path is not None:
        if path.is_dir():
            raise IsADirectoryError(f"Config path points to a directory: {path}")
        if path.exists():
            try:
                site_config = tomllib.loads(path.read_text(encoding="utf-8"))
            except tomllib.TOMLDecodeError as exc:
                raise ValueError(f"Invalid config file {path}: {exc}") from exc
    return validate_config(_merge_sections(DEFAULTS, site_config))
