"""
Application bootstrap helpers.

Responsibilities:
- Locate/load configuration.
- Resolve site paths (manifest, derivatives, originals, caches) against the site root.
- Configure logging and build the import pipeline collaborators once.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from geogallery.config.loader import load_config
from geogallery.logging.setup import setup_logging
from geogallery.models.manifest import ManifestStore
from geogallery.services.alt_text import AltTextGenerator, FileAltTextCache, create_openai_client
from geogallery.services.format_normalizer import FormatNormalizer, resolve_converter
from geogallery.services.import_service import ImportOptions, ImportService
from geogallery.services.metadata_extractor import MetadataExtractor, resolve_native_query
from geogallery.services.timezone_resolver import TimezoneResolver

LOGGER = logging.getLogger(__name__)

ENV_CONFIG_PATH = "GEOGALLERY_CONFIG"
ENV_ROOT = "GEOGALLERY_ROOT"
ENV_OPENAI_KEY = "OPENAI_API_KEY"
DEFAULT_CONFIG_NAME = "geogallery.toml"


@dataclass
class SitePaths:
    root: Path
    manifest: Path
    images: Path
    originals: Path
    alt_text_cache: Path
    logs: Path


@dataclass
class ImportContext:
    """Everything the CLI needs, built from one configuration."""

    config: dict[str, Any]
    config_path: Path | None
    paths: SitePaths
    store: ManifestStore
    importer: ImportService
    log_path: Path


def resolve_root(root: Path | None = None) -> Path:
    if root is not None:
        return root
    override = os.getenv(ENV_ROOT)
    return Path(override) if override else Path.cwd()


def resolve_config_path(config_path: Path | None, root: Path) -> Path | None:
    """Explicit path, then env override, then ``<root>/geogallery.toml`` if present."""
    if config_path is not None:
        return config_path
    override = os.getenv(ENV_CONFIG_PATH)
    if override:
        return Path(override)
    candidate = root / DEFAULT_CONFIG_NAME
    return candidate if candidate.exists() else None


def resolve_paths(config: dict[str, Any], root: Path) -> SitePaths:
    """Relative configured paths resolve against the site root."""
    cfg = config.get("paths", {})

    def _resolve(key: str) -> Path:
        path = Path(str(cfg[key]))
        return path if path.is_absolute() else root / path

    return SitePaths(
        root=root,
        manifest=_resolve("manifest"),
        images=_resolve("images"),
        originals=_resolve("originals"),
        alt_text_cache=_resolve("alt_text_cache"),
        logs=_resolve("logs"),
    )


def build_alt_text_generator(config: dict[str, Any], cache_dir: Path, client: Any | None = None) -> AltTextGenerator:
    cfg = config.get("alt_text", {})
    if client is None and cfg.get("enabled", True):
        api_key = os.getenv(ENV_OPENAI_KEY)
        if api_key:
            client = create_openai_client(api_key)
        else:
            LOGGER.warning("%s not set; alt text will use the fallback description", ENV_OPENAI_KEY)
    return AltTextGenerator(
        client=client if cfg.get("enabled", True) else None,
        cache=FileAltTextCache(cache_dir),
        prompt=str(cfg.get("prompt", "")),
        model=str(cfg.get("model", "gpt-4o")),
        max_tokens=int(cfg.get("max_tokens", 300)),
        fallback=str(cfg.get("fallback", "")),
    )


def initialize_app(
    config_path: Path | None = None,
    root: Path | None = None,
    overrides: dict[str, Any] | None = None,
    alt_text_client: Any | None = None,
) -> ImportContext:
    """
    Load configuration, set up logging, and wire the import pipeline.
    ``overrides`` are shallow-merged per section over the loaded config.
    """
    site_root = resolve_root(root)
    resolved_config_path = resolve_config_path(config_path, site_root)
    config = load_config(resolved_config_path)
    for section, values in (overrides or {}).items():
        config.setdefault(section, {}).update(values)

    paths = resolve_paths(config, site_root)
    log_path = setup_logging(log_dir=paths.logs, level=str(config.get("logging", {}).get("level", "INFO")))

    import_cfg = config.get("import", {})
    deriv_cfg = config.get("derivatives", {})

    normalizer = FormatNormalizer(
        converter=resolve_converter(str(import_cfg.get("heic_converter", "auto"))),
        working_quality=int(deriv_cfg.get("working_quality", 95)),
        scratch_dir=paths.images,
    )
    extractor = MetadataExtractor(native_query=resolve_native_query(str(import_cfg.get("native_metadata", "auto"))))
    store = ManifestStore(paths.manifest)
    options = ImportOptions(
        extensions=tuple(import_cfg["extensions"]),
        id_width=int(deriv_cfg.get("id_width", 5)),
        extension=str(deriv_cfg.get("extension", "jpg")),
        full_quality=int(deriv_cfg.get("full_quality", 90)),
        thumb_quality=int(deriv_cfg.get("thumb_quality", 85)),
    )
    importer = ImportService(
        store=store,
        images_dir=paths.images,
        originals_dir=paths.originals,
        normalizer=normalizer,
        extractor=extractor,
        timezones=TimezoneResolver(),
        alt_text=build_alt_text_generator(config, paths.alt_text_cache, client=alt_text_client),
        options=options,
    )
    return ImportContext(
        config=config,
        config_path=resolved_config_path,
        paths=paths,
        store=store,
        importer=importer,
        log_path=log_path,
    )
