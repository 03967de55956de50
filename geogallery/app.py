"""
Command-line entry point.

Usage:
    geogallery import <source-folder> [--root DIR] [--config PATH] [--no-alt-text]
    geogallery check [--root DIR] [--config PATH]
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from geogallery.app_context import initialize_app
from geogallery.services.errors import SourceFolderError
from geogallery.services.manifest_check import check_manifest


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="geogallery", description="Import geotagged photos into the gallery manifest.")
    parser.add_argument("--root", type=Path, help="Site root (defaults to GEOGALLERY_ROOT or CWD).")
    parser.add_argument("--config", type=Path, help="TOML config file.")
    sub = parser.add_subparsers(dest="command", required=True)

    imp = sub.add_parser("import", help="Import photos from a source folder.")
    imp.add_argument("source", type=Path, help="Folder containing .heic/.jpg files (not recursive).")
    imp.add_argument("--no-alt-text", action="store_true", help="Skip AI alt text; use cached or fallback text.")

    sub.add_parser("check", help="Validate the manifest against files on disk.")
    return parser


def _run_import(args: argparse.Namespace) -> int:
    source = args.source.expanduser().resolve()
    if not source.is_dir():
        print(f"Source folder not found: {source}", file=sys.stderr)
        return 1

    overrides = {"alt_text": {"enabled": False}} if args.no_alt_text else None
    context = initialize_app(config_path=args.config, root=args.root, overrides=overrides)
    try:
        summary = context.importer.run(source)
    except SourceFolderError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    print("=" * 50)
    print(f"Imported: {summary.imported}")
    print(f"Skipped:  {summary.skipped}")
    print(f"Failed:   {summary.failed}")
    for line in summary.errors:
        print(f"  - {line}")
    print(f"Total images: {summary.total}")
    return 0


def _run_check(args: argparse.Namespace) -> int:
    context = initialize_app(config_path=args.config, root=args.root)
    extension = str(context.config.get("derivatives", {}).get("extension", "jpg"))
    report = check_manifest(context.store.load(), context.paths.images, extension=extension)

    print(f"Images: {report.image_count}")
    print(f"Errors ({len(report.errors)}):")
    for e in report.errors:
        print(f"  - {e}")
    print(f"Warnings ({len(report.warnings)}):")
    for w in report.warnings:
        print(f"  - {w}")
    return 0 if report.ok else 1


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if args.command == "import":
        return _run_import(args)
    return _run_check(args)


if __name__ == "__main__":
    raise SystemExit(main())
