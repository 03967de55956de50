from __future__ import annotations

from pathlib import Path

import pytest

from geogallery import app_context
from geogallery.app import main
from geogallery.models.manifest import ManifestStore


@pytest.fixture
def site(monkeypatch, tmp_path: Path) -> Path:
    root = tmp_path / "site"
    root.mkdir()
    monkeypatch.delenv(app_context.ENV_OPENAI_KEY, raising=False)
    monkeypatch.delenv(app_context.ENV_CONFIG_PATH, raising=False)
    monkeypatch.delenv(app_context.ENV_ROOT, raising=False)
    return root


def test_import_missing_source_returns_error(site: Path, tmp_path: Path, capsys) -> None:
    code = main(["--root", str(site), "import", str(tmp_path / "missing")])

    assert code == 1
    assert "Source folder not found" in capsys.readouterr().err
    assert not (site / "src" / "data" / "images.yaml").exists()


def test_import_then_check(site: Path, tmp_path: Path, make_photo, capsys) -> None:
    source = tmp_path / "incoming"
    make_photo(source / "IMG_0001.jpg")
    make_photo(source / "IMG_0002.jpg", lat=None, lng=None, color="blue")

    code = main(["--root", str(site), "import", str(source), "--no-alt-text"])

    out = capsys.readouterr().out
    assert code == 0
    assert "Imported: 1" in out
    assert "Failed:   1" in out
    assert "IMG_0002.jpg: No GPS coordinates found" in out
    (record,) = ManifestStore(site / "src" / "data" / "images.yaml").load()
    assert record.alt_text == "An advertisement from San Francisco."
    assert (site / "logs" / "import.log").exists()

    assert main(["--root", str(site), "check"]) == 0


def test_check_reports_missing_files(site: Path, tmp_path: Path, make_photo, capsys) -> None:
    source = tmp_path / "incoming"
    make_photo(source / "IMG_0001.jpg")
    main(["--root", str(site), "import", str(source), "--no-alt-text"])
    (site / "public" / "images" / "00001_thumb.jpg").unlink()
    capsys.readouterr()

    code = main(["--root", str(site), "check"])

    assert code == 1
    assert "missing file on disk: 00001_thumb.jpg" in capsys.readouterr().out


def test_command_is_required(site: Path) -> None:
    with pytest.raises(SystemExit):
        main(["--root", str(site)])
