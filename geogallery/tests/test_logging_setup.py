from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import pytest

from geogallery.logging.setup import setup_logging


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_setup_logging_writes_import_log(tmp_path: Path, restore_root_logging) -> None:
    log_path = setup_logging(tmp_path / "logs", level="debug")

    logging.getLogger("geogallery.test").info("Processing: IMG_0001.jpg")
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert log_path == tmp_path / "logs" / "import.log"
    assert logging.getLogger().level == logging.DEBUG
    assert any(isinstance(h, RotatingFileHandler) for h in logging.getLogger().handlers)
    text = log_path.read_text(encoding="utf-8")
    assert "INFO geogallery.test Processing: IMG_0001.jpg" in text


def test_setup_logging_quiets_client_libraries(tmp_path: Path, restore_root_logging) -> None:
    setup_logging(tmp_path, level="info")

    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("openai").level == logging.WARNING
