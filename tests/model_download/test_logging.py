"""JSON log sidecar and retention."""

from __future__ import annotations

import json
import logging
import os
import time
from pathlib import Path
from typing import Iterator

import pytest

from ModelZoo.ModelDownload.logging_utils import JSONFormatter, setup_logging


@pytest.fixture
def managed_logger() -> Iterator[None]:
    logger = logging.getLogger("ModelZoo.ModelDownload")
    level, propagate = logger.level, logger.propagate
    yield
    for handler in list(logger.handlers):
        if getattr(handler, "_modelfetch_managed", False):
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)
    logger.propagate = propagate


def test_json_formatter_includes_acquisition_fields() -> None:
    record = logging.LogRecord(
        "ModelZoo.ModelDownload.acquire", logging.INFO, __file__, 1, "downloading model", None, None
    )
    record.stage = "downloading"
    record.url = "https://x.org/m.bin"

    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "downloading model"
    assert payload["stage"] == "downloading"
    assert payload["url"] == "https://x.org/m.bin"
    assert payload["language"] is None
    assert payload["timestamp"].endswith("Z")


def test_setup_logging_writes_jsonl(tmp_path: Path, managed_logger: None) -> None:
    logger = setup_logging(level="DEBUG", log_dir=tmp_path)
    logging.getLogger("ModelZoo.ModelDownload.cache").info(
        "model already cached", extra={"stage": "cache_check", "path": "/tmp/m.bin"}
    )
    for handler in logger.handlers:
        handler.flush()

    files = list(tmp_path.glob("modelfetch-*.jsonl"))
    assert len(files) == 1
    line = json.loads(files[0].read_text(encoding="utf-8").splitlines()[-1])
    assert line["stage"] == "cache_check"
    assert line["path"] == "/tmp/m.bin"
    assert logger.level == logging.DEBUG


def test_setup_logging_replaces_its_own_handlers(tmp_path: Path, managed_logger: None) -> None:
    setup_logging(log_dir=tmp_path)
    logger = setup_logging(log_dir=tmp_path)

    managed = [h for h in logger.handlers if getattr(h, "_modelfetch_managed", False)]
    assert len(managed) == 2


def test_setup_logging_uses_environment_directory(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, managed_logger: None
) -> None:
    target = tmp_path / "env-logs"
    monkeypatch.setenv("MODELFETCH_LOG_DIR", str(target))

    setup_logging()

    assert target.is_dir()


def test_old_logs_are_compressed_then_purged(tmp_path: Path, managed_logger: None) -> None:
    old = tmp_path / "modelfetch-20000101.jsonl"
    old.write_text("{}\n", encoding="utf-8")
    expired = tmp_path / "modelfetch-19990101.jsonl.gz"
    expired.write_bytes(b"")
    stale = time.time() - 90 * 86400
    os.utime(old, (stale, stale))
    os.utime(expired, (stale, stale))

    setup_logging(log_dir=tmp_path, retention_days=30)

    assert not old.exists()
    assert not expired.exists()
    assert (tmp_path / "modelfetch-20000101.jsonl.gz").exists()
