"""Structured logging helpers shared across model download components."""

from __future__ import annotations

import gzip
import json
import logging
import os
import sys
from datetime import datetime, timedelta, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List, Optional

import platformdirs

__all__ = ["LOG_DIR", "JSONFormatter", "setup_logging"]

LOG_DIR = Path(platformdirs.user_log_dir("modelfetch"))

_CONTEXT_FIELDS = ("stage", "url", "language", "model_kind", "path")


class JSONFormatter(logging.Formatter):
    """Formatter emitting one JSON object per log record."""

    def format(self, record: logging.LogRecord) -> str:
        """Render ``record`` as a JSON string with acquisition-specific fields."""

        now = datetime.now(timezone.utc)
        payload = {
            "timestamp": now.isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for field in _CONTEXT_FIELDS:
            payload[field] = getattr(record, field, None)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _compress_old_log(path: Path) -> None:
    """Compress ``path`` into a ``.gz`` file and remove the original."""

    compressed_path = path.with_suffix(path.suffix + ".gz")
    with path.open("rb") as source, gzip.open(compressed_path, "wb") as target:
        target.write(source.read())
    path.unlink(missing_ok=True)


def _cleanup_logs(log_dir: Path, retention_days: int) -> List[str]:
    """Compress or purge log files in ``log_dir`` based on retention policy."""

    actions: List[str] = []
    now = datetime.now(timezone.utc)
    retention_delta = timedelta(days=retention_days)
    for file in log_dir.glob("*.jsonl"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            _compress_old_log(file)
            actions.append(f"Compressed {file.name}")
    for file in log_dir.glob("*.jsonl.gz"):
        mtime = datetime.fromtimestamp(file.stat().st_mtime, tz=timezone.utc)
        if now - mtime > retention_delta:
            file.unlink(missing_ok=True)
            actions.append(f"Deleted expired archive {file.name}")
    return actions


def setup_logging(
    *,
    level: str = "INFO",
    retention_days: int = 30,
    max_log_size_mb: int = 100,
    log_dir: Optional[Path] = None,
    propagate: bool = False,
) -> logging.Logger:
    """Configure downloader logging with a console stream and JSON file sidecar."""

    if log_dir is not None:
        resolved_dir = log_dir
    else:
        env_value = (os.environ.get("MODELFETCH_LOG_DIR") or "").strip()
        resolved_dir = Path(env_value) if env_value else LOG_DIR
    resolved_dir.mkdir(parents=True, exist_ok=True)
    _cleanup_logs(resolved_dir, retention_days)

    logger = logging.getLogger("ModelZoo.ModelDownload")
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    for handler in list(logger.handlers):
        if getattr(handler, "_modelfetch_managed", False):
            logger.removeHandler(handler)
            handler.close()

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    stream_handler._modelfetch_managed = True  # type: ignore[attr-defined]
    logger.addHandler(stream_handler)

    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    file_handler = RotatingFileHandler(
        resolved_dir / f"modelfetch-{today}.jsonl",
        maxBytes=int(max_log_size_mb * 1024 * 1024),
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setFormatter(JSONFormatter())
    file_handler._modelfetch_managed = True  # type: ignore[attr-defined]
    logger.addHandler(file_handler)

    logger.propagate = propagate
    return logger
