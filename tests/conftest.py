# === NAVMAP v1 ===
# {
#   "module": "tests.conftest",
#   "purpose": "Shared pytest fixtures for suite",
#   "sections": [
#     {
#       "id": "isolate-model-download-state",
#       "name": "_isolate_model_download_state",
#       "anchor": "function-isolate-model-download-state",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""
Pytest Configuration

Puts ``src`` on ``sys.path`` and isolates every test from the user's real
model cache, log directory, and ``MODELFETCH_*`` environment.  Process-wide
singletons (default configuration, catalog, shared HTTP client, default
acquirer) are reset around each test.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Iterator

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from ModelZoo.ModelDownload import acquire, catalog, net, settings  # noqa: E402


def _reset_singletons() -> None:
    settings.invalidate_default_config_cache()
    catalog.reset_catalog()
    net.reset_http_client()
    acquire._DEFAULT_ACQUIRER = None


@pytest.fixture(autouse=True)
def _isolate_model_download_state(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Iterator[Path]:
    """Point the cache and logs at ``tmp_path`` and drop ambient overrides."""

    for name in list(os.environ):
        if name.startswith("MODELFETCH_"):
            monkeypatch.delenv(name, raising=False)
    cache_root = tmp_path / "model-cache"
    monkeypatch.setenv("MODELFETCH_CACHE_DIR", str(cache_root))
    monkeypatch.setenv("MODELFETCH_LOG_DIR", str(tmp_path / "logs"))
    _reset_singletons()
    yield cache_root
    _reset_singletons()
