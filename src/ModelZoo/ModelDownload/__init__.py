# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload",
#   "purpose": "Package initialization for ModelZoo.ModelDownload",
#   "sections": [
#     {
#       "id": "getattr",
#       "name": "__getattr__",
#       "anchor": "function-getattr",
#       "kind": "function"
#     },
#     {
#       "id": "dir",
#       "name": "__dir__",
#       "anchor": "function-dir",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Public API for discovering, downloading, and verifying pretrained NLP models.

This facade exposes the catalog of models published on the remote index, the
acquirer that mirrors artifacts into the local cache after SHA-512
verification, and the error hierarchy callers catch when acquisition fails.
"""

from __future__ import annotations

from importlib import import_module
from importlib import metadata as importlib_metadata
from typing import TYPE_CHECKING, Any, Dict

try:  # pragma: no cover - metadata may be unavailable during development
    __version__ = importlib_metadata.version("modelzoo")
except importlib_metadata.PackageNotFoundError:  # pragma: no cover - local source tree
    __version__ = "0.0.0"

_EXPORTS: Dict[str, str] = {
    "ModelKind": "kinds",
    "Catalog": "catalog",
    "build_catalog": "catalog",
    "extract_links": "catalog",
    "get_catalog": "catalog",
    "load_catalog": "catalog",
    "ArtifactCache": "cache",
    "CachedArtifact": "cache",
    "ExpectedChecksum": "checksums",
    "compute_sha512": "checksums",
    "verify_checksum": "checksums",
    "LoadableModel": "acquire",
    "ModelAcquirer": "acquire",
    "ModelFile": "acquire",
    "download_model": "acquire",
    "download_model_from_url": "acquire",
    "ResolvedConfig": "settings",
    "get_default_config": "settings",
    "load_config": "settings",
    "AcquisitionError": "errors",
    "AcquisitionStage": "errors",
    "CatalogUnavailable": "errors",
    "ChecksumMismatch": "errors",
    "ConstructionFailed": "errors",
    "DownloadFailed": "errors",
    "ModelDownloadError": "errors",
    "ModelNotFound": "errors",
    "UserConfigError": "errors",
}

__all__ = [*_EXPORTS, "__version__"]

if TYPE_CHECKING:  # pragma: no cover - import for static analysis only
    from .acquire import (
        LoadableModel,
        ModelAcquirer,
        ModelFile,
        download_model,
        download_model_from_url,
    )
    from .cache import ArtifactCache, CachedArtifact
    from .catalog import Catalog, build_catalog, extract_links, get_catalog, load_catalog
    from .checksums import ExpectedChecksum, compute_sha512, verify_checksum
    from .errors import (
        AcquisitionError,
        AcquisitionStage,
        CatalogUnavailable,
        ChecksumMismatch,
        ConstructionFailed,
        DownloadFailed,
        ModelDownloadError,
        ModelNotFound,
        UserConfigError,
    )
    from .kinds import ModelKind
    from .settings import ResolvedConfig, get_default_config, load_config


def __getattr__(name: str) -> Any:
    """Lazily import API exports so importing the package stays network-free."""

    module_name = _EXPORTS.get(name)
    if module_name is None:
        raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
    module = import_module(f"{__name__}.{module_name}")
    value = getattr(module, name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    """Expose lazily-populated attributes in ``dir()`` results."""

    return sorted(set(globals()) | set(__all__))
