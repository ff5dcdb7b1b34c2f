"""Exception hierarchy shared across catalog discovery, download, and verification.

Model acquisition is a single-shot pipeline: resolve a URL, check the local
cache, stream the artifact, verify it against its published digest, and
construct the caller's model type.  Every failure past the catalog parser is
surfaced as an :class:`AcquisitionError` carrying the stage and URL involved,
so callers can catch one category while logs still distinguish the cause.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

__all__ = [
    "AcquisitionStage",
    "ModelDownloadError",
    "AcquisitionError",
    "CatalogUnavailable",
    "ModelNotFound",
    "DownloadFailed",
    "ChecksumMismatch",
    "ConstructionFailed",
    "UserConfigError",
    "ConfigError",
]


class AcquisitionStage(str, Enum):
    """Steps of a single acquisition request."""

    RESOLVING = "resolving"
    CACHE_CHECK = "cache_check"
    DOWNLOADING = "downloading"
    VERIFYING = "verifying"
    CONSTRUCTING = "constructing"
    DONE = "done"
    FAILED = "failed"


class ModelDownloadError(RuntimeError):
    """Base exception for model catalog, download, or verification failures."""


class AcquisitionError(ModelDownloadError):
    """Raised when an acquisition request cannot complete."""

    def __init__(
        self,
        message: str,
        *,
        stage: AcquisitionStage,
        url: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.stage = stage
        self.url = url

    def log_fields(self) -> dict:
        """Return structured fields suitable for ``logger.*(extra=...)``."""

        return {
            "stage": self.stage.value,
            "url": self.url,
            "error_type": type(self).__name__,
        }


class CatalogUnavailable(AcquisitionError):
    """Raised when the remote model index cannot be read."""

    def __init__(self, message: str, *, url: Optional[str] = None) -> None:
        super().__init__(message, stage=AcquisitionStage.RESOLVING, url=url)


class ModelNotFound(AcquisitionError):
    """Raised when no artifact is known for a request, or its URL is unusable."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        language: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage=AcquisitionStage.RESOLVING, url=url)
        self.language = language
        self.kind = kind


class DownloadFailed(AcquisitionError):
    """Raised when fetching an artifact or its checksum sidecar fails."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        stage: AcquisitionStage = AcquisitionStage.DOWNLOADING,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message, stage=stage, url=url)
        self.status_code = status_code


class ChecksumMismatch(AcquisitionError):
    """Raised when a downloaded artifact does not match its published digest."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        expected: Optional[str] = None,
        actual: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage=AcquisitionStage.VERIFYING, url=url)
        self.expected = expected
        self.actual = actual


class ConstructionFailed(AcquisitionError):
    """Raised when the target model type cannot be built from the local file."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        target: Optional[str] = None,
    ) -> None:
        super().__init__(message, stage=AcquisitionStage.CONSTRUCTING, url=url)
        self.target = target


class UserConfigError(ModelDownloadError):
    """Raised when CLI arguments or YAML configuration inputs are invalid."""


# Short alias used throughout the package.
ConfigError = UserConfigError
# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload.errors",
#   "purpose": "Define the exception hierarchy used across catalog discovery, download, and verification",
#   "sections": [
#     {"id": "stages", "name": "Acquisition Stages", "anchor": "STG", "kind": "api"},
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "acquisition", "name": "Acquisition Errors", "anchor": "ACQ", "kind": "api"},
#     {"id": "configuration", "name": "Configuration Errors", "anchor": "CFG", "kind": "api"}
#   ]
# }
# === /NAVMAP ===
