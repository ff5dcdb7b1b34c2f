# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload.acquire",
#   "purpose": "Resolve, download, verify, and construct pretrained models from the local cache",
#   "sections": [
#     {"id": "capability", "name": "Construction Capability", "anchor": "CAP", "kind": "api"},
#     {"id": "locks", "name": "Per-URL Locks", "anchor": "LCK", "kind": "helpers"},
#     {"id": "acquirer", "name": "ModelAcquirer", "anchor": "ACQ", "kind": "api"},
#     {"id": "module-api", "name": "Module-level helpers", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Model acquisition pipeline.

A request moves through ``resolving -> cache_check -> downloading ->
verifying -> constructing``; a cache hit jumps straight from
``cache_check`` to ``constructing``.  Artifacts are streamed to a ``.part``
file and only renamed to their final cache name once the SHA-512 sidecar
check passes, so a crash or a bad digest never leaves a file that later
requests would mistake for a cached model.  A file already present under the
final name is trusted without re-verification; use
:meth:`ModelAcquirer.verify_cached` to check it explicitly.

Within one process, fetches of the same URL are serialised by a per-URL lock.
Separate processes are not coordinated: two cold-cache processes may both
download the same artifact, and the last verified rename wins.
"""

from __future__ import annotations

import logging
import os
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Optional, Protocol, Type, TypeVar, runtime_checkable

import httpx

from .cache import ArtifactCache, CachedArtifact
from .catalog import Catalog, get_catalog
from .checksums import verify_checksum
from .download import stream_download
from .errors import (
    AcquisitionError,
    AcquisitionStage,
    ConstructionFailed,
    ModelNotFound,
)
from .kinds import ModelKind
from .net import get_http_client
from .settings import ResolvedConfig, get_default_config

__all__ = [
    "LoadableModel",
    "ModelFile",
    "ModelAcquirer",
    "download_model",
    "download_model_from_url",
]

LOGGER = logging.getLogger("ModelZoo.ModelDownload.acquire")

T = TypeVar("T")

# --- Construction Capability ---------------------------------------------------


@runtime_checkable
class LoadableModel(Protocol):
    """Model type that can be built from a single local file path."""

    @classmethod
    def from_path(cls, path: Path) -> "LoadableModel":
        """Construct an instance from the model file at ``path``."""


@dataclass(frozen=True)
class ModelFile:
    """Minimal :class:`LoadableModel` that just describes the cached file."""

    path: Path
    size: int

    @classmethod
    def from_path(cls, path: Path) -> "ModelFile":
        resolved = Path(path)
        return cls(path=resolved, size=resolved.stat().st_size)


# --- Per-URL Locks -------------------------------------------------------------

# Entries vanish once no thread holds or waits on the lock.
_URL_LOCKS: "weakref.WeakValueDictionary[str, threading.Lock]" = weakref.WeakValueDictionary()
_URL_LOCKS_GUARD = threading.Lock()


@contextmanager
def _url_lock(url: str) -> Iterator[None]:
    with _URL_LOCKS_GUARD:
        lock = _URL_LOCKS.get(url)
        if lock is None:
            lock = threading.Lock()
            _URL_LOCKS[url] = lock
    with lock:
        yield


def _validate_artifact_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise ModelNotFound(f"Invalid model URL '{url}': {exc}", url=url) from exc
    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise ModelNotFound(f"Invalid model URL '{url}'", url=url)


# --- ModelAcquirer -------------------------------------------------------------


class ModelAcquirer:
    """Fetches catalogued models into the local cache and builds model objects.

    Args:
        catalog: Catalog used to resolve ``(language, kind)`` requests. When
            omitted the process-wide catalog is built on the first such request.
        cache: Local artifact cache; defaults to the configured cache root.
        config: Effective configuration; defaults to :func:`get_default_config`.
        client: HTTPX client for artifact and sidecar requests; defaults to the
            shared client from :mod:`ModelZoo.ModelDownload.net`.
    """

    def __init__(
        self,
        catalog: Optional[Catalog] = None,
        *,
        cache: Optional[ArtifactCache] = None,
        config: Optional[ResolvedConfig] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.config = config or get_default_config()
        self.cache = cache or ArtifactCache.from_config(self.config.cache)
        self._catalog = catalog
        self._client = client

    @property
    def catalog(self) -> Catalog:
        if self._catalog is None:
            self._catalog = get_catalog()
        return self._catalog

    @property
    def client(self) -> httpx.Client:
        return self._client or get_http_client(self.config.download)

    def sidecar_url(self, url: str) -> str:
        """Return the checksum sidecar URL published next to ``url``."""

        return url + self.config.download.checksum_suffix

    def _enter(self, stage: AcquisitionStage, url: Optional[str], **fields: object) -> None:
        LOGGER.debug(
            "acquisition stage",
            extra={"stage": stage.value, "url": url, **fields},
        )

    def resolve(self, language: str, kind: ModelKind) -> str:
        """Return the catalogued URL for ``(language, kind)``."""

        self._enter(AcquisitionStage.RESOLVING, None, language=language, model_kind=kind.name)
        return self.catalog.lookup(language, kind)

    def fetch(self, url: str) -> CachedArtifact:
        """Ensure ``url`` is mirrored in the cache and return the cached artifact.

        Cache hits are returned unverified and without any network request.
        Otherwise the artifact is downloaded, verified against its sidecar, and
        moved into place.
        """

        self._enter(AcquisitionStage.RESOLVING, url)
        _validate_artifact_url(url)
        local_path = self.cache.resolve_local_path(url)

        with _url_lock(url):
            self._enter(AcquisitionStage.CACHE_CHECK, url, path=str(local_path))
            self.cache.ensure_root()
            if self.cache.exists(local_path):
                LOGGER.info(
                    "model already cached",
                    extra={"stage": "cache_check", "url": url, "path": str(local_path)},
                )
                return CachedArtifact(url=url, local_path=local_path, verified=False)

            part_path = self.cache.partial_path(local_path)
            self._enter(AcquisitionStage.DOWNLOADING, url, path=str(part_path))
            LOGGER.info(
                "downloading model",
                extra={"stage": "downloading", "url": url, "path": str(local_path)},
            )
            size = stream_download(url, part_path, client=self.client, config=self.config.download)

            self._enter(AcquisitionStage.VERIFYING, url, path=str(part_path))
            try:
                verify_checksum(
                    part_path,
                    self.sidecar_url(url),
                    client=self.client,
                    config=self.config.download,
                    url=url,
                )
                os.replace(part_path, local_path)
            except AcquisitionError:
                part_path.unlink(missing_ok=True)
                raise
            except OSError as exc:
                part_path.unlink(missing_ok=True)
                raise AcquisitionError(
                    f"Failed to move verified download into {local_path}: {exc}",
                    stage=AcquisitionStage.VERIFYING,
                    url=url,
                ) from exc

        LOGGER.info(
            "download complete",
            extra={"stage": "verifying", "url": url, "path": str(local_path), "bytes": size},
        )
        return CachedArtifact(url=url, local_path=local_path, verified=True)

    def verify_cached(self, url: str, *, evict_on_mismatch: bool = False) -> CachedArtifact:
        """Re-verify an already cached artifact against its sidecar."""

        local_path = self.cache.resolve_local_path(url)
        with _url_lock(url):
            if not self.cache.exists(local_path):
                raise ModelNotFound(f"Model {url} is not cached at {local_path}", url=url)
            try:
                verify_checksum(
                    local_path,
                    self.sidecar_url(url),
                    client=self.client,
                    config=self.config.download,
                    url=url,
                )
            except AcquisitionError:
                if evict_on_mismatch:
                    local_path.unlink(missing_ok=True)
                    LOGGER.warning(
                        "evicted cached model after failed verification",
                        extra={"stage": "verifying", "url": url, "path": str(local_path)},
                    )
                raise
        return CachedArtifact(url=url, local_path=local_path, verified=True)

    def construct(self, artifact: CachedArtifact, target: Type[T]) -> T:
        """Build ``target`` from the cached file through its ``from_path`` constructor."""

        self._enter(AcquisitionStage.CONSTRUCTING, artifact.url, path=str(artifact.local_path))
        type_name = getattr(target, "__qualname__", repr(target))
        factory = getattr(target, "from_path", None)
        if not callable(factory):
            raise ConstructionFailed(
                f"Could not initialize model of type {type_name}: "
                "it does not define from_path(path)",
                url=artifact.url,
                target=type_name,
            )
        try:
            return factory(artifact.local_path)
        except Exception as exc:
            raise ConstructionFailed(
                f"Could not initialize model of type {type_name}: {exc}",
                url=artifact.url,
                target=type_name,
            ) from exc

    def acquire_url(self, url: str, target: Type[T]) -> T:
        """Download (if needed), verify, and construct ``target`` from ``url``."""

        try:
            artifact = self.fetch(url)
            model = self.construct(artifact, target)
        except AcquisitionError as exc:
            LOGGER.error("model acquisition failed: %s", exc, extra=exc.log_fields())
            self._enter(AcquisitionStage.FAILED, url, failed_stage=exc.stage.value)
            raise
        self._enter(AcquisitionStage.DONE, url)
        return model

    def acquire(self, language: str, kind: ModelKind, target: Type[T]) -> T:
        """Resolve ``(language, kind)`` in the catalog, then :meth:`acquire_url`."""

        try:
            url = self.resolve(language, kind)
        except AcquisitionError as exc:
            LOGGER.error(
                "model acquisition failed: %s",
                exc,
                extra={**exc.log_fields(), "language": language, "model_kind": kind.name},
            )
            self._enter(
                AcquisitionStage.FAILED,
                exc.url,
                failed_stage=exc.stage.value,
                language=language,
                model_kind=kind.name,
            )
            raise
        return self.acquire_url(url, target)


# --- Module-level helpers ------------------------------------------------------

_DEFAULT_ACQUIRER: Optional[ModelAcquirer] = None
_DEFAULT_ACQUIRER_LOCK = threading.Lock()


def _default_acquirer() -> ModelAcquirer:
    global _DEFAULT_ACQUIRER  # noqa: PLW0603

    with _DEFAULT_ACQUIRER_LOCK:
        if _DEFAULT_ACQUIRER is None:
            _DEFAULT_ACQUIRER = ModelAcquirer()
        return _DEFAULT_ACQUIRER


def download_model(language: str, kind: ModelKind, target: Type[T]) -> T:
    """Acquire the catalogued ``(language, kind)`` model as a ``target`` instance."""

    return _default_acquirer().acquire(language, kind, target)


def download_model_from_url(url: str, target: Type[T]) -> T:
    """Acquire the model at ``url`` as a ``target`` instance."""

    return _default_acquirer().acquire_url(url, target)
