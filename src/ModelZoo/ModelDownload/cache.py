"""Local mirror of downloaded model artifacts.

The cache is a single flat directory: every artifact is stored under the last
path segment of its source URL and the presence of a same-named file is the
entire cache index.  Nothing is evicted and no metadata is consulted on a hit,
so only files that passed verification may ever appear under a final name;
in-flight downloads use a ``.part`` sibling until they are verified.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
from urllib.parse import unquote, urlsplit

from .errors import AcquisitionError, AcquisitionStage, ModelNotFound
from .settings import CacheConfiguration, get_default_config

__all__ = ["PART_SUFFIX", "CachedArtifact", "ArtifactCache", "filename_for_url"]

LOGGER = logging.getLogger("ModelZoo.ModelDownload.cache")

PART_SUFFIX = ".part"


@dataclass(slots=True, frozen=True)
class CachedArtifact:
    """A remote artifact and the local file mirroring it."""

    url: str
    local_path: Path
    verified: bool = False


def filename_for_url(url: str) -> str:
    """Return the last ``/``-delimited path segment of ``url``."""

    path = urlsplit(url).path
    name = unquote(path.rsplit("/", 1)[-1])
    # Decoding may reintroduce separators (``..%2F``); the name must stay one segment.
    separators = {"/", "\\", "\x00", os.sep, os.altsep or "/"}
    if not name or name in {".", ".."} or any(sep in name for sep in separators):
        raise ModelNotFound(f"URL '{url}' does not name a file", url=url)
    return name


class ArtifactCache:
    """Maps remote artifact URLs to files under a fixed cache root."""

    def __init__(self, root: Optional[Path] = None) -> None:
        if root is None:
            root = get_default_config().cache.root
        self.root: Path = Path(root).expanduser()

    @classmethod
    def from_config(cls, config: CacheConfiguration) -> "ArtifactCache":
        return cls(config.root)

    def resolve_local_path(self, url: str) -> Path:
        """Return where ``url`` is (or would be) stored locally."""

        local_path = self.root / filename_for_url(url)
        if local_path.parent != self.root:
            raise ModelNotFound(f"URL '{url}' maps outside the model cache", url=url)
        return local_path

    def partial_path(self, local_path: Path) -> Path:
        """Return the in-flight download path for ``local_path``."""

        return local_path.with_name(local_path.name + PART_SUFFIX)

    def ensure_root(self) -> Path:
        """Create the cache root if needed; an existing directory is fine."""

        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            LOGGER.error(
                "could not create cache root",
                extra={"stage": "cache_check", "path": str(self.root), "error": str(exc)},
            )
            raise AcquisitionError(
                f"Could not create model cache directory {self.root}: {exc}",
                stage=AcquisitionStage.CACHE_CHECK,
            ) from exc
        return self.root

    def exists(self, path: Path) -> bool:
        """Return whether ``path`` is present; size and timestamps are ignored."""

        return path.exists()

    def artifacts(self) -> List[Path]:
        """Return the cached files, excluding in-flight downloads."""

        if not self.root.is_dir():
            return []
        return sorted(
            entry
            for entry in self.root.iterdir()
            if entry.is_file() and not entry.name.endswith(PART_SUFFIX)
        )
