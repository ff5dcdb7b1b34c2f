# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload.catalog",
#   "purpose": "Parse the remote model index and classify its links into a language/kind catalog",
#   "sections": [
#     {"id": "parser", "name": "Index Parsing", "anchor": "PAR", "kind": "helpers"},
#     {"id": "catalog", "name": "Catalog Value", "anchor": "CAT", "kind": "api"},
#     {"id": "builder", "name": "Catalog Builder", "anchor": "BLD", "kind": "api"},
#     {"id": "process", "name": "Process-wide Catalog", "anchor": "PRC", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Model index discovery.

The published models live in a plain Apache directory listing.  The listing is
trusted and well formed, so links are pulled out with a single anchor-tag
pattern rather than a full HTML parser, then classified into
``language -> ModelKind -> URL`` using the substring markers from
:mod:`ModelZoo.ModelDownload.markers`.

Reading the index is the one place where failures are logged instead of
raised: the catalog is built once per process and an unreachable index must
not take unrelated startup down with it.  The resulting catalog is simply
empty and marked incomplete; lookups then fail with ``ModelNotFound``.
"""

from __future__ import annotations

import logging
import re
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import httpx

from .errors import CatalogUnavailable, ModelNotFound, UserConfigError
from .kinds import ModelKind
from .markers import MarkerTable, load_marker_table
from .net import get_http_client, request_options
from .settings import (
    CatalogConfiguration,
    DownloadConfiguration,
    ResolvedConfig,
    get_default_config,
)

__all__ = [
    "Catalog",
    "extract_links",
    "fetch_index",
    "join_index_url",
    "build_catalog",
    "load_catalog",
    "get_catalog",
    "reset_catalog",
]

LOGGER = logging.getLogger("ModelZoo.ModelDownload.catalog")

# --- Index Parsing -------------------------------------------------------------

_LINK_PATTERN = re.compile(
    r"<a\b[^>]*?\bhref\s*=\s*([\"'])(.*?)\1[^>]*>(.*?)</a\s*>",
    re.IGNORECASE | re.DOTALL,
)


def extract_links(html: str) -> List[str]:
    """Return the ``href`` of every anchor tag in ``html``, in document order."""

    return [match.group(2) for match in _LINK_PATTERN.finditer(html)]


def fetch_index(
    index_url: str,
    *,
    client: Optional[httpx.Client] = None,
    strict: bool = False,
    config: Optional[DownloadConfiguration] = None,
) -> Optional[str]:
    """Fetch the index page as text, or ``None`` when it cannot be read.

    With ``strict`` the failure is raised as :class:`CatalogUnavailable`
    instead of being logged.
    """

    http_config = config or get_default_config().download
    http_client = client or get_http_client(http_config)
    try:
        response = http_client.get(index_url, **request_options(http_config))
        response.raise_for_status()
        return response.text
    except httpx.HTTPError as exc:
        if strict:
            raise CatalogUnavailable(
                f"Could not read model index {index_url}: {exc}", url=index_url
            ) from exc
        LOGGER.error(
            "could not read model index",
            extra={"stage": "resolving", "url": index_url, "error": str(exc)},
            exc_info=True,
        )
        return None


# --- Catalog Value -------------------------------------------------------------


@dataclass(frozen=True)
class Catalog:
    """Immutable mapping of ``language -> ModelKind -> URL``."""

    entries: Mapping[str, Mapping[ModelKind, str]] = field(
        default_factory=lambda: MappingProxyType({})
    )
    source_url: Optional[str] = None
    complete: bool = True

    def __post_init__(self) -> None:
        frozen = {
            language: MappingProxyType(dict(models))
            for language, models in self.entries.items()
        }
        object.__setattr__(self, "entries", MappingProxyType(frozen))

    def get(self, language: str, kind: ModelKind) -> Optional[str]:
        """Return the URL registered for ``(language, kind)`` or ``None``."""

        return self.entries.get(language, {}).get(kind)

    def lookup(self, language: str, kind: ModelKind) -> str:
        """Return the URL for ``(language, kind)`` or raise :class:`ModelNotFound`."""

        url = self.get(language, kind)
        if url is None:
            raise ModelNotFound(
                f"No {kind.name} model published for language '{language}'",
                language=language,
                kind=kind.name,
            )
        return url

    def languages(self) -> List[str]:
        """Return the sorted language codes present in the catalog."""

        return sorted(self.entries)

    def kinds_for(self, language: str) -> List[ModelKind]:
        """Return the model kinds available for ``language``."""

        return [kind for kind in ModelKind if kind in self.entries.get(language, {})]

    def items(self) -> Iterator[Tuple[str, ModelKind, str]]:
        """Yield ``(language, kind, url)`` triples ordered by language."""

        for language in self.languages():
            for kind in self.kinds_for(language):
                yield language, kind, self.entries[language][kind]

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        """Return a JSON-friendly copy keyed by language then kind name."""

        return {
            language: {kind.name: url for kind, url in self.entries[language].items()}
            for language in self.languages()
        }

    def __contains__(self, key: object) -> bool:
        if isinstance(key, tuple) and len(key) == 2:
            language, kind = key
            return isinstance(language, str) and self.get(language, kind) is not None
        return key in self.entries

    def __len__(self) -> int:
        return sum(len(models) for models in self.entries.values())


# --- Catalog Builder -----------------------------------------------------------


def join_index_url(index_url: str, link: str) -> str:
    """Return the absolute URL for ``link`` found on the page at ``index_url``."""

    if re.match(r"^[a-z][a-z0-9+.-]*://", link, re.IGNORECASE):
        return link
    return index_url.rstrip("/") + "/" + link.lstrip("/")


def build_catalog(
    links: Iterable[str],
    *,
    index_url: str,
    markers: Optional[MarkerTable] = None,
    artifact_suffix: str = ".bin",
    complete: bool = True,
) -> Catalog:
    """Classify ``links`` into a :class:`Catalog`.

    Links that do not end with ``artifact_suffix``, or that carry no language
    or no kind marker, are skipped.  When several links land on the same
    ``(language, kind)`` slot the last one encountered wins.
    """

    table = markers or load_marker_table()
    entries: Dict[str, Dict[ModelKind, str]] = {}
    for link in links:
        if not link.endswith(artifact_suffix):
            continue
        language = table.language_for(link)
        if language is None:
            continue
        kind = table.kind_for(link)
        if kind is None:
            continue
        entries.setdefault(language, {})[kind] = join_index_url(index_url, link)

    catalog = Catalog(entries=entries, source_url=index_url, complete=complete)
    LOGGER.info(
        "model catalog built",
        extra={
            "stage": "resolving",
            "url": index_url,
            "languages": len(entries),
            "models": len(catalog),
        },
    )
    return catalog


def _validate_index_url(index_url: str) -> None:
    try:
        parsed = httpx.URL(index_url)
    except httpx.InvalidURL as exc:
        raise UserConfigError(f"Malformed model index URL '{index_url}': {exc}") from exc
    if parsed.scheme not in {"http", "https"} or not parsed.host:
        raise UserConfigError(f"Malformed model index URL '{index_url}'")


def load_catalog(
    config: Optional[ResolvedConfig] = None,
    *,
    client: Optional[httpx.Client] = None,
) -> Catalog:
    """Fetch the configured index page and build a catalog from it."""

    resolved = config or get_default_config()
    catalog_config: CatalogConfiguration = resolved.catalog
    index_url = catalog_config.index_url
    _validate_index_url(index_url)
    markers = load_marker_table(catalog_config.markers_path)

    html = fetch_index(
        index_url, client=client, strict=catalog_config.strict, config=resolved.download
    )
    return build_catalog(
        extract_links(html or ""),
        index_url=index_url,
        markers=markers,
        artifact_suffix=catalog_config.artifact_suffix,
        complete=html is not None,
    )


# --- Process-wide Catalog ------------------------------------------------------

_CATALOG_LOCK = threading.RLock()
_CATALOG: Optional[Catalog] = None


def get_catalog() -> Catalog:
    """Return the process-wide catalog, building it on first use."""

    global _CATALOG  # noqa: PLW0603

    with _CATALOG_LOCK:
        if _CATALOG is None:
            _CATALOG = load_catalog()
        return _CATALOG


def reset_catalog() -> None:
    """Forget the process-wide catalog so the next call rebuilds it."""

    global _CATALOG  # noqa: PLW0603

    with _CATALOG_LOCK:
        _CATALOG = None
