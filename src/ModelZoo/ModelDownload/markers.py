"""Versioned filename-marker table used to classify index links.

The marker table is data, not logic: it ships as ``data/markers.yaml`` and can
be replaced by a user file through ``catalog.markers_path`` so that new
languages or filename schemes do not require touching the catalog builder.
"""

from __future__ import annotations

from importlib import resources
from pathlib import Path
from typing import Optional, Tuple

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import UserConfigError
from .kinds import ModelKind

__all__ = [
    "LanguageMarker",
    "KindMarker",
    "MarkerTable",
    "load_marker_table",
    "default_marker_table",
]

_BUNDLED_TABLE = "markers.yaml"


class LanguageMarker(BaseModel):
    """Substring marking a link as belonging to a language."""

    marker: str = Field(min_length=1)
    code: str = Field(min_length=1)

    model_config = ConfigDict(frozen=True)


class KindMarker(BaseModel):
    """Substring marking a link as a given :class:`ModelKind`."""

    marker: str = Field(min_length=1)
    kind: ModelKind

    model_config = ConfigDict(frozen=True)

    @field_validator("kind", mode="before")
    @classmethod
    def parse_kind(cls, value: object) -> object:
        """Accept member names as well as identifiers."""

        if isinstance(value, str):
            return ModelKind.parse(value)
        return value


class MarkerTable(BaseModel):
    """Ordered language and kind markers; the first match wins."""

    version: int = Field(default=1, ge=1)
    languages: Tuple[LanguageMarker, ...] = ()
    kinds: Tuple[KindMarker, ...] = ()

    model_config = ConfigDict(frozen=True)

    def language_for(self, link: str) -> Optional[str]:
        """Return the language code of the first marker found in ``link``."""

        for entry in self.languages:
            if entry.marker in link:
                return entry.code
        return None

    def kind_for(self, link: str) -> Optional[ModelKind]:
        """Return the model kind of the first marker found in ``link``."""

        for entry in self.kinds:
            if entry.marker in link:
                return entry.kind
        return None


def _parse_table(text: str, *, source: str) -> MarkerTable:
    try:
        raw = yaml.safe_load(text) or {}
    except yaml.YAMLError as exc:
        raise UserConfigError(f"Marker table {source} is not valid YAML: {exc}") from exc
    if not isinstance(raw, dict):
        raise UserConfigError(f"Marker table {source} must be a mapping")
    try:
        return MarkerTable.model_validate(raw)
    except ValidationError as exc:
        messages = []
        for error in exc.errors():
            location = " -> ".join(str(part) for part in error["loc"])
            messages.append(f"{location}: {error['msg']}")
        raise UserConfigError(
            f"Marker table {source} failed validation:\n  " + "\n  ".join(messages)
        ) from exc


def default_marker_table() -> MarkerTable:
    """Return the marker table bundled with the package."""

    bundled = resources.files(__package__).joinpath("data").joinpath(_BUNDLED_TABLE)
    text = bundled.read_text(encoding="utf-8")
    return _parse_table(text, source=f"<bundled {_BUNDLED_TABLE}>")


def load_marker_table(path: Optional[Path] = None) -> MarkerTable:
    """Load the marker table from ``path``, or the bundled table when omitted."""

    if path is None:
        return default_marker_table()
    try:
        text = Path(path).expanduser().read_text(encoding="utf-8")
    except OSError as exc:
        raise UserConfigError(f"Unable to read marker table {path}: {exc}") from exc
    return _parse_table(text, source=str(path))
