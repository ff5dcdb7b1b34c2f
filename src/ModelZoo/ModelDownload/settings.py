# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload.settings",
#   "purpose": "Define configuration models, environment overrides, and YAML loading for model downloads",
#   "sections": [
#     {"id": "loggingconfiguration", "name": "LoggingConfiguration", "anchor": "class-loggingconfiguration", "kind": "class"},
#     {"id": "catalogconfiguration", "name": "CatalogConfiguration", "anchor": "class-catalogconfiguration", "kind": "class"},
#     {"id": "downloadconfiguration", "name": "DownloadConfiguration", "anchor": "class-downloadconfiguration", "kind": "class"},
#     {"id": "cacheconfiguration", "name": "CacheConfiguration", "anchor": "class-cacheconfiguration", "kind": "class"},
#     {"id": "resolvedconfig", "name": "ResolvedConfig", "anchor": "class-resolvedconfig", "kind": "class"},
#     {"id": "environmentoverrides", "name": "EnvironmentOverrides", "anchor": "class-environmentoverrides", "kind": "class"},
#     {"id": "get-default-config", "name": "get_default_config", "anchor": "function-get-default-config", "kind": "function"},
#     {"id": "load-config", "name": "load_config", "anchor": "function-load-config", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Configuration models for the model downloader.

Settings are grouped by concern (catalog discovery, HTTP transfer, local
cache, logging) and validated with pydantic.  Values come from defaults, an
optional YAML file, and ``MODELFETCH_*`` environment variables, in increasing
order of precedence.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from . import __version__
from .errors import UserConfigError

__all__ = [
    "DEFAULT_INDEX_URL",
    "DEFAULT_CACHE_ROOT",
    "LoggingConfiguration",
    "CatalogConfiguration",
    "DownloadConfiguration",
    "CacheConfiguration",
    "ResolvedConfig",
    "EnvironmentOverrides",
    "get_default_config",
    "invalidate_default_config_cache",
    "build_resolved_config",
    "load_config",
]

DEFAULT_INDEX_URL = "https://dlcdn.apache.org/opennlp/models/ud-models-1.1/"
DEFAULT_CACHE_ROOT = Path("~/.opennlp")

LOGGER = logging.getLogger("ModelZoo.ModelDownload")


class LoggingConfiguration(BaseModel):
    """Logging-related configuration for model downloads."""

    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR)")
    max_log_size_mb: int = Field(default=100, gt=0, description="Maximum size of rotated log files")
    retention_days: int = Field(default=30, ge=1, description="Retention period for log files")

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        """Normalise logging levels and ensure they match the supported set."""

        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR"}
        upper = value.upper()
        if upper not in valid_levels:
            raise ValueError(f"level must be one of {valid_levels}")
        return upper

    model_config = {"validate_assignment": True}


class CatalogConfiguration(BaseModel):
    """Where the model index lives and how its links are classified."""

    index_url: str = Field(default=DEFAULT_INDEX_URL, description="Directory listing of published models")
    artifact_suffix: str = Field(default=".bin", min_length=1)
    markers_path: Optional[Path] = Field(
        default=None,
        description="YAML marker table replacing the bundled one",
    )
    strict: bool = Field(
        default=False,
        description="Raise CatalogUnavailable instead of degrading to an empty catalog",
    )

    @field_validator("index_url")
    @classmethod
    def validate_index_url(cls, value: str) -> str:
        """Reject index URLs without an HTTP(S) scheme."""

        stripped = value.strip()
        if not stripped.lower().startswith(("http://", "https://")):
            raise ValueError("index_url must be an http(s) URL")
        return stripped

    model_config = {"validate_assignment": True}


class DownloadConfiguration(BaseModel):
    """HTTP transfer settings for the index page, artifacts, and sidecars."""

    timeout_sec: float = Field(default=60.0, gt=0, le=3600)
    connect_timeout_sec: float = Field(default=10.0, gt=0.0, le=120.0)
    pool_timeout_sec: float = Field(default=10.0, gt=0.0, le=120.0)
    follow_redirects: bool = Field(default=True)
    http2_enabled: bool = Field(default=False)
    user_agent: str = Field(default=f"modelfetch/{__version__}")
    checksum_suffix: str = Field(default=".sha512", min_length=1)
    max_checksum_response_bytes: int = Field(
        default=65_536,
        ge=1_024,
        le=8_388_608,
        description="Maximum number of bytes read from a checksum sidecar",
    )
    stream_chunk_bytes: int = Field(default=1 << 16, ge=1_024)
    hash_chunk_bytes: int = Field(default=1 << 16, ge=512)

    model_config = {"validate_assignment": True}

    def polite_http_headers(self) -> Dict[str, str]:
        """Return headers attached to every outgoing request."""

        return {"User-Agent": self.user_agent}


class CacheConfiguration(BaseModel):
    """Location of the local model mirror."""

    root: Path = Field(default=DEFAULT_CACHE_ROOT, validate_default=True)

    @field_validator("root")
    @classmethod
    def expand_root(cls, value: Path) -> Path:
        """Expand ``~`` so the cache always resolves under the user's home."""

        return Path(value).expanduser()

    model_config = {"validate_assignment": True}


class ResolvedConfig(BaseModel):
    """Complete configuration for catalog discovery and model acquisition."""

    catalog: CatalogConfiguration = Field(default_factory=CatalogConfiguration)
    download: DownloadConfiguration = Field(default_factory=DownloadConfiguration)
    cache: CacheConfiguration = Field(default_factory=CacheConfiguration)
    logging: LoggingConfiguration = Field(default_factory=LoggingConfiguration)

    model_config = {"validate_assignment": True, "extra": "forbid"}

    @classmethod
    def from_defaults(cls) -> "ResolvedConfig":
        """Return defaults with environment overrides applied."""

        config = cls()
        _apply_env_overrides(config)
        return config

    def config_hash(self) -> str:
        """Return a short stable fingerprint of the effective settings."""

        payload = json.dumps(self.model_dump(mode="json"), sort_keys=True)
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:16]


class EnvironmentOverrides(BaseSettings):
    """Pydantic settings model exposing environment-derived overrides."""

    index_url: Optional[str] = Field(default=None, alias="MODELFETCH_INDEX_URL")
    cache_dir: Optional[Path] = Field(default=None, alias="MODELFETCH_CACHE_DIR")
    timeout_sec: Optional[float] = Field(default=None, alias="MODELFETCH_TIMEOUT_SEC")
    log_level: Optional[str] = Field(default=None, alias="MODELFETCH_LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_prefix="MODELFETCH_", case_sensitive=False, extra="ignore"
    )


def _apply_env_overrides(config: ResolvedConfig) -> None:
    """Mutate ``config`` in-place using values from :class:`EnvironmentOverrides`."""

    try:
        env = EnvironmentOverrides()
        if env.index_url is not None:
            config.catalog.index_url = env.index_url
            LOGGER.info("Config overridden: index_url=%s", env.index_url, extra={"stage": "config"})
        if env.cache_dir is not None:
            config.cache.root = env.cache_dir
            LOGGER.info("Config overridden: cache_dir=%s", env.cache_dir, extra={"stage": "config"})
        if env.timeout_sec is not None:
            config.download.timeout_sec = env.timeout_sec
            LOGGER.info(
                "Config overridden: timeout_sec=%s", env.timeout_sec, extra={"stage": "config"}
            )
        if env.log_level is not None:
            config.logging.level = env.log_level
            LOGGER.info("Config overridden: log_level=%s", env.log_level, extra={"stage": "config"})
    except PydanticValidationError as exc:
        raise UserConfigError(f"Invalid MODELFETCH_* environment override: {exc}") from exc


_DEFAULT_CONFIG_LOCK = threading.RLock()
_DEFAULT_CONFIG_CACHE: Optional[ResolvedConfig] = None


def get_default_config(*, copy: bool = False) -> ResolvedConfig:
    """Return a memoised :class:`ResolvedConfig` constructed from defaults."""

    global _DEFAULT_CONFIG_CACHE  # noqa: PLW0603

    with _DEFAULT_CONFIG_LOCK:
        if _DEFAULT_CONFIG_CACHE is None:
            _DEFAULT_CONFIG_CACHE = ResolvedConfig.from_defaults()
        cached = _DEFAULT_CONFIG_CACHE
    if copy:
        return cached.model_copy(deep=True)
    return cached


def invalidate_default_config_cache() -> None:
    """Invalidate the cached default configuration."""

    global _DEFAULT_CONFIG_CACHE  # noqa: PLW0603

    with _DEFAULT_CONFIG_LOCK:
        _DEFAULT_CONFIG_CACHE = None


def build_resolved_config(raw_config: Mapping[str, Any]) -> ResolvedConfig:
    """Materialise a :class:`ResolvedConfig` from a raw mapping loaded from disk."""

    try:
        config = ResolvedConfig.model_validate(dict(raw_config))
    except PydanticValidationError as exc:
        messages = []
        for error in exc.errors():
            location = " -> ".join(str(part) for part in error["loc"])
            messages.append(f"{location}: {error['msg']}")
        raise UserConfigError(
            "Configuration validation failed:\n  " + "\n  ".join(messages)
        ) from exc

    _apply_env_overrides(config)
    return config


def load_config(config_path: Path) -> ResolvedConfig:
    """Load, validate, and resolve the YAML configuration at ``config_path``."""

    path = Path(config_path).expanduser()
    if not path.exists():
        raise UserConfigError(f"Configuration file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise UserConfigError(f"Configuration file {path} is not valid YAML: {exc}") from exc
    if raw is None:
        raw = {}
    if not isinstance(raw, Mapping):
        raise UserConfigError("Configuration file must contain a mapping at the top level")
    return build_resolved_config(raw)
