# === NAVMAP v1 ===
# {
#   "module": "ModelZoo.ModelDownload.net",
#   "purpose": "Provide a shared HTTPX client for index, artifact, and checksum requests",
#   "sections": [
#     {"id": "constants", "name": "Constants & globals", "anchor": "CONST", "kind": "constants"},
#     {"id": "helpers", "name": "Client construction helpers", "anchor": "HELP", "kind": "helpers"},
#     {"id": "api", "name": "Public API", "anchor": "API", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Shared HTTPX client used across ModelDownload networking."""

from __future__ import annotations

import contextlib
import logging
import ssl
import threading
import time
from typing import Any, Dict, MutableMapping, Optional

import certifi
import httpx

from .settings import DownloadConfiguration, get_default_config

LOGGER = logging.getLogger("ModelZoo.ModelDownload.net")

# --- Constants & globals -------------------------------------------------------

_CLIENT_LOCK = threading.RLock()
_HTTP_CLIENT: Optional[httpx.Client] = None
_DEFAULT_CONFIG: Optional[DownloadConfiguration] = None
_HTTPX_DEFAULT_AGENT = "python-httpx/"
_CONFIG_EXTENSION = "modelfetch_config"

# --- Client construction helpers ----------------------------------------------


def _build_ssl_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    context.load_verify_locations(certifi.where())
    return context


def _active_config() -> DownloadConfiguration:
    return _DEFAULT_CONFIG or get_default_config().download


def _request_hook(request: httpx.Request) -> None:
    config = request.extensions.get(_CONFIG_EXTENSION)
    if not isinstance(config, DownloadConfiguration):
        config = _active_config()
    for header, value in config.polite_http_headers().items():
        current = request.headers.get(header)
        # httpx fills in its own User-Agent; ours replaces it but not a caller's.
        if current is None or current.startswith(_HTTPX_DEFAULT_AGENT):
            request.headers[header] = value

    meta: MutableMapping[str, object] = request.extensions.setdefault("modelfetch_meta", {})  # type: ignore[assignment]
    meta["start_time"] = time.perf_counter()


def _response_hook(response: httpx.Response) -> None:
    meta: MutableMapping[str, object] = response.request.extensions.setdefault(  # type: ignore[assignment]
        "modelfetch_meta", {}
    )
    start = meta.get("start_time")
    elapsed = None
    if isinstance(start, (int, float)):
        elapsed = round(time.perf_counter() - start, 4)

    LOGGER.debug(
        "modelfetch-http-response",
        extra={
            "url": str(response.request.url),
            "status": response.status_code,
            "elapsed_sec": elapsed,
        },
    )
    response.raise_for_status()


def _timeout_for(config: DownloadConfiguration) -> httpx.Timeout:
    return httpx.Timeout(
        connect=config.connect_timeout_sec,
        read=config.timeout_sec,
        write=config.timeout_sec,
        pool=config.pool_timeout_sec,
    )


def _build_http_client(config: DownloadConfiguration) -> httpx.Client:
    return httpx.Client(
        http2=config.http2_enabled,
        timeout=_timeout_for(config),
        verify=_build_ssl_context(),
        trust_env=True,
        follow_redirects=config.follow_redirects,
        event_hooks={"request": [_request_hook], "response": [_response_hook]},
    )


def _close_client_unlocked() -> None:
    global _HTTP_CLIENT
    if _HTTP_CLIENT is not None:
        with contextlib.suppress(Exception):
            _HTTP_CLIENT.close()
    _HTTP_CLIENT = None


# --- Public API ----------------------------------------------------------------


def request_options(config: DownloadConfiguration) -> Dict[str, Any]:
    """Return per-request keyword arguments that apply ``config`` on a shared client.

    Timeouts, redirect handling and polite headers follow ``config`` even when
    the shared client was built from different settings; HTTP/2 is fixed when
    the client is constructed.
    """

    return {
        "timeout": _timeout_for(config),
        "follow_redirects": config.follow_redirects,
        "extensions": {_CONFIG_EXTENSION: config},
    }


def event_hooks() -> dict:
    """Return the request/response hooks installed on the shared client."""

    return {"request": [_request_hook], "response": [_response_hook]}


def configure_http_client(
    client: Optional[httpx.Client] = None,
    *,
    default_config: Optional[DownloadConfiguration] = None,
) -> None:
    """Override the shared HTTPX client (primarily for tests)."""

    global _HTTP_CLIENT, _DEFAULT_CONFIG

    with _CLIENT_LOCK:
        if default_config is not None:
            _DEFAULT_CONFIG = default_config
        if client is None:
            _close_client_unlocked()
        elif _HTTP_CLIENT is not client:
            _close_client_unlocked()
            _HTTP_CLIENT = client


def reset_http_client() -> None:
    """Close the shared client and forget any configured overrides."""

    global _DEFAULT_CONFIG

    with _CLIENT_LOCK:
        _DEFAULT_CONFIG = None
        _close_client_unlocked()


def get_http_client(config: Optional[DownloadConfiguration] = None) -> httpx.Client:
    """Return the shared HTTPX client, creating it if necessary."""

    global _HTTP_CLIENT

    with _CLIENT_LOCK:
        if _HTTP_CLIENT is None:
            cfg = config or _active_config()
            _HTTP_CLIENT = _build_http_client(cfg)
            LOGGER.debug(
                "created shared http client",
                extra={"timeout_sec": cfg.timeout_sec, "http2": cfg.http2_enabled},
            )
        return _HTTP_CLIENT
