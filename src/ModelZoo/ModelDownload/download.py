"""Streaming artifact transfer into the local cache."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from .errors import DownloadFailed
from .net import get_http_client, request_options
from .settings import DownloadConfiguration, get_default_config

__all__ = ["stream_download"]

LOGGER = logging.getLogger("ModelZoo.ModelDownload.download")

_PROGRESS_PERCENT_STEP = 0.1


def _total_bytes(response: httpx.Response) -> Optional[int]:
    length_header = response.headers.get("Content-Length")
    if not length_header:
        return None
    try:
        return int(length_header)
    except (TypeError, ValueError):
        return None


def stream_download(
    url: str,
    destination: Path,
    *,
    client: Optional[httpx.Client] = None,
    config: Optional[DownloadConfiguration] = None,
) -> int:
    """Stream the body of ``url`` into ``destination`` and return bytes written.

    ``destination`` is overwritten.  On any failure the partially written file
    is removed before :class:`DownloadFailed` is raised.
    """

    http_config = config or get_default_config().download
    http_client = client or get_http_client(http_config)
    written = 0
    next_report = _PROGRESS_PERCENT_STEP
    try:
        with http_client.stream("GET", url, **request_options(http_config)) as response:
            response.raise_for_status()
            total = _total_bytes(response)
            with destination.open("wb") as stream:
                for chunk in response.iter_bytes(http_config.stream_chunk_bytes):
                    if not chunk:
                        continue
                    stream.write(chunk)
                    written += len(chunk)
                    if total and written / total >= next_report:
                        LOGGER.debug(
                            "download progress",
                            extra={
                                "stage": "downloading",
                                "url": url,
                                "bytes_downloaded": written,
                                "total_bytes": total,
                            },
                        )
                        next_report += _PROGRESS_PERCENT_STEP
    except httpx.HTTPStatusError as exc:
        destination.unlink(missing_ok=True)
        status_code = exc.response.status_code
        raise DownloadFailed(
            f"HTTP error {status_code} while downloading {url}",
            url=url,
            status_code=status_code,
        ) from exc
    except httpx.HTTPError as exc:
        destination.unlink(missing_ok=True)
        raise DownloadFailed(f"Network error while downloading {url}: {exc}", url=url) from exc
    except OSError as exc:
        destination.unlink(missing_ok=True)
        LOGGER.error(
            "filesystem error during download",
            extra={"stage": "downloading", "url": url, "error": str(exc)},
        )
        raise DownloadFailed(
            f"Failed to write download to {destination}: {exc}",
            url=url,
        ) from exc
    return written
