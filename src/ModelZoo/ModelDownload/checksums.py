"""SHA-512 sidecar fetching and streaming file verification.

Every published artifact has a sidecar at ``<artifact URL>.sha512`` whose
first line starts with the hex digest, optionally followed by the file name
(``<digest>  <filename>``).  The local file is hashed in fixed-size chunks so
large models never have to fit in memory, and digests are compared
case-insensitively.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import httpx

from .errors import AcquisitionStage, ChecksumMismatch, DownloadFailed
from .net import get_http_client, request_options
from .settings import DownloadConfiguration, get_default_config

__all__ = [
    "CHECKSUM_ALGORITHM",
    "ExpectedChecksum",
    "parse_expected_digest",
    "fetch_expected_checksum",
    "compute_sha512",
    "verify_checksum",
]

LOGGER = logging.getLogger("ModelZoo.ModelDownload.checksums")

CHECKSUM_ALGORITHM = "sha512"


@dataclass(slots=True, frozen=True)
class ExpectedChecksum:
    """Digest published for an artifact, as read from its sidecar."""

    value: str
    source_url: str
    algorithm: str = CHECKSUM_ALGORITHM

    def matches(self, digest: str) -> bool:
        """Compare ``digest`` to the expected value, ignoring case."""

        return self.value.lower() == digest.lower()


def parse_expected_digest(text: str) -> Optional[str]:
    """Return the first whitespace-delimited token of the first line of ``text``."""

    first_line = text.splitlines()[0] if text else ""
    tokens = first_line.split()
    return tokens[0].strip() if tokens else None


def fetch_expected_checksum(
    sidecar_url: str,
    *,
    client: Optional[httpx.Client] = None,
    config: Optional[DownloadConfiguration] = None,
) -> Optional[ExpectedChecksum]:
    """Download the sidecar at ``sidecar_url`` and parse its digest.

    Returns ``None`` when the sidecar is empty.  Transport and HTTP failures
    raise :class:`DownloadFailed`, never a checksum mismatch.
    """

    http_config = config or get_default_config().download
    http_client = client or get_http_client(http_config)
    max_bytes = http_config.max_checksum_response_bytes
    body = bytearray()
    try:
        with http_client.stream("GET", sidecar_url, **request_options(http_config)) as response:
            response.raise_for_status()
            for chunk in response.iter_bytes():
                body.extend(chunk)
                if b"\n" in chunk or len(body) >= max_bytes:
                    break
    except httpx.HTTPStatusError as exc:
        status_code = exc.response.status_code
        raise DownloadFailed(
            f"HTTP error {status_code} while fetching checksum {sidecar_url}",
            url=sidecar_url,
            stage=AcquisitionStage.VERIFYING,
            status_code=status_code,
        ) from exc
    except httpx.HTTPError as exc:
        raise DownloadFailed(
            f"Failed to fetch checksum from {sidecar_url}: {exc}",
            url=sidecar_url,
            stage=AcquisitionStage.VERIFYING,
        ) from exc

    digest = parse_expected_digest(bytes(body[:max_bytes]).decode("utf-8", errors="replace"))
    if digest is None:
        return None
    LOGGER.debug(
        "fetched checksum",
        extra={"stage": "verifying", "url": sidecar_url, "algorithm": CHECKSUM_ALGORITHM},
    )
    return ExpectedChecksum(value=digest, source_url=sidecar_url)


def compute_sha512(path: Path, *, chunk_size: int = 1 << 16) -> str:
    """Return the lowercase hex SHA-512 digest of the file at ``path``."""

    hasher = hashlib.sha512()
    with Path(path).open("rb") as stream:
        for chunk in iter(lambda: stream.read(chunk_size), b""):
            hasher.update(chunk)
    return hasher.hexdigest()


def verify_checksum(
    local_path: Path,
    sidecar_url: str,
    *,
    client: Optional[httpx.Client] = None,
    config: Optional[DownloadConfiguration] = None,
    url: Optional[str] = None,
) -> str:
    """Verify ``local_path`` against the digest published at ``sidecar_url``.

    Returns the computed digest.  Raises :class:`ChecksumMismatch` when the
    digests differ or the sidecar is empty.
    """

    http_config = config or get_default_config().download
    expected = fetch_expected_checksum(sidecar_url, client=client, config=http_config)
    actual = compute_sha512(local_path, chunk_size=http_config.hash_chunk_bytes)
    if expected is None:
        raise ChecksumMismatch(
            f"SHA512 checksum validation failed. Sidecar {sidecar_url} is empty",
            url=url or sidecar_url,
            actual=actual,
        )
    if not expected.matches(actual):
        LOGGER.error(
            "checksum mismatch",
            extra={"stage": "verifying", "url": url or sidecar_url, "path": str(local_path)},
        )
        raise ChecksumMismatch(
            f"SHA512 checksum validation failed. Expected: {expected.value}, but got: {actual}",
            url=url or sidecar_url,
            expected=expected.value,
            actual=actual,
        )
    return actual
