"""SHA-512 sidecar parsing and verification."""

from __future__ import annotations

import hashlib
from pathlib import Path

import httpx
import pytest

from ModelZoo.ModelDownload.checksums import (
    ExpectedChecksum,
    compute_sha512,
    fetch_expected_checksum,
    parse_expected_digest,
    verify_checksum,
)
from ModelZoo.ModelDownload.errors import AcquisitionStage, ChecksumMismatch, DownloadFailed
from ModelZoo.ModelDownload.testing import FakeModelIndex

ABC_SHA512 = (
    "ddaf35a193617abacc417349ae20413112e6fa4e89a97ea20a9eeee64b55d39a"
    "2192992a274fc1a836ba3c23a3feebbd454d4423643ce80e2a9ac94fa54ca49f"
)


@pytest.fixture
def artifact(tmp_path: Path) -> Path:
    path = tmp_path / "model.bin"
    path.write_bytes(b"abc")
    return path


def test_compute_sha512_matches_known_vector(artifact: Path) -> None:
    assert compute_sha512(artifact) == ABC_SHA512
    assert compute_sha512(artifact, chunk_size=1) == ABC_SHA512


def test_compute_sha512_of_empty_file(tmp_path: Path) -> None:
    empty = tmp_path / "empty.bin"
    empty.write_bytes(b"")

    assert compute_sha512(empty) == hashlib.sha512(b"").hexdigest()


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        (f"{ABC_SHA512}  model.bin\n", ABC_SHA512),
        (f"{ABC_SHA512}\n", ABC_SHA512),
        (f"  {ABC_SHA512.upper()}\tmodel.bin\nsecond line", ABC_SHA512.upper()),
        ("", None),
        ("   \n", None),
    ],
)
def test_parse_expected_digest(text: str, expected: str) -> None:
    assert parse_expected_digest(text) == expected


def test_expected_checksum_comparison_ignores_case() -> None:
    expected = ExpectedChecksum(value=ABC_SHA512.upper(), source_url="https://x/model.bin.sha512")

    assert expected.matches(ABC_SHA512)
    assert not expected.matches("0" * 128)
    assert expected.algorithm == "sha512"


def test_verify_checksum_accepts_matching_digest(artifact: Path, fake_index: FakeModelIndex) -> None:
    sidecar = fake_index.register(fake_index.url_for("model.bin.sha512"), f"{ABC_SHA512}  model.bin\n")

    with fake_index.client() as client:
        assert verify_checksum(artifact, sidecar, client=client) == ABC_SHA512


def test_verify_checksum_accepts_uppercase_sidecar(artifact: Path, fake_index: FakeModelIndex) -> None:
    sidecar = fake_index.register(fake_index.url_for("model.bin.sha512"), ABC_SHA512.upper())

    with fake_index.client() as client:
        verify_checksum(artifact, sidecar, client=client)


def test_verify_checksum_mismatch_reports_both_digests(
    artifact: Path, fake_index: FakeModelIndex
) -> None:
    wrong = "0" * 128
    sidecar = fake_index.register(fake_index.url_for("model.bin.sha512"), f"{wrong}  model.bin\n")

    with fake_index.client() as client, pytest.raises(ChecksumMismatch) as excinfo:
        verify_checksum(artifact, sidecar, client=client, url=fake_index.url_for("model.bin"))

    error = excinfo.value
    assert error.expected == wrong
    assert error.actual == ABC_SHA512
    assert error.stage is AcquisitionStage.VERIFYING
    assert error.url == fake_index.url_for("model.bin")
    assert f"Expected: {wrong}, but got: {ABC_SHA512}" in str(error)


def test_empty_sidecar_is_a_mismatch(artifact: Path, fake_index: FakeModelIndex) -> None:
    sidecar = fake_index.register(fake_index.url_for("model.bin.sha512"), "")

    with fake_index.client() as client, pytest.raises(ChecksumMismatch):
        verify_checksum(artifact, sidecar, client=client)


def test_missing_sidecar_is_a_download_failure(artifact: Path, fake_index: FakeModelIndex) -> None:
    with fake_index.client() as client, pytest.raises(DownloadFailed) as excinfo:
        verify_checksum(artifact, fake_index.url_for("model.bin.sha512"), client=client)

    assert excinfo.value.status_code == 404
    assert excinfo.value.stage is AcquisitionStage.VERIFYING


def test_unreachable_sidecar_is_a_download_failure(fake_index: FakeModelIndex) -> None:
    sidecar = fake_index.register_error(
        fake_index.url_for("model.bin.sha512"), httpx.ReadTimeout("timed out")
    )

    with fake_index.client() as client, pytest.raises(DownloadFailed) as excinfo:
        fetch_expected_checksum(sidecar, client=client)

    assert excinfo.value.status_code is None
    assert excinfo.value.url == sidecar


def test_fetch_expected_checksum_records_source(fake_index: FakeModelIndex) -> None:
    sidecar = fake_index.register(fake_index.url_for("model.bin.sha512"), f"{ABC_SHA512} model.bin")

    with fake_index.client() as client:
        expected = fetch_expected_checksum(sidecar, client=client)

    assert expected == ExpectedChecksum(value=ABC_SHA512, source_url=sidecar)
