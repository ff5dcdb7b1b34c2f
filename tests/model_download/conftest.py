"""Fixtures shared by the model download tests."""

from __future__ import annotations

from pathlib import Path
from typing import Iterator, List

import httpx
import pytest

from ModelZoo.ModelDownload.acquire import ModelAcquirer
from ModelZoo.ModelDownload.cache import ArtifactCache
from ModelZoo.ModelDownload.catalog import load_catalog
from ModelZoo.ModelDownload.settings import ResolvedConfig
from ModelZoo.ModelDownload.testing import FakeModelIndex

SENTENCE_MODEL = "opennlp-en-ud-ewt-sentence-1.1-2.4.0.bin"
TOKENS_MODEL = "opennlp-en-ud-ewt-tokens-1.1-2.4.0.bin"
GERMAN_POS_MODEL = "opennlp-de-ud-gsd-pos-1.1-2.4.0.bin"

SENTENCE_PAYLOAD = b"sentence-detector-model" * 512
TOKENS_PAYLOAD = b"tokenizer-model" * 256
GERMAN_POS_PAYLOAD = b"pos-tagger-model" * 128


@pytest.fixture
def fake_index() -> FakeModelIndex:
    """A model index publishing three verified English and German models."""

    index = FakeModelIndex()
    names = [SENTENCE_MODEL, TOKENS_MODEL, GERMAN_POS_MODEL]
    index.register_index(names + [name + ".sha512" for name in names])
    index.register_artifact(SENTENCE_MODEL, SENTENCE_PAYLOAD)
    index.register_artifact(TOKENS_MODEL, TOKENS_PAYLOAD)
    index.register_artifact(GERMAN_POS_MODEL, GERMAN_POS_PAYLOAD)
    return index


@pytest.fixture
def sentence_url(fake_index: FakeModelIndex) -> str:
    return fake_index.url_for(SENTENCE_MODEL)


@pytest.fixture
def sentence_payload() -> bytes:
    return SENTENCE_PAYLOAD


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    return tmp_path / "opennlp"


@pytest.fixture
def config(fake_index: FakeModelIndex, cache_root: Path) -> ResolvedConfig:
    return ResolvedConfig.model_validate(
        {
            "catalog": {"index_url": fake_index.base_url},
            "cache": {"root": str(cache_root)},
        }
    )


@pytest.fixture
def http_client(fake_index: FakeModelIndex) -> Iterator[httpx.Client]:
    client = fake_index.client()
    try:
        yield client
    finally:
        client.close()


@pytest.fixture
def acquirer(
    fake_index: FakeModelIndex,
    config: ResolvedConfig,
    http_client: httpx.Client,
    cache_root: Path,
) -> ModelAcquirer:
    """An acquirer whose catalog is already loaded; request history is cleared."""

    catalog = load_catalog(config, client=http_client)
    fake_index.requests.clear()
    return ModelAcquirer(
        catalog,
        cache=ArtifactCache(cache_root),
        config=config,
        client=http_client,
    )


@pytest.fixture
def recording_model() -> type:
    """A fresh model type that records every ``from_path`` call."""

    class RecordingModel:
        calls: List[Path] = []

        def __init__(self, path: Path) -> None:
            self.path = path
            self.payload = Path(path).read_bytes()

        @classmethod
        def from_path(cls, path: Path) -> "RecordingModel":
            cls.calls.append(path)
            return cls(path)

    RecordingModel.calls = []
    return RecordingModel
