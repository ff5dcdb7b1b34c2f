from __future__ import annotations

import pytest

import ModelZoo.ModelDownload as model_download


def test_lazy_exports_resolve_to_module_objects() -> None:
    from ModelZoo.ModelDownload.acquire import ModelAcquirer
    from ModelZoo.ModelDownload.errors import ChecksumMismatch

    assert model_download.ModelAcquirer is ModelAcquirer
    assert model_download.ChecksumMismatch is ChecksumMismatch
    assert "download_model" in dir(model_download)


def test_unknown_attribute_raises() -> None:
    with pytest.raises(AttributeError):
        model_download.not_an_export  # noqa: B018


def test_error_hierarchy() -> None:
    for name in ("CatalogUnavailable", "ModelNotFound", "DownloadFailed", "ChecksumMismatch", "ConstructionFailed"):
        error_type = getattr(model_download, name)
        assert issubclass(error_type, model_download.AcquisitionError)
        assert issubclass(error_type, model_download.ModelDownloadError)
    assert not issubclass(model_download.UserConfigError, model_download.AcquisitionError)
