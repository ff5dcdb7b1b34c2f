"""Shared HTTP client wiring and request hooks."""

from __future__ import annotations

import logging

import httpx
import pytest

from ModelZoo.ModelDownload import net
from ModelZoo.ModelDownload.settings import DownloadConfiguration
from ModelZoo.ModelDownload.testing import FakeModelIndex, use_mock_http_client


def test_shared_client_is_reused() -> None:
    first = net.get_http_client()

    assert net.get_http_client() is first
    net.reset_http_client()
    assert net.get_http_client() is not first


def test_shared_client_honours_timeouts_and_redirects() -> None:
    config = DownloadConfiguration(timeout_sec=12, connect_timeout_sec=3, follow_redirects=False)

    client = net.get_http_client(config)

    assert client.timeout.read == 12
    assert client.timeout.connect == 3
    assert client.follow_redirects is False


def test_requests_carry_the_downloader_user_agent(fake_index: FakeModelIndex) -> None:
    with use_mock_http_client(fake_index.transport()) as client:
        client.get(fake_index.base_url)

    agent = fake_index.requests[0].headers["user-agent"]
    assert agent.startswith("modelfetch/")


def test_caller_user_agent_is_kept(fake_index: FakeModelIndex) -> None:
    with use_mock_http_client(fake_index.transport()) as client:
        client.get(fake_index.base_url, headers={"User-Agent": "custom/1.0"})

    assert fake_index.requests[0].headers["user-agent"] == "custom/1.0"


def test_configured_user_agent_is_used(fake_index: FakeModelIndex) -> None:
    config = DownloadConfiguration(user_agent="mirror-bot/2")

    with use_mock_http_client(fake_index.transport(), default_config=config) as client:
        client.get(fake_index.base_url)

    assert fake_index.requests[0].headers["user-agent"] == "mirror-bot/2"


def test_response_hook_raises_for_error_status(fake_index: FakeModelIndex) -> None:
    with use_mock_http_client(fake_index.transport()) as client:
        with pytest.raises(httpx.HTTPStatusError):
            client.get(fake_index.url_for("missing.bin"))


def test_response_hook_logs_elapsed_time(
    fake_index: FakeModelIndex, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.DEBUG, logger="ModelZoo.ModelDownload.net"):
        with use_mock_http_client(fake_index.transport()) as client:
            client.get(fake_index.base_url)

    records = [r for r in caplog.records if r.message == "modelfetch-http-response"]
    assert records
    assert records[0].status == 200
    assert records[0].elapsed_sec is not None


def test_mock_client_is_uninstalled_on_exit(fake_index: FakeModelIndex) -> None:
    with use_mock_http_client(fake_index.transport()) as client:
        assert net.get_http_client() is client

    assert net.get_http_client() is not client


def test_request_options_override_shared_client_settings(fake_index: FakeModelIndex) -> None:
    config = DownloadConfiguration(user_agent="tuned/1", timeout_sec=4, follow_redirects=False)

    with use_mock_http_client(fake_index.transport()) as client:
        client.get(fake_index.base_url, **net.request_options(config))
        client.get(fake_index.base_url)

    tuned, plain = fake_index.requests
    assert tuned.headers["user-agent"] == "tuned/1"
    assert tuned.timeout["read"] == 4
    assert plain.headers["user-agent"].startswith("modelfetch/")
    assert plain.timeout["read"] != 4
