"""Testing utilities for exercising the model downloader without a network.

Provides an in-memory fake of the model index (directory listing, artifacts,
and ``.sha512`` sidecars) served through :class:`httpx.MockTransport`, plus a
context manager that installs a mock-backed client as the shared HTTP client.
"""

from __future__ import annotations

import contextlib
import hashlib
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Union

import httpx

from .net import configure_http_client, event_hooks, reset_http_client
from .settings import DownloadConfiguration

__all__ = [
    "ResponseSpec",
    "RequestRecord",
    "FakeModelIndex",
    "render_index_page",
    "use_mock_http_client",
]


@contextlib.contextmanager
def use_mock_http_client(
    transport: httpx.BaseTransport,
    *,
    default_config: Optional[DownloadConfiguration] = None,
    **client_kwargs,
) -> Iterator[httpx.Client]:
    """Temporarily install an HTTPX client backed by ``transport``."""

    client_kwargs.setdefault("event_hooks", event_hooks())
    client = httpx.Client(transport=transport, **client_kwargs)
    configure_http_client(client=client, default_config=default_config)
    try:
        yield client
    finally:
        reset_http_client()
        client.close()


@dataclass
class ResponseSpec:
    """HTTP response served by :class:`FakeModelIndex`."""

    status: int = 200
    body: Union[bytes, str] = b""
    headers: Mapping[str, str] = field(default_factory=dict)
    error: Optional[Exception] = None

    def serialise_body(self) -> bytes:
        if isinstance(self.body, bytes):
            return self.body
        return self.body.encode("utf-8")


@dataclass
class RequestRecord:
    """Captured HTTP request issued by the downloader during tests."""

    method: str
    url: str
    headers: Dict[str, str]
    timeout: Dict[str, Optional[float]] = field(default_factory=dict)


def render_index_page(links: Iterable[str], *, title: str = "Index of /models") -> str:
    """Render an Apache-style directory listing containing ``links``."""

    rows = "\n".join(
        f'<tr><td><a href="{link}">{link}</a></td><td align="right">2024-01-01 00:00</td></tr>'
        for link in links
    )
    return (
        f"<!DOCTYPE HTML PUBLIC \"-//W3C//DTD HTML 3.2 Final//EN\">\n<html>\n"
        f"<head><title>{title}</title></head>\n<body>\n<h1>{title}</h1>\n<table>\n"
        f'<tr><th><a href="?C=N;O=D">Name</a></th></tr>\n'
        f'<tr><td><a href="/opennlp/">Parent Directory</a></td></tr>\n'
        f"{rows}\n</table>\n</body></html>\n"
    )


class FakeModelIndex:
    """In-memory model index that records every request it serves."""

    def __init__(self, base_url: str = "https://models.example.org/ud-models-1.1/") -> None:
        self.base_url = base_url if base_url.endswith("/") else base_url + "/"
        self.routes: Dict[str, ResponseSpec] = {}
        self.requests: List[RequestRecord] = []

    def url_for(self, name: str) -> str:
        return self.base_url + name

    def register(
        self,
        url: str,
        body: Union[bytes, str] = b"",
        *,
        status: int = 200,
        headers: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Serve ``body`` with ``status`` for GET requests to ``url``."""

        self.routes[url] = ResponseSpec(status=status, body=body, headers=dict(headers or {}))
        return url

    def register_error(self, url: str, error: Optional[Exception] = None) -> str:
        """Make requests to ``url`` fail at the transport level."""

        self.routes[url] = ResponseSpec(error=error or httpx.ConnectError("connection refused"))
        return url

    def register_index(self, links: Iterable[str]) -> str:
        """Serve a directory listing of ``links`` at :attr:`base_url`."""

        return self.register(
            self.base_url,
            render_index_page(links),
            headers={"Content-Type": "text/html;charset=UTF-8"},
        )

    def register_artifact(
        self,
        name: str,
        payload: bytes,
        *,
        digest: Optional[str] = None,
        sidecar: bool = True,
    ) -> str:
        """Serve ``payload`` at ``name`` plus a ``.sha512`` sidecar.

        The sidecar uses the ``<digest>  <filename>`` layout of ``sha512sum``;
        pass ``digest`` to publish a wrong value.
        """

        url = self.register(
            self.url_for(name),
            payload,
            headers={"Content-Type": "application/octet-stream"},
        )
        if sidecar:
            value = digest or hashlib.sha512(payload).hexdigest()
            self.register(url + ".sha512", f"{value}  {name}\n")
        return url

    def count(self, url: str, method: str = "GET") -> int:
        """Return how many ``method`` requests were made to ``url``."""

        return sum(1 for record in self.requests if record.url == url and record.method == method)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(
            RequestRecord(
                method=request.method,
                url=url,
                headers=dict(request.headers),
                timeout=dict(request.extensions.get("timeout") or {}),
            )
        )
        spec = self.routes.get(url)
        if spec is None:
            return httpx.Response(404, content=b"not found", request=request)
        if spec.error is not None:
            raise spec.error
        return httpx.Response(
            spec.status,
            content=spec.serialise_body(),
            headers=dict(spec.headers),
            request=request,
        )

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def client(self) -> httpx.Client:
        """Return a client wired to this index with the downloader's hooks."""

        return httpx.Client(transport=self.transport(), event_hooks=event_hooks())
