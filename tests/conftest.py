# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_indieauth

import socket
from collections.abc import Callable, Generator, Iterable
from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest

from coreason_indieauth.async_context import clear_current_identity
from coreason_indieauth.config import IndieAuthConfig

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture(autouse=True)
def reset_identity_context() -> Generator[None, None, None]:
    """Tests run in one thread; drop any identity a previous test bound."""
    clear_current_identity()
    yield
    clear_current_identity()


@pytest.fixture(autouse=True)
def mock_dns_resolution() -> Generator[MagicMock, None, None]:
    """
    Globally patches socket.getaddrinfo to return a safe public IP by default,
    so no test ever performs a real DNS lookup.

    Tests that need to verify SSRF logic should configure this mock's return value.
    """
    safe_response = [(socket.AF_INET, socket.SOCK_STREAM, 6, "", ("8.8.8.8", 443))]

    with patch("socket.getaddrinfo", return_value=safe_response) as mock:
        yield mock


def _route_key(url: str | httpx.URL) -> str:
    url = httpx.URL(url)
    return f"{url.scheme}://{url.netloc.decode('ascii')}{url.path}"


class MockWeb:
    """
    A tiny in-memory web: routes absolute URLs (query ignored) to handlers and
    records every request it sees.
    """

    def __init__(self) -> None:
        self.routes: dict[str, Handler] = {}
        self.requests: list[httpx.Request] = []

    def route(self, url: str, handler: Handler) -> None:
        self.routes[_route_key(url)] = handler

    def html(self, url: str, body: str, links: Iterable[str] = (), status: int = 200) -> None:
        headers = [("Content-Type", "text/html; charset=utf-8")] + [("Link", link) for link in links]
        self.route(url, lambda request: httpx.Response(status, headers=headers, text=body))

    def json(self, url: str, payload: Any, status: int = 200, content_type: str = "application/json") -> None:
        self.route(
            url,
            lambda request: httpx.Response(status, headers={"Content-Type": content_type}, json=payload),
        )

    def requests_to(self, url: str) -> list[httpx.Request]:
        return [request for request in self.requests if _route_key(request.url) == _route_key(url)]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get(_route_key(request.url))
        if handler is None:
            return httpx.Response(404, headers={"Content-Type": "text/plain"}, text="not found")
        return handler(request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


def _profile_page(authorization: str | None = None, token: str | None = None, extra: str = "") -> str:
    links = []
    if authorization is not None:
        links.append(f'<link rel="authorization_endpoint" href="{authorization}" />')
    if token is not None:
        links.append(f'<link rel="token_endpoint" href="{token}" />')
    return "<html>\n<head>\n" + "\n".join(links) + extra + "\n</head>\n<body></body>\n</html>\n"


@pytest.fixture
def web() -> MockWeb:
    return MockWeb()


@pytest.fixture
def client(web: MockWeb) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=web.transport())


@pytest.fixture
def config() -> IndieAuthConfig:
    return IndieAuthConfig(
        client_id="http://localhost",
        redirect_url="http://localhost/callback",
        scopes=["create", "update", "delete"],
        unsafe_local_dev=True,
    )


@pytest.fixture
def profile_config() -> IndieAuthConfig:
    return IndieAuthConfig(
        client_id="http://localhost",
        redirect_url="http://localhost/callback",
        scopes=["profile"],
        unsafe_local_dev=True,
    )


@pytest.fixture
def profile_page() -> Callable[..., str]:
    """Returns a builder for profile HTML declaring the given endpoints."""
    return _profile_page
