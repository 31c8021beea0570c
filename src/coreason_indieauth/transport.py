# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_indieauth

"""
HTTP plumbing shared by discovery and exchange.

Profile URLs are user supplied, so by default every outbound connection goes through
`SafeHTTPTransport`, which refuses internal destinations and pins DNS to stop rebinding.
"""

import ipaddress
import json
import socket
from dataclasses import dataclass
from typing import Any

import anyio
import httpx

from coreason_indieauth.exceptions import (
    DecodeError,
    InvalidInputError,
    OversizedResponseError,
    SecurityError,
    TransportError,
)
from coreason_indieauth.utils.logger import logger

DEFAULT_MAX_RESPONSE_BYTES = 1_000_000


class SafeHTTPTransport(httpx.AsyncHTTPTransport):
    """
    An HTTP transport that enforces DNS pinning to prevent SSRF/DNS rebinding.

    The hostname is resolved once, the first public address is selected, and the request
    is sent to that address while the original Host header and SNI name are preserved.
    """

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        hostname = request.url.host

        try:
            literal = ipaddress.ip_address(hostname)
        except ValueError:
            literal = None
        if literal is not None:
            self._validate_ip(literal, hostname)
            return await super().handle_async_request(request)

        try:
            addr_infos = await anyio.to_thread.run_sync(socket.getaddrinfo, hostname, None, 0, socket.SOCK_STREAM)
        except socket.gaierror as e:
            logger.error(f"DNS resolution failed for {hostname}: {e}")
            raise SecurityError(f"DNS resolution failed for {hostname}") from e

        target_ip: str | None = None
        for _, _, _, _, sockaddr in addr_infos:
            try:
                self._validate_ip(ipaddress.ip_address(sockaddr[0]), hostname)
            except (SecurityError, ValueError):
                continue
            target_ip = str(sockaddr[0])
            break

        if target_ip is None:
            logger.error(f"Security violation: No valid public IP found for {hostname}")
            raise SecurityError(f"Security violation: No valid public IP found for {hostname}")

        request.extensions["sni_hostname"] = hostname
        if "Host" not in request.headers:
            request.headers["Host"] = request.url.netloc.decode("ascii")
        request.url = request.url.copy_with(host=target_ip)

        logger.debug(f"DNS Pinned: {hostname} -> {target_ip}")
        return await super().handle_async_request(request)

    def _validate_ip(self, ip_obj: ipaddress.IPv4Address | ipaddress.IPv6Address, hostname: str) -> None:
        if (
            ip_obj.is_private
            or ip_obj.is_loopback
            or ip_obj.is_link_local
            or ip_obj.is_reserved
            or ip_obj.is_multicast
        ):
            logger.warning(f"Security violation: Blocked access to {hostname} ({ip_obj})")
            raise SecurityError(f"Access to {hostname} ({ip_obj}) is blocked")


@dataclass(frozen=True)
class FetchedResponse:
    """
    A fully read HTTP response.

    Attributes:
        url (str): The final URL after redirects.
        status_code (int): The HTTP status.
        headers (httpx.Headers): Response headers, with repeated fields preserved.
        body (bytes): The response body.
    """

    url: str
    status_code: int
    headers: httpx.Headers
    body: bytes

    @property
    def media_type(self) -> str:
        """The Content-Type without parameters, lower-cased."""
        return self.headers.get("Content-Type", "").split(";", 1)[0].strip().lower()

    @property
    def charset(self) -> str | None:
        """The charset parameter of the Content-Type, if declared."""
        for param in self.headers.get("Content-Type", "").split(";")[1:]:
            key, _, value = param.partition("=")
            if key.strip().lower() == "charset":
                return value.strip().strip('"') or None
        return None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        """
        Decodes the body as JSON.

        Raises:
            DecodeError: If the body is not valid JSON.
        """
        try:
            return json.loads(self.body)
        except ValueError as e:
            raise DecodeError(f"Invalid JSON from {self.url}: {e}") from e


async def fetch(
    client: httpx.AsyncClient,
    url: str,
    method: str = "GET",
    max_bytes: int = DEFAULT_MAX_RESPONSE_BYTES,
    **kwargs: Any,
) -> FetchedResponse:
    """
    Performs a request and reads the body with a size cap.

    Redirects are followed. No status checking is done here; callers decide what an
    acceptable response is.

    Args:
        client: The async HTTP client to use.
        url: The URL to request.
        method: The HTTP method. Defaults to GET.
        max_bytes: Maximum body size accepted.
        **kwargs: Passed through to `httpx.AsyncClient.stream` (data, headers, ...).

    Returns:
        FetchedResponse: The response with its body fully read.

    Raises:
        InvalidInputError: If the URL cannot be used for a request.
        TransportError: If the endpoint cannot be reached.
        OversizedResponseError: If the body exceeds `max_bytes`.
    """
    try:
        async with client.stream(method, url, follow_redirects=True, **kwargs) as response:
            content_length = response.headers.get("Content-Length")
            if content_length and content_length.isdigit() and int(content_length) > max_bytes:
                raise OversizedResponseError(f"Response from {url} too large ({content_length} bytes)")

            body = bytearray()
            async for chunk in response.aiter_bytes():
                body.extend(chunk)
                if len(body) > max_bytes:
                    raise OversizedResponseError(f"Response from {url} too large")

            return FetchedResponse(
                url=str(response.url),
                status_code=response.status_code,
                headers=response.headers,
                body=bytes(body),
            )
    except httpx.InvalidURL as e:
        raise InvalidInputError(f"Invalid URL {url!r}: {e}") from e
    except httpx.RequestError as e:
        logger.warning(f"{method} {url} failed: {e!r}")
        raise TransportError(f"Failed to reach {url}: {e}") from e
