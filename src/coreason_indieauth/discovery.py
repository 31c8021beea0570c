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
EndpointDiscoverer component for finding the authorization and token endpoints of a profile URL.
"""

import httpx
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import ValidationError

from coreason_indieauth.exceptions import (
    AuthorizationEndpointMissingError,
    DecodeError,
    IndieAuthError,
    InvalidInputError,
    RequestError,
)
from coreason_indieauth.links import build_link_set
from coreason_indieauth.models import Endpoints
from coreason_indieauth.models_internal import IndieAuthMetadata
from coreason_indieauth.transport import DEFAULT_MAX_RESPONSE_BYTES, fetch
from coreason_indieauth.utils.logger import logger

tracer = trace.get_tracer(__name__)

METADATA_REL = "indieauth-metadata"
AUTHORIZATION_REL = "authorization_endpoint"
TOKEN_REL = "token_endpoint"


def parse_profile_url(me: str) -> httpx.URL:
    """
    Parses a user supplied profile URL.

    Args:
        me: The profile URL.

    Returns:
        httpx.URL: The parsed URL.

    Raises:
        InvalidInputError: If `me` is not an absolute http(s) URL with a host.
    """
    try:
        url = httpx.URL(me.strip())
    except (httpx.InvalidURL, TypeError, AttributeError) as e:
        raise InvalidInputError(f"Invalid profile URL {me!r}: {e}") from e

    if url.scheme not in ("http", "https") or not url.host:
        raise InvalidInputError(f"Profile URL {me!r} must be an absolute http(s) URL")
    return url


def resolve_reference(base: httpx.URL, reference: str) -> str:
    """
    Resolves a possibly relative reference against `base` and returns its canonical string.

    Raises:
        InvalidInputError: If the reference cannot be parsed.
    """
    try:
        return str(base.join(reference))
    except httpx.InvalidURL as e:
        raise InvalidInputError(f"Cannot resolve {reference!r} against {base}: {e}") from e


class EndpointDiscoverer:
    """
    Discovers the IndieAuth endpoints a profile URL declares.

    Attributes:
        client (httpx.AsyncClient): The client used for all fetches.
        max_response_bytes (int): Size cap for fetched documents.
    """

    def __init__(self, client: httpx.AsyncClient, max_response_bytes: int = DEFAULT_MAX_RESPONSE_BYTES) -> None:
        """
        Initialize the EndpointDiscoverer.

        Args:
            client: The async HTTP client to use for requests. Timeouts and pooling are its concern.
            max_response_bytes: Size cap for fetched documents. Defaults to 1MB.
        """
        self.client = client
        self.max_response_bytes = max_response_bytes

    async def discover(self, me: str) -> Endpoints:
        """
        Retrieves the authorization and token endpoints declared for `me`.

        Emits an OpenTelemetry span `indieauth.discover`.

        An `indieauth-metadata` link takes priority over directly declared endpoints and
        there is no fallback when following it fails.

        Args:
            me: The profile URL.

        Returns:
            Endpoints: The discovered endpoints. `token` may be None.

        Raises:
            InvalidInputError: If `me` is not a usable URL.
            TransportError: If the profile or metadata document cannot be fetched.
            RequestError: If a fetched document answers with a bad status.
            DecodeError: If the metadata document is not a JSON object of strings.
            AuthorizationEndpointMissingError: If no authorization endpoint is declared.
        """
        with tracer.start_as_current_span("indieauth.discover") as span:
            span.set_attribute("indieauth.me", me)
            try:
                endpoints = await self._discover(me)
            except IndieAuthError as e:
                logger.warning(f"Endpoint discovery failed for {me}: {e}")
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

            span.set_attribute("indieauth.authorization_endpoint", endpoints.authorization)
            span.set_status(Status(StatusCode.OK))
            logger.debug(f"Discovered endpoints for {me}: {endpoints.authorization}, {endpoints.token}")
            return endpoints

    async def _discover(self, me: str) -> Endpoints:
        me_url = parse_profile_url(me)

        response = await fetch(self.client, str(me_url), max_bytes=self.max_response_bytes)
        if not response.is_success:
            raise RequestError(response.status_code, response.media_type, response.body)

        links = build_link_set(
            response.headers.get_list("Link"),
            response.body,
            response.media_type,
            response.charset,
        )

        metadata_href = links.first(METADATA_REL)
        if metadata_href is not None:
            return await self._discover_by_metadata(resolve_reference(me_url, metadata_href))

        authorization = links.first(AUTHORIZATION_REL)
        if authorization is None:
            raise AuthorizationEndpointMissingError()

        token = links.first(TOKEN_REL)
        return Endpoints(
            authorization=resolve_reference(me_url, authorization),
            token=resolve_reference(me_url, token) if token is not None else None,
        )

    async def _discover_by_metadata(self, metadata_url: str) -> Endpoints:
        """
        Reads the endpoints from an authorization server metadata document.
        Values are resolved against the metadata URL, so relative references are tolerated.
        """
        logger.debug(f"Following {METADATA_REL} link to {metadata_url}")

        response = await fetch(
            self.client,
            metadata_url,
            max_bytes=self.max_response_bytes,
            headers={"Accept": "application/json"},
        )
        if response.status_code != 200:
            raise RequestError(response.status_code, response.media_type, response.body)

        data = response.json()
        if not isinstance(data, dict):
            raise DecodeError(f"Metadata document at {metadata_url} is not a JSON object")

        try:
            metadata = IndieAuthMetadata.model_validate(data)
        except ValidationError as e:
            raise DecodeError(f"Invalid metadata document at {metadata_url}: {e}") from e

        if not metadata.authorization_endpoint:
            raise AuthorizationEndpointMissingError()

        base = httpx.URL(metadata_url)
        return Endpoints(
            authorization=resolve_reference(base, metadata.authorization_endpoint),
            token=resolve_reference(base, metadata.token_endpoint) if metadata.token_endpoint else None,
        )
