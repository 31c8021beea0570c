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
ExchangeEngine component for the authorization code flow with PKCE (RFC 7636).
"""

import secrets
from collections.abc import Sequence

import httpx
from authlib.oauth2.rfc7636 import create_s256_code_challenge
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
from pydantic import SecretStr, ValidationError

from coreason_indieauth.config import IndieAuthConfig
from coreason_indieauth.discovery import EndpointDiscoverer
from coreason_indieauth.exceptions import CannotClaimError, DecodeError, IndieAuthError, RequestError
from coreason_indieauth.models import Endpoints, Identity
from coreason_indieauth.models_internal import ExchangeResponse
from coreason_indieauth.transport import fetch
from coreason_indieauth.utils.logger import logger

tracer = trace.get_tracer(__name__)

TOKEN_BYTES = 32

_PROFILE_ONLY_SCOPES = (
    frozenset(),
    frozenset({"profile"}),
    frozenset({"profile", "email"}),
)


def generate_token() -> str:
    """
    Returns a new state or PKCE verifier: 32 bytes from the OS CSPRNG, base64url encoded without padding.
    """
    return secrets.token_urlsafe(TOKEN_BYTES)


def create_code_challenge(verifier: str) -> str:
    """
    Computes the S256 code challenge: base64url(SHA256(verifier)) without padding.
    """
    return create_s256_code_challenge(verifier)


def is_profile_only(scopes: Sequence[str]) -> bool:
    """
    True when the requested scopes only identify the user, in which case the code is
    redeemed at the authorization endpoint and no access token is issued.

    Profile-only sets are: no scopes, exactly "profile", or exactly "profile" and "email".
    """
    unique = frozenset(scopes)
    return len(unique) == len(scopes) and unique in _PROFILE_ONLY_SCOPES


def build_authorization_url(endpoints: Endpoints, config: IndieAuthConfig, state: str, verifier: str, me: str) -> str:
    """
    Builds the URL to redirect the user to for authorization.

    Parameters are encoded in sorted order after any query the authorization
    endpoint already carries; a parameter it already carries is replaced in place.
    `me` and `scope` are only sent when non-empty.

    Args:
        endpoints: The discovered endpoints.
        config: The client configuration.
        state: The anti-CSRF state token.
        verifier: The PKCE verifier; only its S256 challenge is sent.
        me: The profile URL the user entered, may be empty.

    Returns:
        str: The authorization redirect URL.
    """
    params = {
        "response_type": "code",
        "client_id": config.client_id,
        "redirect_uri": config.redirect_url,
        "state": state,
        "code_challenge": create_code_challenge(verifier),
        "code_challenge_method": "S256",
    }
    if me:
        params["me"] = me
    if config.scopes:
        params["scope"] = " ".join(config.scopes)

    url = httpx.URL(endpoints.authorization).copy_with(fragment=None)
    return str(url.copy_merge_params(dict(sorted(params.items()))))


def _canonical(url: str) -> str:
    return str(httpx.URL(url))


class ExchangeEngine:
    """
    Redeems authorization codes and verifies the returned identity.

    Attributes:
        config (IndieAuthConfig): The client configuration.
        client (httpx.AsyncClient): The client used for the exchange request.
        discoverer (EndpointDiscoverer): Used to re-verify the returned profile URL.
    """

    def __init__(
        self,
        config: IndieAuthConfig,
        client: httpx.AsyncClient,
        discoverer: EndpointDiscoverer | None = None,
    ) -> None:
        self.config = config
        self.client = client
        self.discoverer = discoverer or EndpointDiscoverer(client, max_response_bytes=config.max_response_bytes)

    async def exchange(self, endpoints: Endpoints, verifier: str, code: str) -> Identity:
        """
        Converts an authorization code into an Identity.

        Emits an OpenTelemetry span `indieauth.exchange`.

        Profile-only scope sets redeem the code at the authorization endpoint,
        anything else at the token endpoint. The returned `me` is then rediscovered and
        must declare the same authorization endpoint that was used, otherwise nothing
        is returned.

        Args:
            endpoints: The endpoints used to start the flow.
            verifier: The PKCE verifier matching the challenge that was sent.
            code: The authorization code from the callback.

        Returns:
            Identity: The verified identity.

        Raises:
            ValueError: If scopes were requested but `endpoints` has no token endpoint.
            TransportError: If an endpoint cannot be reached.
            RequestError: If the endpoint does not answer 200 with JSON.
            DecodeError: If the response body is malformed.
            CannotClaimError: If the returned `me` is governed by a different authorization endpoint.
        """
        profile_only = is_profile_only(self.config.scopes)
        target = endpoints.authorization if profile_only else endpoints.token
        if target is None:
            raise ValueError("A token endpoint is required when requesting scopes beyond profile/email.")

        with tracer.start_as_current_span("indieauth.exchange") as span:
            span.set_attribute("indieauth.endpoint", target)
            span.set_attribute("indieauth.profile_only", profile_only)
            try:
                data = await self._redeem(target, verifier, code)
                await self._verify_claim(endpoints, data.me)
            except IndieAuthError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

            span.set_attribute("indieauth.me", data.me)
            span.set_status(Status(StatusCode.OK))

        logger.info(f"Code exchange succeeded for {data.me}")
        return Identity(
            access_token=SecretStr(data.access_token or ""),
            token_type=data.token_type or "",
            scopes=(data.scope or "").split(),
            me=data.me,
            profile=data.profile,
        )

    async def _redeem(self, endpoint: str, verifier: str, code: str) -> ExchangeResponse:
        form = {
            "grant_type": "authorization_code",
            "code": code,
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_url,
            "code_verifier": verifier,
        }
        response = await fetch(
            self.client,
            endpoint,
            method="POST",
            max_bytes=self.config.max_response_bytes,
            data=form,
            headers={"Accept": "application/json"},
        )

        if response.status_code != 200 or response.media_type != "application/json":
            logger.warning(f"Code exchange at {endpoint} failed with {response.status_code} ({response.media_type})")
            raise RequestError(response.status_code, response.media_type, response.body)

        payload = response.json()
        if not isinstance(payload, dict):
            raise DecodeError(f"Exchange response from {endpoint} is not a JSON object")
        try:
            return ExchangeResponse.model_validate(payload)
        except ValidationError as e:
            raise DecodeError(f"Invalid exchange response from {endpoint}: {e}") from e

    async def _verify_claim(self, endpoints: Endpoints, me: str) -> None:
        rediscovered = await self.discoverer.discover(me)
        if _canonical(rediscovered.authorization) != _canonical(endpoints.authorization):
            logger.error(
                f"Claim rejected: {me} declares {rediscovered.authorization}, "
                f"but the flow used {endpoints.authorization}"
            )
            raise CannotClaimError()
