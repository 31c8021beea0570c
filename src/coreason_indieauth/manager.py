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
IndieAuthManager component for orchestrating sign-in across the redirect round-trip.
"""

import hmac
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from typing import Any

import anyio
import httpx
from opentelemetry.instrumentation.httpx import HTTPXClientInstrumentor

from coreason_indieauth.async_context import bind_identity, clear_current_identity
from coreason_indieauth.config import IndieAuthConfig
from coreason_indieauth.discovery import EndpointDiscoverer
from coreason_indieauth.exceptions import AuthorizationDeniedError, InvalidInputError, StateMismatchError
from coreason_indieauth.exchange import ExchangeEngine, build_authorization_url, generate_token
from coreason_indieauth.models import FlowState, Identity, SessionData
from coreason_indieauth.sessions import SessionStoreProtocol, load_session, save_session
from coreason_indieauth.transport import SafeHTTPTransport
from coreason_indieauth.utils.logger import logger


def _current_identity(store: SessionStoreProtocol, session_key: str) -> Identity | None:
    data = load_session(store, session_key)
    if data is None or data.identity is None or not data.identity.me:
        return None
    return data.identity


class IndieAuthManagerAsync:
    """
    Async implementation of IndieAuthManager (The Core).
    Handles resources via async context manager.

    Each browser session is addressed by an opaque `session_key`. Between
    `begin_sign_in` and `complete_sign_in` the session holds a FlowState; after a
    successful callback it holds only the Identity. Starting a new sign-in replaces
    whatever the session held, so of two racing sign-ins only the latest can complete.
    """

    def __init__(
        self,
        config: IndieAuthConfig,
        store: SessionStoreProtocol,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the IndieAuthManagerAsync.

        Args:
            config: The client configuration.
            store: Session storage shared with the hosting application.
            client: External async client (optional). If not provided, a `SafeHTTPTransport`
                client is created (a plain one when `unsafe_local_dev` is set).
        """
        self.config = config
        self.store = store
        self._internal_client = client is None

        if client:
            self._client = client
        else:
            transport = httpx.AsyncHTTPTransport() if config.unsafe_local_dev else SafeHTTPTransport()
            self._client = httpx.AsyncClient(transport=transport, timeout=config.http_timeout)
            HTTPXClientInstrumentor().instrument_client(self._client)

        self.discoverer = EndpointDiscoverer(self._client, max_response_bytes=config.max_response_bytes)
        self.exchange_engine = ExchangeEngine(config, self._client, self.discoverer)

    async def __aenter__(self) -> "IndieAuthManagerAsync":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._internal_client:
            await self._client.aclose()

    async def begin_sign_in(self, session_key: str, me: str) -> str:
        """
        Starts a sign-in for the profile URL `me`.

        Discovers the endpoints, stores a fresh FlowState in the session and returns
        the URL the user agent should be redirected to.

        Args:
            session_key: The browser session identifier.
            me: The profile URL entered by the user. Surrounding whitespace is dropped.

        Returns:
            str: The authorization URL.

        Raises:
            IndieAuthError: Any discovery failure; nothing is stored in that case.
        """
        me = me.strip()
        endpoints = await self.discoverer.discover(me)

        flow = FlowState(state=generate_token(), verifier=generate_token(), endpoints=endpoints, me=me)
        save_session(self.store, session_key, SessionData(flow=flow))

        logger.info(f"Sign-in started for {me} via {endpoints.authorization}")
        return build_authorization_url(endpoints, self.config, flow.state, flow.verifier, me)

    async def complete_sign_in(self, session_key: str, params: Mapping[str, str]) -> Identity:
        """
        Completes a sign-in from the callback request parameters.

        The stored FlowState is consumed whatever the outcome; a failed callback
        leaves the session empty and cannot be retried with the same state.

        Args:
            session_key: The browser session identifier.
            params: The callback query/form parameters (`state`, `code`, optional `error`).

        Returns:
            Identity: The verified identity, also stored in the session and bound to the current context.

        Raises:
            StateMismatchError: If no sign-in is pending or the state differs. No exchange is attempted.
            AuthorizationDeniedError: If the authorization endpoint returned an error.
            InvalidInputError: If the callback carries no code.
            IndieAuthError: Any exchange or claim verification failure.
        """
        data = load_session(self.store, session_key)
        flow = data.flow if data is not None else None
        if flow is None:
            logger.warning("Rejecting callback: no sign-in in progress for this session")
            raise StateMismatchError()

        self.store.delete(session_key)

        received_state = params.get("state") or ""
        if not hmac.compare_digest(received_state.encode("utf-8"), flow.state.encode("utf-8")):
            logger.warning(f"Rejecting callback for {flow.me}: state mismatch")
            raise StateMismatchError()

        error = params.get("error")
        if error:
            logger.info(f"Authorization for {flow.me} failed: {error}")
            raise AuthorizationDeniedError(error, params.get("error_description"))

        code = params.get("code")
        if not code:
            raise InvalidInputError("Callback is missing the authorization code")

        identity = await self.exchange_engine.exchange(flow.endpoints, flow.verifier, code)
        save_session(self.store, session_key, SessionData(identity=identity))
        bind_identity(identity)

        logger.info(f"Signed in as {identity.me}")
        return identity

    def sign_out(self, session_key: str) -> None:
        """Removes everything stored for the session and unbinds the current identity."""
        self.store.delete(session_key)
        clear_current_identity()
        logger.debug("Session cleared")

    def current_identity(self, session_key: str) -> Identity | None:
        """
        Returns the signed-in identity, or None if the session holds no identity with a `me`.
        The result (None included) is bound to the current context.
        """
        identity = _current_identity(self.store, session_key)
        bind_identity(identity)
        return identity

    def is_signed_in_as(self, session_key: str, me: str) -> bool:
        """True only if the session is signed in with exactly the profile URL `me`."""
        identity = self.current_identity(session_key)
        return identity is not None and identity.me == me


class IndieAuthManager:
    """
    Sync facade for IndieAuthManagerAsync.

    Network operations run under `anyio.run`, with a fresh async manager (and HTTP client)
    per call, so the facade can be shared between threads of a WSGI server.
    """

    def __init__(
        self,
        config: IndieAuthConfig,
        store: SessionStoreProtocol,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the IndieAuthManager.

        Args:
            config: The client configuration.
            store: Session storage shared with the hosting application.
            transport: Optional transport for the per-call HTTP client (proxies, test doubles).
        """
        self.config = config
        self.store = store
        self._transport = transport

    @asynccontextmanager
    async def _open(self) -> AsyncIterator[IndieAuthManagerAsync]:
        if self._transport is None:
            async with IndieAuthManagerAsync(self.config, self.store) as manager:
                yield manager
            return

        async with httpx.AsyncClient(transport=self._transport, timeout=self.config.http_timeout) as client:
            async with IndieAuthManagerAsync(self.config, self.store, client=client) as manager:
                yield manager

    async def _begin_sign_in(self, session_key: str, me: str) -> str:
        async with self._open() as manager:
            return await manager.begin_sign_in(session_key, me)

    async def _complete_sign_in(self, session_key: str, params: Mapping[str, str]) -> Identity:
        async with self._open() as manager:
            return await manager.complete_sign_in(session_key, params)

    def begin_sign_in(self, session_key: str, me: str) -> str:
        """Blocking version of `IndieAuthManagerAsync.begin_sign_in`."""
        return anyio.run(self._begin_sign_in, session_key, me)

    def complete_sign_in(self, session_key: str, params: Mapping[str, str]) -> Identity:
        """Blocking version of `IndieAuthManagerAsync.complete_sign_in`."""
        identity = anyio.run(self._complete_sign_in, session_key, params)
        # The event loop ran in a copy of this context
        bind_identity(identity)
        return identity

    def sign_out(self, session_key: str) -> None:
        self.store.delete(session_key)
        clear_current_identity()

    def current_identity(self, session_key: str) -> Identity | None:
        identity = _current_identity(self.store, session_key)
        bind_identity(identity)
        return identity

    def is_signed_in_as(self, session_key: str, me: str) -> bool:
        identity = self.current_identity(session_key)
        return identity is not None and identity.me == me
