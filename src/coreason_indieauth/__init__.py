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
IndieAuth client: endpoint discovery, PKCE code exchange and sign-in session correlation.
"""

__version__ = "0.1.0"
__author__ = "Gowtham A Rao"
__email__ = "gowtham.rao@coreason.ai"

from .async_context import get_current_identity, identity_scope
from .config import IndieAuthConfig
from .discovery import EndpointDiscoverer
from .exceptions import (
    AuthorizationDeniedError,
    AuthorizationEndpointMissingError,
    CannotClaimError,
    DecodeError,
    IndieAuthError,
    InvalidInputError,
    ProtocolViolationError,
    RequestError,
    StateMismatchError,
    TransportError,
)
from .exchange import ExchangeEngine, build_authorization_url
from .manager import IndieAuthManager, IndieAuthManagerAsync
from .models import Endpoints, Identity
from .sessions import MemorySessionStore, SessionStoreProtocol, SignedSessionStore

__all__ = [
    "AuthorizationDeniedError",
    "AuthorizationEndpointMissingError",
    "CannotClaimError",
    "DecodeError",
    "EndpointDiscoverer",
    "Endpoints",
    "ExchangeEngine",
    "Identity",
    "IndieAuthConfig",
    "IndieAuthError",
    "IndieAuthManager",
    "IndieAuthManagerAsync",
    "InvalidInputError",
    "MemorySessionStore",
    "ProtocolViolationError",
    "RequestError",
    "SessionStoreProtocol",
    "SignedSessionStore",
    "StateMismatchError",
    "TransportError",
    "build_authorization_url",
    "get_current_identity",
    "identity_scope",
]
