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
Request-scoped access to the signed-in Identity.

The managers bind the identity they resolve (`complete_sign_in`, `current_identity`)
and unbind it on `sign_out`, so code further down a request can call
`get_current_identity()` without threading the session key through.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

from coreason_indieauth.models import Identity

_identity: ContextVar[Identity | None] = ContextVar("indieauth_identity", default=None)


def get_current_identity() -> Identity | None:
    """Returns the identity bound to the running request or task, if any."""
    return _identity.get()


def bind_identity(identity: Identity | None) -> Token[Identity | None]:
    """
    Binds `identity` (or None) to the current context.

    Returns:
        Token: Pass to `reset_identity` to restore the previous binding.
    """
    return _identity.set(identity)


def reset_identity(token: Token[Identity | None]) -> None:
    _identity.reset(token)


def clear_current_identity() -> None:
    _identity.set(None)


@contextmanager
def identity_scope(identity: Identity | None) -> Iterator[Identity | None]:
    """
    Binds `identity` for the duration of a block, e.g. one request handled by a worker thread.

    The previous binding is restored on exit, even if the block raises.
    """
    token = bind_identity(identity)
    try:
        yield identity
    finally:
        reset_identity(token)
