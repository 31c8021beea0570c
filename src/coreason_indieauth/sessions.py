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
Session storage used to correlate a sign-in redirect with its callback.
"""

from typing import Protocol

from cryptography.fernet import Fernet, InvalidToken
from pydantic import ValidationError

from coreason_indieauth.models import SessionData
from coreason_indieauth.utils.logger import logger


class SessionStoreProtocol(Protocol):
    """
    Protocol for a per-browser-session key/value store.

    Implementations are expected to make a single get or set atomic. Values are opaque bytes.
    """

    def get(self, session_key: str) -> bytes | None:
        """Returns the stored value, or None if nothing is stored."""
        ...

    def set(self, session_key: str, value: bytes) -> None:
        """Replaces the stored value."""
        ...

    def delete(self, session_key: str) -> None:
        """Removes the stored value. Deleting a missing key is not an error."""
        ...


class MemorySessionStore:
    """
    In-memory implementation of SessionStoreProtocol.
    Process local; not suitable for multi-worker deployments.
    """

    def __init__(self) -> None:
        self._data: dict[str, bytes] = {}

    def get(self, session_key: str) -> bytes | None:
        return self._data.get(session_key)

    def set(self, session_key: str, value: bytes) -> None:
        self._data[session_key] = value

    def delete(self, session_key: str) -> None:
        self._data.pop(session_key, None)

    def __len__(self) -> int:
        return len(self._data)


class SignedSessionStore:
    """
    Wraps another store so that values are encrypted and authenticated with Fernet.

    A value that fails verification (tampered, wrong key, or older than `max_age`)
    reads as absent.

    Attributes:
        inner (SessionStoreProtocol): The store holding the sealed values.
        max_age (int | None): Maximum accepted age in seconds, or None for no limit.
    """

    def __init__(self, inner: SessionStoreProtocol, secret: bytes | str, max_age: int | None = None) -> None:
        """
        Initialize the SignedSessionStore.

        Args:
            inner: The underlying store (cookie jar, cache, database...).
            secret: A url-safe base64 encoded 32-byte key, see `generate_secret`.
            max_age: Maximum accepted age of a value in seconds.

        Raises:
            ValueError: If the secret is not a valid Fernet key.
        """
        self.inner = inner
        self.max_age = max_age
        self._fernet = Fernet(secret)

    @staticmethod
    def generate_secret() -> bytes:
        """Returns a fresh key suitable for `secret`."""
        return Fernet.generate_key()

    def get(self, session_key: str) -> bytes | None:
        sealed = self.inner.get(session_key)
        if sealed is None:
            return None
        try:
            return self._fernet.decrypt(sealed, ttl=self.max_age)
        except InvalidToken:
            logger.warning("Discarding session value that failed signature verification")
            return None

    def set(self, session_key: str, value: bytes) -> None:
        self.inner.set(session_key, self._fernet.encrypt(value))

    def delete(self, session_key: str) -> None:
        self.inner.delete(session_key)


def load_session(store: SessionStoreProtocol, session_key: str) -> SessionData | None:
    """
    Reads and decodes the session document.

    Undecodable data (e.g. written by an incompatible version) is logged and treated as absent.
    """
    raw = store.get(session_key)
    if raw is None:
        return None
    try:
        return SessionData.model_validate_json(raw)
    except ValidationError as e:
        logger.warning(f"Discarding undecodable session data: {e.error_count()} validation error(s)")
        return None


def save_session(store: SessionStoreProtocol, session_key: str, data: SessionData) -> None:
    """Encodes and writes the session document, replacing any previous contents."""
    store.set(session_key, data.model_dump_json().encode("utf-8"))
