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
Custom exceptions for the coreason-indieauth package.
"""


class IndieAuthError(Exception):
    """Base exception for all coreason-indieauth errors."""


class InvalidInputError(IndieAuthError):
    """Raised when a caller-supplied value (profile URL, callback parameter) is unusable."""


class TransportError(IndieAuthError):
    """Raised when an endpoint cannot be reached (DNS, connect, read failures)."""


class SecurityError(TransportError):
    """Raised when the SSRF guard refuses to connect to a destination."""


class RequestError(IndieAuthError):
    """
    Raised when a fetched endpoint answers with an unexpected status or media type.

    Attributes:
        status_code (int): The HTTP status of the response.
        media_type (str): The response media type, without parameters.
        body (bytes): The raw response body, kept for diagnostics.
    """

    def __init__(self, status_code: int, media_type: str = "", body: bytes = b"") -> None:
        super().__init__(f"received a {status_code} ({media_type}) response")
        self.status_code = status_code
        self.media_type = media_type
        self.body = body


class DecodeError(IndieAuthError):
    """Raised when a JSON document is malformed or has the wrong shape."""


class OversizedResponseError(IndieAuthError):
    """Raised when an HTTP response is too large."""


class AuthorizationEndpointMissingError(IndieAuthError):
    """Raised when no authorization endpoint could be found for a profile URL."""

    def __init__(self, message: str = "no authorization endpoint found") -> None:
        super().__init__(message)


class AuthorizationDeniedError(IndieAuthError):
    """
    Raised when the authorization endpoint redirects back with an OAuth error.

    Attributes:
        error (str): The `error` code sent to the callback.
        error_description (str | None): Optional human readable description.
    """

    def __init__(self, error: str, error_description: str | None = None) -> None:
        message = f"authorization failed: {error}"
        if error_description:
            message = f"{message} ({error_description})"
        super().__init__(message)
        self.error = error
        self.error_description = error_description


class ProtocolViolationError(IndieAuthError):
    """
    Base class for security-relevant rejections.
    These are never transient and must not be retried blindly.
    """


class CannotClaimError(ProtocolViolationError):
    """Raised when the returned 'me' does not declare the authorization endpoint that was engaged."""

    def __init__(self, message: str = "me returned with non-matching authorization endpoint") -> None:
        super().__init__(message)


class StateMismatchError(ProtocolViolationError):
    """Raised when the callback state is missing or differs from the stored value."""

    def __init__(self, message: str = "unexpected state") -> None:
        super().__init__(message)
