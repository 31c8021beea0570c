# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_indieauth

import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from coreason_indieauth.config import IndieAuthConfig


def test_config_loading() -> None:
    """Test loading configuration from environment variables."""
    with patch.dict(
        os.environ,
        {
            "COREASON_INDIEAUTH_CLIENT_ID": "https://app.example/",
            "COREASON_INDIEAUTH_REDIRECT_URL": "https://app.example/callback",
            "COREASON_INDIEAUTH_SCOPES": "create  update create",
            "COREASON_INDIEAUTH_HTTP_TIMEOUT": "2.5",
        },
    ):
        config = IndieAuthConfig()

    assert config.client_id == "https://app.example/"
    assert config.redirect_url == "https://app.example/callback"
    assert config.scopes == ["create", "update"]
    assert config.http_timeout == 2.5
    assert config.max_response_bytes == 1_000_000
    assert config.unsafe_local_dev is False


def test_config_case_insensitive() -> None:
    with patch.dict(
        os.environ,
        {
            "coreason_indieauth_client_id": "https://app.example/",
            "COREASON_INDIEAUTH_REDIRECT_URL": "https://app.example/cb",
        },
    ):
        config = IndieAuthConfig()

    assert config.client_id == "https://app.example/"
    assert config.scopes == []


def test_scopes_from_list() -> None:
    config = IndieAuthConfig(
        client_id="https://app.example/",
        redirect_url="https://app.example/cb",
        scopes=[" profile ", "email", "", "profile"],
    )
    assert config.scopes == ["profile", "email"]


def test_required_fields() -> None:
    with pytest.raises(ValidationError) as exc:
        IndieAuthConfig(client_id="https://app.example/")  # type: ignore[call-arg]
    assert "redirect_url" in str(exc.value)


@pytest.mark.parametrize("url", ["app.example", "/callback", "ftp://app.example/", "https://", "https://app.example/\x00"])
def test_urls_must_be_absolute(url: str) -> None:
    with pytest.raises(ValidationError, match="absolute http"):
        IndieAuthConfig(client_id=url, redirect_url="https://app.example/cb")


def test_https_enforcement() -> None:
    """Test that plain HTTP client URLs are rejected by default."""
    with pytest.raises(ValidationError) as exc:
        IndieAuthConfig(client_id="http://app.example/", redirect_url="https://app.example/cb")
    assert "HTTPS is required for client_id" in str(exc.value)

    with pytest.raises(ValidationError) as exc:
        IndieAuthConfig(client_id="https://app.example/", redirect_url="http://app.example/cb")
    assert "HTTPS is required for redirect_url" in str(exc.value)


def test_https_override() -> None:
    """Test that HTTP URLs are accepted with unsafe_local_dev=True."""
    config = IndieAuthConfig(
        client_id="http://localhost:8080/",
        redirect_url="http://localhost:8080/callback",
        unsafe_local_dev=True,
    )
    assert config.client_id == "http://localhost:8080/"


@pytest.mark.parametrize(("field", "value"), [("http_timeout", 0), ("max_response_bytes", -1)])
def test_positive_limits(field: str, value: float) -> None:
    with pytest.raises(ValidationError):
        IndieAuthConfig(client_id="https://app.example/", redirect_url="https://app.example/cb", **{field: value})


def test_config_is_frozen() -> None:
    config = IndieAuthConfig(client_id="https://app.example/", redirect_url="https://app.example/cb")
    with pytest.raises(ValidationError):
        config.client_id = "https://evil.example/"  # type: ignore[misc]
