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
Configuration for the coreason-indieauth package.
"""

from typing import Annotated, Any

import httpx
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class IndieAuthConfig(BaseSettings):
    """
    Client configuration for IndieAuth sign-in flows.

    Attributes:
        client_id (str): The client identifier URL presented to authorization endpoints.
        redirect_url (str): The callback URL the authorization endpoint redirects back to.
        scopes (list[str]): Requested scopes, in order. Empty means authentication only.
        http_timeout (float): Timeout in seconds for the internally created HTTP client.
        max_response_bytes (int): Upper bound on any fetched response body.
        unsafe_local_dev (bool): Allow plain HTTP client URLs and private network destinations.
    """

    model_config = SettingsConfigDict(
        env_prefix="COREASON_INDIEAUTH_",
        case_sensitive=False,
        frozen=True,
    )

    client_id: str
    redirect_url: str
    scopes: Annotated[list[str], NoDecode] = Field(default_factory=list)
    http_timeout: float = Field(default=10.0, gt=0, description="Timeout in seconds for IndieAuth network operations.")
    max_response_bytes: int = Field(default=1_000_000, gt=0)
    unsafe_local_dev: bool = False

    @field_validator("scopes", mode="before")
    @classmethod
    def split_scopes(cls, v: Any) -> list[str]:
        """
        Accepts either a list of scopes or a single space-separated string,
        dropping blanks and duplicates while keeping the original order.
        """
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split()
        scopes: list[str] = []
        for item in v:
            scope = str(item).strip()
            if scope and scope not in scopes:
                scopes.append(scope)
        return scopes

    @field_validator("client_id", "redirect_url")
    @classmethod
    def validate_absolute_url(cls, v: str) -> str:
        """
        Ensures the value is an absolute http(s) URL.

        Raises:
            ValueError: If the scheme or host is missing.
        """
        v = v.strip()
        try:
            url = httpx.URL(v)
        except httpx.InvalidURL as e:
            raise ValueError(f"'{v}' must be an absolute http(s) URL") from e
        if url.scheme not in ("http", "https") or not url.host:
            raise ValueError(f"'{v}' must be an absolute http(s) URL")
        return v

    @model_validator(mode="after")
    def validate_https(self) -> "IndieAuthConfig":
        """
        Ensures that client URLs use HTTPS, unless strictly opted out for local dev.
        """
        if self.unsafe_local_dev:
            return self
        for name in ("client_id", "redirect_url"):
            if getattr(self, name).startswith("http://"):
                raise ValueError(
                    f"HTTPS is required for {name} in production. Set 'unsafe_local_dev=True' only for local testing."
                )
        return self
