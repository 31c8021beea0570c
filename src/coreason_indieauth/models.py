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
Data models for the coreason-indieauth package.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_serializer


class Endpoints(BaseModel):
    """
    The endpoints a profile URL declares.

    Attributes:
        authorization (str): Absolute URL of the authorization endpoint.
        token (str | None): Absolute URL of the token endpoint, absent for profile-only use.
    """

    model_config = ConfigDict(frozen=True)

    authorization: str
    token: str | None = None


class FlowState(BaseModel):
    """
    Transient state bridging the sign-in redirect and its callback.

    Created by `begin_sign_in`, consumed (and discarded) by `complete_sign_in`.
    """

    model_config = ConfigDict(frozen=True)

    state: str
    verifier: str
    endpoints: Endpoints
    me: str = ""

    def __repr__(self) -> str:
        return f"FlowState(state='<REDACTED>', verifier='<REDACTED>', endpoints={self.endpoints!r}, me={self.me!r})"

    def __str__(self) -> str:
        return self.__repr__()


class Identity(BaseModel):
    """
    The authenticated result of a completed sign-in.

    Profile-only flows leave `access_token`, `token_type` and `scopes` empty.
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "me": "https://alice.example.com/",
                "token_type": "Bearer",
                "scopes": ["create", "update"],
                "profile": {"name": "Alice"},
            }
        },
    )

    access_token: SecretStr = Field(default=SecretStr(""), description="Protected from logging.")
    token_type: str = ""
    scopes: list[str] = Field(default_factory=list)
    me: str = Field(..., description="The verified profile URL.", examples=["https://alice.example.com/"])
    profile: dict[str, Any] | None = None

    @field_serializer("access_token", when_used="json")
    def dump_access_token(self, v: SecretStr) -> str:
        # Session payloads must round-trip the token; reprs stay redacted.
        return v.get_secret_value()

    def has_scope(self, scope: str) -> bool:
        """Returns True if the identity was issued with `scope`."""
        return scope in self.scopes


class SessionData(BaseModel):
    """
    Document persisted in the session store. At most one of `flow` and `identity` is set.
    """

    model_config = ConfigDict(frozen=True)

    flow: FlowState | None = None
    identity: Identity | None = None
