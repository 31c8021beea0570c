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
Internal data models for the coreason-indieauth package.
These are not exposed in the public API.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class IndieAuthMetadata(BaseModel):
    """
    Authorization server metadata referenced by an `indieauth-metadata` link.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    authorization_endpoint: StrictStr | None = Field(default=None, description="The authorization endpoint URL.")
    token_endpoint: StrictStr | None = Field(default=None, description="The token endpoint URL.")


class ExchangeResponse(BaseModel):
    """
    Body returned by the authorization or token endpoint when redeeming a code.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    me: StrictStr
    access_token: StrictStr | None = None
    token_type: StrictStr | None = None
    scope: StrictStr | None = None
    profile: dict[str, Any] | None = None
