"""
OAuth sign-in schemas.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from cardchat.models.api_models import UserInfo


class LoginUrlResponse(BaseModel):
    """Where to send the browser to start the provider sign-in."""

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "provider": "github",
                "authorization_url": "https://github.com/login/oauth/authorize?client_id=...&state=...",
            }
        }
    )

    provider: str = Field(..., description="OAuth provider name")
    authorization_url: str = Field(..., description="Provider authorization URL with signed state")


class TokenResponse(BaseModel):
    """Access token issued after a successful callback."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    user: UserInfo
