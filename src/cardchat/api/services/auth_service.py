from __future__ import annotations

import secrets

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

import httpx

from jose import ExpiredSignatureError, JWTError, jwt

from cardchat.api.middleware.exception_handlers import ExternalServiceError
from cardchat.core.constants import Settings, get_settings
from cardchat.models.api_models import OAuthProfile, UserInfo
from cardchat.models.error_models import ErrorCode

#: Lifetime of the signed ``state`` round-tripped through the provider
OAUTH_STATE_TTL_MINUTES = 10


class TokenExpiredError(ValueError):
    """Signature is valid but ``exp`` has passed."""


@dataclass(frozen=True)
class OAuthProviderConfig:
    name: str
    authorize_url: str
    token_url: str
    profile_url: str
    scope: str


OAUTH_PROVIDERS: dict[str, OAuthProviderConfig] = {
    "github": OAuthProviderConfig(
        name="github",
        authorize_url="https://github.com/login/oauth/authorize",
        token_url="https://github.com/login/oauth/access_token",
        profile_url="https://api.github.com/user",
        scope="read:user user:email",
    ),
    "google": OAuthProviderConfig(
        name="google",
        authorize_url="https://accounts.google.com/o/oauth2/v2/auth",
        token_url="https://oauth2.googleapis.com/token",
        profile_url="https://openidconnect.googleapis.com/v1/userinfo",
        scope="openid email profile",
    ),
}


def _profile_from_provider(provider: str, data: dict[str, Any]) -> OAuthProfile:
    if provider == "github":
        return OAuthProfile(
            provider=provider,
            provider_user_id=str(data["id"]),
            email=data.get("email"),
            name=data.get("name") or data.get("login"),
            image=data.get("avatar_url"),
        )
    return OAuthProfile(
        provider=provider,
        provider_user_id=str(data["sub"]),
        email=data.get("email"),
        name=data.get("name"),
        image=data.get("picture"),
    )


class AuthService:
    """OAuth sign-in and JWT access tokens.

    Users are not stored server-side: the token carries the stable
    provider identity (``sub``), which is also the owner key for chats.
    """

    def __init__(self, settings: Settings | None = None, http_client: httpx.AsyncClient | None = None):
        self.settings = settings or get_settings()
        self.http_client = http_client

    # ------------------------------------------------------------------
    # Access tokens
    # ------------------------------------------------------------------

    def issue_access_token(self, profile: OAuthProfile) -> str:
        expires_at = datetime.now(UTC) + timedelta(minutes=self.settings.access_token_expires_minutes)
        payload = {
            "sub": profile.user_id,
            "email": profile.email,
            "name": profile.name,
            "picture": profile.image,
            "type": "access",
            "exp": expires_at,
        }
        return self._encode(payload)

    def decode_access_token(self, token: str) -> dict[str, Any]:
        """Decode and validate an access token.

        Raises:
            TokenExpiredError: The token is past its expiry
            ValueError: Signature or token type is wrong
        """
        return self._decode(token, "access")

    def user_from_payload(self, payload: dict[str, Any]) -> UserInfo:
        return UserInfo(
            id=payload["sub"],
            email=payload.get("email"),
            name=payload.get("name"),
            image=payload.get("picture"),
        )

    # ------------------------------------------------------------------
    # OAuth authorization-code flow
    # ------------------------------------------------------------------

    def provider_config(self, provider: str) -> OAuthProviderConfig | None:
        """Return the provider config when it is known and has credentials."""
        config = OAUTH_PROVIDERS.get(provider)
        if config is None or self.settings.oauth_credentials(provider) is None:
            return None
        return config

    def redirect_uri(self, provider: str) -> str:
        return f"{self.settings.oauth_redirect_base_url.rstrip('/')}/api/auth/{provider}/callback"

    def create_state(self, provider: str) -> str:
        expires_at = datetime.now(UTC) + timedelta(minutes=OAUTH_STATE_TTL_MINUTES)
        return self._encode(
            {"provider": provider, "nonce": secrets.token_urlsafe(16), "type": "state", "exp": expires_at}
        )

    def verify_state(self, state: str, provider: str) -> None:
        payload = self._decode(state, "state")
        if payload.get("provider") != provider:
            raise ValueError("State was issued for a different provider")

    def authorization_url(self, provider: str) -> str:
        config = OAUTH_PROVIDERS[provider]
        credentials = self.settings.oauth_credentials(provider)
        if credentials is None:
            raise ValueError(f"OAuth provider '{provider}' is not configured")
        client_id, _ = credentials
        params = {
            "client_id": client_id,
            "redirect_uri": self.redirect_uri(provider),
            "scope": config.scope,
            "state": self.create_state(provider),
            "response_type": "code",
        }
        return f"{config.authorize_url}?{urlencode(params)}"

    async def exchange_code(self, provider: str, code: str) -> OAuthProfile:
        """Trade the authorization code for a provider token and fetch the profile."""
        config = OAUTH_PROVIDERS[provider]
        credentials = self.settings.oauth_credentials(provider)
        if credentials is None:
            raise ValueError(f"OAuth provider '{provider}' is not configured")
        if self.http_client is None:
            raise RuntimeError("AuthService needs an http_client for the code exchange")
        client_id, client_secret = credentials

        try:
            token_response = await self.http_client.post(
                config.token_url,
                data={
                    "client_id": client_id,
                    "client_secret": client_secret,
                    "code": code,
                    "redirect_uri": self.redirect_uri(provider),
                    "grant_type": "authorization_code",
                },
                headers={"Accept": "application/json"},
            )
            token_response.raise_for_status()
            provider_token = token_response.json().get("access_token")
            if not provider_token:
                raise ExternalServiceError(
                    provider, "Authorization code was rejected", code=ErrorCode.OAUTH_PROVIDER_ERROR
                )

            profile_response = await self.http_client.get(
                config.profile_url,
                headers={"Authorization": f"Bearer {provider_token}", "Accept": "application/json"},
            )
            profile_response.raise_for_status()
            return _profile_from_provider(provider, profile_response.json())
        except httpx.HTTPError as exc:
            raise ExternalServiceError(
                provider, f"OAuth exchange failed: {exc}", code=ErrorCode.OAUTH_PROVIDER_ERROR, cause=exc
            ) from exc

    # ------------------------------------------------------------------

    def _encode(self, payload: dict[str, Any]) -> str:
        token: str = jwt.encode(payload, self.settings.jwt_secret, algorithm=self.settings.jwt_algorithm)
        return token

    def _decode(self, token: str, token_type: str) -> dict[str, Any]:
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                self.settings.jwt_secret,
                algorithms=[self.settings.jwt_algorithm],
            )
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token expired") from exc
        except JWTError as exc:
            raise ValueError("Invalid token") from exc

        if payload.get("type") != token_type:
            raise ValueError("Invalid token type")
        return payload
