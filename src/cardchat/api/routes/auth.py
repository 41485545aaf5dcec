"""
OAuth sign-in endpoints.

GitHub and Google authorization-code flow. The callback exchanges the code
server-side and answers with a signed access token; nothing is stored.
"""

from __future__ import annotations

from typing import Annotated, Literal

from fastapi import APIRouter, Query

from cardchat.api.dependencies import Auth
from cardchat.api.middleware.auth import CurrentUser
from cardchat.api.middleware.exception_handlers import AppException
from cardchat.models.api_models import UserInfo
from cardchat.models.error_models import ErrorCode, ErrorResponseWrapper
from cardchat.models.schemas.auth import LoginUrlResponse, TokenResponse
from cardchat.utils.logger import logger

router = APIRouter()

OAuthProviderName = Literal["github", "google"]


def _require_provider(auth: Auth, provider: str) -> None:
    if auth.provider_config(provider) is None:
        raise AppException(
            code=ErrorCode.AUTH_PROVIDER_NOT_CONFIGURED,
            message=f"OAuth provider '{provider}' is not configured",
            details={"provider": provider},
        )


@router.get(
    "/{provider}/login",
    response_model=LoginUrlResponse,
    summary="Start sign-in",
    description="Authorization URL for the provider, with a signed short-lived state parameter.",
    responses={404: {"model": ErrorResponseWrapper, "description": "Provider not configured"}},
)
async def login(provider: OAuthProviderName, auth: Auth) -> LoginUrlResponse:
    _require_provider(auth, provider)
    return LoginUrlResponse(provider=provider, authorization_url=auth.authorization_url(provider))


@router.get(
    "/{provider}/callback",
    response_model=TokenResponse,
    summary="Complete sign-in",
    description="Exchange the authorization code and issue an access token.",
    responses={
        200: {
            "description": "Sign-in successful",
            "content": {
                "application/json": {
                    "example": {
                        "access_token": "eyJhbGciOiJIUzI1NiIsInR5cCI6IkpXVCJ9...",
                        "token_type": "bearer",
                        "expires_in": 86400,
                        "user": {
                            "id": "github:583231",
                            "email": "octocat@github.com",
                            "name": "The Octocat",
                            "image": "https://avatars.githubusercontent.com/u/583231",
                        },
                    }
                }
            },
        },
        400: {"model": ErrorResponseWrapper, "description": "Invalid or expired state"},
        404: {"model": ErrorResponseWrapper, "description": "Provider not configured"},
        502: {"model": ErrorResponseWrapper, "description": "Provider rejected the exchange"},
    },
)
async def callback(
    provider: OAuthProviderName,
    code: Annotated[str, Query(min_length=1)],
    state: Annotated[str, Query(min_length=1)],
    auth: Auth,
) -> TokenResponse:
    _require_provider(auth, provider)
    try:
        auth.verify_state(state, provider)
    except ValueError as exc:
        raise AppException(code=ErrorCode.AUTH_INVALID_STATE, message="Invalid OAuth state") from exc

    profile = await auth.exchange_code(provider, code)
    logger.info(f"Signed in {profile.user_id} via {provider}")
    return TokenResponse(
        access_token=auth.issue_access_token(profile),
        expires_in=auth.settings.access_token_expires_minutes * 60,
        user=UserInfo(id=profile.user_id, email=profile.email, name=profile.name, image=profile.image),
    )


@router.get(
    "/me",
    response_model=UserInfo,
    summary="Current user",
    responses={401: {"model": ErrorResponseWrapper, "description": "Authentication required"}},
)
async def me(user: CurrentUser) -> UserInfo:
    """Identity carried by the access token."""
    return user
