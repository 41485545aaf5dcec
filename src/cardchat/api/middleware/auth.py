from __future__ import annotations

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from cardchat.api.dependencies import get_token_service
from cardchat.api.middleware.exception_handlers import AuthenticationError
from cardchat.api.middleware.request_context import update_request_context
from cardchat.api.services.auth_service import AuthService, TokenExpiredError
from cardchat.models.api_models import UserInfo
from cardchat.models.error_models import ErrorCode

bearer_scheme = HTTPBearer(auto_error=False)


def _authenticate(credentials: HTTPAuthorizationCredentials | None, auth: AuthService) -> UserInfo:
    if credentials is None:
        raise AuthenticationError(message="Authentication required", code=ErrorCode.AUTH_REQUIRED)

    try:
        payload = auth.decode_access_token(credentials.credentials)
    except TokenExpiredError as exc:
        raise AuthenticationError(message="Token expired", code=ErrorCode.AUTH_EXPIRED_TOKEN) from exc
    except ValueError as exc:
        raise AuthenticationError(message="Invalid token", code=ErrorCode.AUTH_INVALID_TOKEN) from exc

    user = auth.user_from_payload(payload)
    update_request_context(user_id=user.id)
    return user


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    auth: Annotated[AuthService, Depends(get_token_service)],
) -> UserInfo:
    """Authenticate incoming REST requests (error envelope on failure)."""
    return _authenticate(credentials, auth)


async def get_optional_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    auth: Annotated[AuthService, Depends(get_token_service)],
) -> UserInfo | None:
    """Like ``get_current_user`` but returns None so the caller picks the 401 body."""
    try:
        return _authenticate(credentials, auth)
    except AuthenticationError:
        return None


CurrentUser = Annotated[UserInfo, Depends(get_current_user)]
OptionalUser = Annotated[UserInfo | None, Depends(get_optional_user)]
