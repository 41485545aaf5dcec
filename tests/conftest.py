"""Shared test fixtures for the cardchat test suite.

Provides settings isolation, a mocked asyncpg pool, and helpers for
building authenticated requests.
"""

from __future__ import annotations

import os

from collections.abc import Generator
from unittest.mock import AsyncMock, MagicMock

import pytest

# ============================================================================
# EARLY INITIALIZATION: Runs before test modules import cardchat
# ============================================================================

os.environ["APP_ENV"] = "test"
os.environ["CARDCHAT_FILE_LOGGING"] = "false"
os.environ.setdefault("JWT_SECRET", "test-jwt-secret-value")

from cardchat.api.middleware.rate_limiter import reset_rate_limiter  # noqa: E402
from cardchat.api.services.auth_service import AuthService  # noqa: E402
from cardchat.core.constants import Settings, clear_settings_cache  # noqa: E402
from cardchat.models.api_models import OAuthProfile  # noqa: E402

# ============================================================================
# Test Isolation: Settings and singletons
# ============================================================================


@pytest.fixture(autouse=True)
def reset_singletons() -> Generator[None, None, None]:
    """Each test starts with fresh settings and no shared rate-limit table."""
    clear_settings_cache()
    reset_rate_limiter()
    yield
    clear_settings_cache()
    reset_rate_limiter()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with every optional integration configured."""
    return Settings(
        app_env="test",
        jwt_secret="test-jwt-secret-value",
        openai_api_key="sk-test-key-0123456789",
        openweather_api_key="ow-test-key",
        alphavantage_api_key="av-test-key",
        auth_github_id="gh-client-id",
        auth_github_secret="gh-client-secret",
        oauth_redirect_base_url="http://testserver",
        chat_rate_limit_max_requests=3,
        chat_rate_limit_window_seconds=60.0,
    )


# ============================================================================
# Database
# ============================================================================


@pytest.fixture
def mock_connection() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def mock_db_pool(mock_connection: AsyncMock) -> MagicMock:
    pool = MagicMock()  # Not AsyncMock, acquire is sync returning context mgr

    cm = MagicMock()
    cm.__aenter__ = AsyncMock(return_value=mock_connection)
    cm.__aexit__ = AsyncMock(return_value=None)
    pool.acquire.return_value = cm

    pool.get_size.return_value = 4
    pool.get_idle_size.return_value = 3
    pool.get_min_size.return_value = 2
    pool.get_max_size.return_value = 10
    return pool


# ============================================================================
# Authentication
# ============================================================================

GITHUB_PROFILE = OAuthProfile(
    provider="github",
    provider_user_id="583231",
    email="octocat@github.com",
    name="The Octocat",
    image="https://avatars.githubusercontent.com/u/583231",
)


@pytest.fixture
def auth_headers(test_settings: Settings) -> dict[str, str]:
    token = AuthService(settings=test_settings).issue_access_token(GITHUB_PROFILE)
    return {"Authorization": f"Bearer {token}"}
