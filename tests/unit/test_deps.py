"""Unit tests for authentication dependencies."""

from typing import Callable

import pytest

from src.api.deps import get_admin_user, get_current_user
from src.api.middleware.error_handler import AuthenticationError, AuthorizationError


class TestGetCurrentUser:
    """Tests for get_current_user dependency."""

    @pytest.mark.asyncio
    async def test_extracts_user_context(self, make_token: Callable[..., str]) -> None:
        """Test that the app_metadata role becomes the user's role."""
        user = await get_current_user(f"Bearer {make_token(role='admin')}")

        assert str(user.user_id) == "770e8400-e29b-41d4-a716-446655440000"
        assert user.email == "admin@example.com"
        assert user.role == "admin"
        assert user.is_admin

    @pytest.mark.asyncio
    async def test_missing_header(self) -> None:
        with pytest.raises(AuthenticationError, match="Authorization header required"):
            await get_current_user("")

    @pytest.mark.asyncio
    async def test_wrong_scheme(self, make_token: Callable[..., str]) -> None:
        with pytest.raises(AuthenticationError, match="Expected: Bearer"):
            await get_current_user(f"Token {make_token()}")

    @pytest.mark.asyncio
    async def test_expired_token(self, make_token: Callable[..., str]) -> None:
        with pytest.raises(AuthenticationError, match="Token has expired"):
            await get_current_user(f"Bearer {make_token(expires_in=-60)}")

    @pytest.mark.asyncio
    async def test_garbage_token(self) -> None:
        with pytest.raises(AuthenticationError):
            await get_current_user("Bearer not-a-jwt")


class TestGetAdminUser:
    """Tests for get_admin_user dependency."""

    @pytest.mark.asyncio
    async def test_rejects_non_admin(self, make_token: Callable[..., str]) -> None:
        """Test that a signed-in customer cannot reach admin routes."""
        user = await get_current_user(f"Bearer {make_token(role=None)}")

        assert user.role == "authenticated"
        with pytest.raises(AuthorizationError):
            await get_admin_user(user)

    @pytest.mark.asyncio
    async def test_accepts_admin(self, make_token: Callable[..., str]) -> None:
        user = await get_current_user(f"Bearer {make_token()}")
        assert await get_admin_user(user) is user
