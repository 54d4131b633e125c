"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthenticationError, AuthorizationError
from src.core.checkbox import get_checkbox_client
from src.core.config import get_settings
from src.core.liqpay import get_liqpay_client
from src.core.supabase import get_supabase_client
from src.schemas.auth import UserContext
from src.services.email_service import EmailService
from src.services.fiscal_service import FiscalService
from src.services.payment_service import PaymentService


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Raises:
        AuthenticationError: 401 if the token is missing, invalid or expired.
    """
    if not authorization:
        raise AuthenticationError("Authorization header required")

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise AuthenticationError("Invalid authorization header format. Expected: Bearer <token>")

    try:
        return decode_jwt(parts[1]).to_user_context()
    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise AuthenticationError("Token has expired") from e
        raise AuthenticationError(e.message) from e


async def get_admin_user(
    user: Annotated[UserContext, Depends(get_current_user)],
) -> UserContext:
    """Require an authenticated user with the admin role.

    Raises:
        AuthorizationError: 403 if the user is not an admin.
    """
    if not user.is_admin:
        raise AuthorizationError("Admin access required")
    return user


AdminUser = Annotated[UserContext, Depends(get_admin_user)]


def get_fiscal_service() -> FiscalService:
    """Build the fiscal service from the shared clients."""
    return FiscalService(get_supabase_client(), get_checkbox_client(), get_settings())


def get_payment_service(
    fiscal_service: Annotated[FiscalService, Depends(get_fiscal_service)],
) -> PaymentService:
    """Build the payment service from the shared clients."""
    settings = get_settings()
    return PaymentService(
        get_supabase_client(),
        get_liqpay_client(),
        fiscal_service,
        settings,
        email_service=EmailService(settings),
    )


FiscalServiceDep = Annotated[FiscalService, Depends(get_fiscal_service)]
PaymentServiceDep = Annotated[PaymentService, Depends(get_payment_service)]
