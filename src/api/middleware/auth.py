"""JWT verification for admin and customer requests."""

import json
from enum import Enum
from functools import lru_cache
from typing import Any

import jwt
from jwt import PyJWK

from src.core.config import get_settings
from src.schemas.auth import TokenPayload


class AuthErrorCode(str, Enum):
    """Authentication error codes."""

    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    INVALID_TOKEN = "INVALID_TOKEN"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


class AuthError(Exception):
    """Raised when a bearer token cannot be accepted."""

    def __init__(self, message: str, code: AuthErrorCode) -> None:
        self.message = message
        self.code = code
        super().__init__(message)


@lru_cache
def get_signing_key() -> Any:
    """Load the public verification key from SUPABASE_SIGNING_KEY_JWK."""
    jwk_json = get_settings().supabase_signing_key_jwk
    if not jwk_json:
        raise AuthError("Signing key not configured", AuthErrorCode.INVALID_TOKEN)

    try:
        jwk_data = json.loads(jwk_json)
    except json.JSONDecodeError as e:
        raise AuthError(f"Invalid signing key JWK format: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return PyJWK.from_dict(jwk_data).key


def _role_from_claims(claims: dict[str, Any]) -> str | None:
    # Supabase puts "authenticated" in the top-level role claim; the
    # application role lives in app_metadata.
    app_metadata = claims.get("app_metadata") or {}
    return app_metadata.get("role") or claims.get("role")


def decode_jwt(token: str) -> TokenPayload:
    """Verify a Supabase ES256 token and return its payload.

    Raises:
        AuthError: If the token is expired, badly signed or malformed.
    """
    try:
        claims: dict[str, Any] = jwt.decode(
            token,
            get_signing_key(),
            algorithms=["ES256"],
            options={
                "verify_signature": True,
                "verify_exp": True,
                "verify_aud": False,
                "require": ["exp", "iat", "sub"],
            },
        )
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token has expired", AuthErrorCode.TOKEN_EXPIRED) from e
    except jwt.InvalidSignatureError as e:
        raise AuthError("Invalid token signature", AuthErrorCode.INVALID_SIGNATURE) from e
    except jwt.PyJWTError as e:
        raise AuthError(f"Invalid token: {e}", AuthErrorCode.INVALID_TOKEN) from e

    return TokenPayload(
        sub=claims["sub"],
        email=claims.get("email"),
        role=_role_from_claims(claims),
        exp=claims["exp"],
        iat=claims["iat"],
        aud=claims.get("aud") if isinstance(claims.get("aud"), str) else None,
    )
