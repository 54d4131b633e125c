"""Authentication schemas for JWT tokens and user context."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

ADMIN_ROLE = "admin"


class UserContext(BaseModel):
    """Authenticated user context extracted from a Supabase JWT."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Unique identifier for the user (from JWT sub claim)")
    email: str | None = Field(default=None, description="User's email address if available")
    role: str | None = Field(default=None, description="Application role from app_metadata, e.g. 'admin'")

    @property
    def is_admin(self) -> bool:
        """Check if the user may run back-office operations."""
        return self.role == ADMIN_ROLE


class TokenPayload(BaseModel):
    """Claims of a Supabase-issued JWT that the API relies on."""

    model_config = ConfigDict(from_attributes=True)

    sub: str = Field(description="Subject - the user's UUID")
    email: str | None = Field(default=None, description="User's email address")
    role: str | None = Field(default=None, description="Application role")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | None = Field(default=None, description="Audience - intended recipient")

    def to_user_context(self) -> UserContext:
        """Convert token payload to UserContext."""
        return UserContext(
            user_id=UUID(self.sub),
            email=self.email,
            role=self.role,
        )
