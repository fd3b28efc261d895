"""Authentication schemas for operator tokens."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class UserContext(BaseModel):
    """Operator identity extracted from a validated JWT.

    Routes pass actor_id into every mutating service call; services never
    look up the current user themselves.
    """

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID = Field(description="Operator ID (from JWT sub claim)")
    email: str | None = Field(default=None, description="Operator email if available")
    role: str | None = Field(default=None, description="Token role claim")

    @property
    def actor_id(self) -> str:
        """ID recorded as the actor on ledger, history and refund rows."""
        return str(self.user_id)


class TokenPayload(BaseModel):
    """Claims of a Supabase-issued JWT."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")

    sub: str = Field(description="Subject - the operator's UUID")
    email: str | None = Field(default=None, description="Email address")
    role: str | None = Field(default=None, description="Role claim")
    exp: int = Field(description="Expiration timestamp (Unix epoch)")
    iat: int = Field(description="Issued at timestamp (Unix epoch)")
    aud: str | list[str] | None = Field(default=None, description="Audience")
    iss: str | None = Field(default=None, description="Issuer")

    def to_user_context(self) -> UserContext:
        """Convert token claims to a UserContext."""
        return UserContext(user_id=UUID(self.sub), email=self.email, role=self.role)
