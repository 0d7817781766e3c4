"""Models for decoded session tokens and session diagnostics."""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class TokenClaims(BaseModel):
    """Claims read from the payload segment of a JWT-shaped session token.

    Unknown claims are kept so callers can reach backend-specific fields.
    """

    model_config = ConfigDict(extra="allow")

    user_id: int | str | None = Field(
        default=None, validation_alias=AliasChoices("id", "userId", "user_id")
    )
    school_id: int | str | None = Field(
        default=None, validation_alias=AliasChoices("schoolId", "school_id")
    )
    role: str | None = None
    email: str | None = None
    exp: float | None = None


class SessionSummary(BaseModel):
    """Snapshot of the stored session, safe to log.

    Token values are never included, only a masked prefix.
    """

    keys_present: list[str] = []
    token_prefix: str | None = None
    format_valid: bool = False
    claims: TokenClaims | None = None
    expires_at: str | None = None  # ISO-8601, UTC
    is_expired: bool = False
    issues: list[str] = []
