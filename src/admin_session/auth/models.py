"""Authentication data models."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Principal(BaseModel):
    """A user as known to the user directory."""

    user_id: str = Field(..., description="Opaque user identifier, used as token subject")
    username: str
    display_name: str | None = None
    email: str | None = None
    # Never written into the session blob
    password_hash: str | None = Field(default=None, exclude=True, repr=False)

    @property
    def name(self) -> str:
        return self.display_name or self.username


class UserSession(BaseModel):
    """Session data stored server-side, keyed by user id."""

    principal: Principal
    authorities: list[str] = Field(default_factory=list)
    current_token_fingerprint: str = Field(..., description="token_id of the current token")
    session_created_at: datetime = Field(default_factory=utcnow)
    session_refreshed_at: datetime = Field(default_factory=utcnow)

    @property
    def user_id(self) -> str:
        return self.principal.user_id

    def has_authority(self, authority: str) -> bool:
        return authority in self.authorities


class LoginRequest(BaseModel):
    """Username/password credentials posted to /login."""

    username: str
    password: str = Field(..., repr=False)


class CurrentUser(BaseModel):
    """Public view of the authenticated principal."""

    user_id: str
    username: str
    display_name: str
    email: str | None
    authorities: list[str]
