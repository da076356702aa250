"""DTOs for the authenticated session."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class AuthUser:
    """Snapshot of the signed-in identity exposed to callers. No tokens."""

    uid: str
    email: str | None = None
    display_name: str | None = None
    photo_url: str | None = None
    email_verified: bool = False


@dataclass(frozen=True)
class Session:
    """Current session held by the auth handle: user snapshot plus tokens."""

    user: AuthUser
    id_token: str
    refresh_token: str
    expires_at: datetime
    provider_id: str = "password"
