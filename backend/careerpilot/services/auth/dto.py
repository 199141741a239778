# careerpilot/services/auth/dto.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

# ----------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class SignupIn:
    """
    Input DTO for account creation.

    :param email: User email (normalized by the model).
    :param username: Public display name.
    :param password: Raw password (hashed by the model).
    """

    email: str
    username: str
    password: str


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email (normalized).
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    email: str
    password: str


@dataclass(frozen=True, slots=True)
class OAuthProfileIn:
    """
    Identity asserted by an OAuth provider after the code exchange.

    :param email: Verified email returned by the provider.
    :param name: Display name returned by the provider.
    :param subject: Provider-side stable user id (Google ``sub``).
    """

    email: str
    name: str
    subject: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout. Both tokens are optional; whatever verifies is revoked.

    :param refresh_token: Encoded refresh JWT, if the client sent one.
    :param access_token: Encoded access JWT, if the client sent one.
    :param all_sessions: If True, revoke every refresh token of the user.
    """

    refresh_token: str | None = None
    access_token: str | None = None
    all_sessions: bool = False


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """Public projection of a user."""

    id: int
    email: str
    username: str
    is_verified: bool

    @classmethod
    def from_model(cls, user: Any) -> UserPublicOut:
        return cls(
            id=int(user.id),
            email=user.email,
            username=user.username,
            is_verified=bool(user.is_verified),
        )


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Encoded access JWT.
    :type access_token: str
    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    :param refresh_expires_at: Expiry of the refresh token (cookie lifetime).
    :type refresh_expires_at: datetime
    :param user: Owner of the pair.
    :type user: UserPublicOut
    """

    access_token: str
    refresh_token: str
    refresh_expires_at: datetime
    user: UserPublicOut


@dataclass(frozen=True, slots=True)
class LogoutOut:
    """Outcome of a logout: how many refresh records were invalidated."""

    revoked: int = 0
