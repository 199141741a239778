from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class IssuedRefreshToken:
    """
    A signed refresh token plus the data its server-side record needs.

    :ivar token: Encoded JWT handed to the client.
    :ivar jti: Identifier embedded in the token.
    :ivar issued_at: Issuance time (UTC).
    :ivar expires_at: Absolute expiry (UTC), equal to the ``exp`` claim.
    """

    token: str
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """Verified content of a refresh token."""

    user_id: str
    jti: str
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """Verified content of an access token."""

    user_id: str
    jti: str
    expires_at: datetime
    claims: dict[str, Any]


class TokenProvider(Protocol):
    """Port for issuing and verifying the session credentials."""

    def issue_access_token(
        self,
        user: Any,
        *,
        fresh: bool = False,
        expires_delta: timedelta | None = None,
    ) -> str: ...

    def issue_refresh_token(
        self,
        user_id: int | str,
        *,
        expires_delta: timedelta | None = None,
    ) -> IssuedRefreshToken: ...

    def decode_refresh_token(self, token: str) -> RefreshClaims: ...

    def decode_access_token(self, token: str) -> AccessClaims: ...
