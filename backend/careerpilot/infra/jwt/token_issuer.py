# careerpilot/infra/jwt/token_issuer.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import uuid4

import jwt

from careerpilot.services._shared.errors import ConfigurationError, InvalidTokenError
from careerpilot.services._shared.ports import (
    AccessClaims,
    IssuedRefreshToken,
    RefreshClaims,
    TokenProvider,
    generate_jti,
    utcnow,
)

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


@dataclass(slots=True)
class JWTTokenIssuer(TokenProvider):
    """
    PyJWT adapter issuing the two session credentials.

    Access and refresh tokens are signed with **different** secrets so a
    leaked access key cannot mint refresh tokens. Access tokens carry the
    claim set ``flask-jwt-extended`` expects (``sub``/``type``/``jti``/
    ``fresh``), so protected routes verify them with ``verify_jwt_in_request``.

    :param access_secret: HMAC key for access tokens.
    :param refresh_secret: HMAC key for refresh tokens.
    :raises ConfigurationError: If either secret is empty.
    """

    access_secret: str
    refresh_secret: str
    algorithm: str = "HS256"
    issuer: str = "careerpilot"
    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=7)
    _leeway: timedelta = field(default=timedelta(0), repr=False)

    def __post_init__(self) -> None:
        if not self.access_secret:
            raise ConfigurationError("Access token signing secret is not configured.")
        if not self.refresh_secret:
            raise ConfigurationError("Refresh token signing secret is not configured.")

    @classmethod
    def from_config(cls, config: Any) -> JWTTokenIssuer:
        """Build the issuer from a Flask config mapping."""
        return cls(
            access_secret=config.get("JWT_ACCESS_SECRET") or "",
            refresh_secret=config.get("JWT_REFRESH_SECRET") or "",
            algorithm=config.get("JWT_ALGORITHM", "HS256"),
            issuer=config.get("JWT_ISSUER", "careerpilot"),
            access_expires=config.get("ACCESS_TOKEN_EXPIRES", timedelta(minutes=15)),
            refresh_expires=config.get("REFRESH_TOKEN_EXPIRES", timedelta(days=7)),
        )

    # ------------------------------------------------------------------ #
    # Issuing
    # ------------------------------------------------------------------ #

    def issue_access_token(
        self,
        user: Any,
        *,
        fresh: bool = False,
        expires_delta: timedelta | None = None,
    ) -> str:
        """Sign a short-lived access token with minimal identity claims."""
        now = utcnow()
        payload: dict[str, Any] = {
            "iss": self.issuer,
            "sub": str(user.id),
            "email": user.email,
            "username": user.username,
            "type": ACCESS_TOKEN_TYPE,
            "fresh": fresh,
            "jti": uuid4().hex,
            "iat": now,
            "nbf": now,
            "exp": now + (expires_delta if expires_delta is not None else self.access_expires),
        }
        return jwt.encode(payload, self.access_secret, algorithm=self.algorithm)

    def issue_refresh_token(
        self,
        user_id: int | str,
        *,
        expires_delta: timedelta | None = None,
    ) -> IssuedRefreshToken:
        """
        Sign a long-lived refresh token bound to a brand-new ``jti``.

        No state is written: the caller records ``jti``/``expires_at``.
        """
        now = utcnow()
        # JWT timestamps have second precision; keep the record in sync with ``exp``
        now = now.replace(microsecond=0)
        expires_at = now + (expires_delta if expires_delta is not None else self.refresh_expires)
        jti = generate_jti()
        payload = {
            "iss": self.issuer,
            "sub": str(user_id),
            "jti": jti,
            "type": REFRESH_TOKEN_TYPE,
            "iat": now,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self.refresh_secret, algorithm=self.algorithm)
        return IssuedRefreshToken(token=token, jti=jti, issued_at=now, expires_at=expires_at)

    # ------------------------------------------------------------------ #
    # Verification
    # ------------------------------------------------------------------ #

    def decode_refresh_token(self, token: str) -> RefreshClaims:
        """
        Verify signature, expiry and type of a refresh token.

        :raises InvalidTokenError: On any verification failure.
        """
        payload = self._decode(token, self.refresh_secret, REFRESH_TOKEN_TYPE)
        return RefreshClaims(
            user_id=str(payload["sub"]),
            jti=str(payload["jti"]),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
        )

    def decode_access_token(self, token: str) -> AccessClaims:
        """
        Verify signature, expiry and type of an access token.

        :raises InvalidTokenError: On any verification failure.
        """
        payload = self._decode(token, self.access_secret, ACCESS_TOKEN_TYPE)
        return AccessClaims(
            user_id=str(payload["sub"]),
            jti=str(payload["jti"]),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
            claims=payload,
        )

    def _decode(self, token: str, secret: str, expected_type: str) -> dict[str, Any]:
        if not token:
            raise InvalidTokenError("Token is missing.")
        try:
            payload: dict[str, Any] = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                leeway=self._leeway,
                options={"require": ["exp", "iat", "sub", "jti"]},
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token expired. Please log in again.") from None
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Invalid token: {exc}") from None

        if payload.get("type") != expected_type:
            raise InvalidTokenError(f"Wrong token type: {expected_type} token required.")
        return payload
