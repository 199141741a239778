"""
careerpilot.services._shared.ports
==================================

Collection of *ports* (hexagonal interfaces) that define the contracts for
session credentials and their server-side state.

Modules
-------
- :mod:`token_provider`:
    Defines :class:`~.TokenProvider`: issuing and verifying access/refresh JWTs.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore`, :class:`~.RefreshTokenRecord` and
    :class:`~.RotationResult`: the per-user refresh token collection with
    atomic rotation.

- :mod:`denylist_store`:
    Defines :class:`~.TokenDenylistStore`: early revocation of access tokens.

Concrete adapters (SQL, Redis, PyJWT) live under ``careerpilot.infra``.
"""

from __future__ import annotations

from .denylist_store import InMemoryDenylistStore, TokenDenylistStore
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
    as_utc,
    generate_jti,
    utcnow,
)
from .token_provider import AccessClaims, IssuedRefreshToken, RefreshClaims, TokenProvider

__all__ = [
    "AccessClaims",
    "InMemoryDenylistStore",
    "InMemoryRefreshTokenStore",
    "IssuedRefreshToken",
    "RefreshClaims",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "RotationResult",
    "TokenDenylistStore",
    "TokenProvider",
    "as_utc",
    "generate_jti",
    "utcnow",
]
