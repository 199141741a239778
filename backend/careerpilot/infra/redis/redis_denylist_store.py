from __future__ import annotations

from datetime import datetime
from typing import cast

import redis  # type: ignore[import-untyped]

from careerpilot.services._shared.ports import TokenDenylistStore, as_utc, utcnow


class RedisTokenDenylistStore(TokenDenylistStore):
    """
    Denylist for **access tokens** by jti.

    Entries live exactly as long as the token they block, so the keyspace
    never needs sweeping.
    """

    def __init__(self, r: redis.Redis):
        self.r = r

    @staticmethod
    def _k(jti: str) -> str:
        return f"deny:at:{jti}"

    def is_revoked(self, jti: str) -> bool:
        return cast(int, self.r.exists(self._k(jti))) == 1

    def revoke_jti(self, *, jti: str, expires_at: datetime) -> None:
        ttl = max(1, int((as_utc(expires_at) - utcnow()).total_seconds()))
        # store a small marker with TTL; idempotent
        self.r.set(self._k(jti), "1", ex=ttl)
