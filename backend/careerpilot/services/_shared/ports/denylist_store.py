"""Denylist for access token ids revoked before their natural expiry."""

from __future__ import annotations

import threading
from datetime import datetime
from typing import Protocol

from .refresh_token_store import as_utc, utcnow


class TokenDenylistStore(Protocol):
    """
    Revoked access token ``jti`` values.

    An entry only has to outlive the token it blocks, so implementations may
    forget it once ``expires_at`` has passed. Both methods are idempotent.
    """

    def is_revoked(self, jti: str) -> bool: ...

    def revoke_jti(self, *, jti: str, expires_at: datetime) -> None: ...


class InMemoryDenylistStore(TokenDenylistStore):
    """Single-process denylist; entries are dropped lazily on lookup."""

    def __init__(self) -> None:
        self._until: dict[str, datetime] = {}
        self._lock = threading.Lock()

    def is_revoked(self, jti: str) -> bool:
        with self._lock:
            until = self._until.get(jti)
            if until is not None and until <= utcnow():
                del self._until[jti]
                until = None
            return until is not None

    def revoke_jti(self, *, jti: str, expires_at: datetime) -> None:
        with self._lock:
            self._until[jti] = as_utc(expires_at)
