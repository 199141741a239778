from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from enum import Enum, auto
from typing import Protocol


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    INVALIDATED = auto()


def as_utc(dt: datetime) -> datetime:
    """Label naive datetimes as UTC (SQLite drops tzinfo on the way back)."""
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=UTC)


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Server-side record of one issued refresh token.

    :ivar jti: Refresh token identifier embedded in the JWT.
    :ivar created_at: Issuance time (UTC).
    :ivar expires_at: Absolute expiry (UTC).
    :ivar invalidated: ``True`` once consumed by rotation or revoked.
    """

    jti: str
    created_at: datetime
    expires_at: datetime
    invalidated: bool = False

    def is_usable(self, now: datetime) -> bool:
        """Return ``True`` while the record may still be rotated."""
        return not self.invalidated and as_utc(self.expires_at) > as_utc(now)

    def is_stale(self, now: datetime) -> bool:
        """Return ``True`` for records a sweep may delete."""
        return self.invalidated or as_utc(self.expires_at) <= as_utc(now)


class RefreshTokenStore(Protocol):
    """
    Per-user collection of refresh token records.

    ``rotate`` MUST be atomic: for a given ``old_jti`` at most one caller can
    ever observe ``RotationResult.OK``.
    """

    def register(self, *, user_id: str, record: RefreshTokenRecord) -> None:
        """Append a freshly issued record to the user's collection."""
        ...

    def rotate(
        self,
        *,
        user_id: str,
        old_jti: str,
        now: datetime,
        new_record: RefreshTokenRecord,
    ) -> RotationResult:
        """
        Consume ``old_jti`` and append ``new_record`` in one step.

        Stale records (other than the one consumed) are pruned on success.
        Nothing changes when the result is not ``OK``.
        """
        ...

    def revoke(self, *, user_id: str, jti: str) -> bool:
        """Invalidate a single record. :returns: True if it was usable before."""
        ...

    def revoke_all_for_user(self, user_id: str) -> int:
        """
        Invalidate every record of the user.

        :returns: Number of records that were still active.
        """
        ...

    def list_for_user(self, user_id: str) -> list[RefreshTokenRecord]:
        """Return the user's records in issuance order."""
        ...

    def prune(self, user_id: str | None = None, *, now: datetime) -> int:
        """Delete invalidated or expired records. :returns: Number deleted."""
        ...


def generate_jti() -> str:
    """Return 16 random bytes as hex, the jti format used by every store."""
    return secrets.token_hex(16)


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    In-memory refresh token store with atomic rotation behavior.

    .. note::
       A single lock serializes every operation, which is what makes
       ``rotate`` a compare-and-set. Suitable for tests and single-process
       development only.
    """

    def __init__(self) -> None:
        self._by_user: dict[str, list[RefreshTokenRecord]] = {}
        self._lock = threading.Lock()

    def register(self, *, user_id: str, record: RefreshTokenRecord) -> None:
        with self._lock:
            records = self._by_user.setdefault(user_id, [])
            records[:] = [r for r in records if not r.is_stale(record.created_at)]
            records.append(record)

    def rotate(
        self,
        *,
        user_id: str,
        old_jti: str,
        now: datetime,
        new_record: RefreshTokenRecord,
    ) -> RotationResult:
        with self._lock:
            records = self._by_user.get(user_id, [])
            current = next((r for r in records if r.jti == old_jti), None)
            if current is None:
                return RotationResult.NOT_FOUND
            if current.invalidated:
                return RotationResult.INVALIDATED
            if not current.is_usable(now):
                return RotationResult.EXPIRED

            consumed = replace(current, invalidated=True)
            kept = [r for r in records if r.jti != old_jti and not r.is_stale(now)]
            self._by_user[user_id] = [*kept, consumed, new_record]
            self._by_user[user_id].sort(key=lambda r: as_utc(r.created_at))
            return RotationResult.OK

    def revoke(self, *, user_id: str, jti: str) -> bool:
        with self._lock:
            records = self._by_user.get(user_id, [])
            for i, r in enumerate(records):
                if r.jti == jti:
                    records[i] = replace(r, invalidated=True)
                    return not r.invalidated
            return False

    def revoke_all_for_user(self, user_id: str) -> int:
        with self._lock:
            records = self._by_user.get(user_id, [])
            active = sum(1 for r in records if not r.invalidated)
            self._by_user[user_id] = [replace(r, invalidated=True) for r in records]
            return active

    def list_for_user(self, user_id: str) -> list[RefreshTokenRecord]:
        with self._lock:
            return list(self._by_user.get(user_id, []))

    def prune(self, user_id: str | None = None, *, now: datetime) -> int:
        with self._lock:
            users = [user_id] if user_id is not None else list(self._by_user)
            removed = 0
            for uid in users:
                records = self._by_user.get(uid, [])
                kept = [r for r in records if not r.is_stale(now)]
                removed += len(records) - len(kept)
                self._by_user[uid] = kept
            return removed


def utcnow() -> datetime:
    """Timezone-aware current time; patched by freezegun in tests."""
    return datetime.now(UTC)
