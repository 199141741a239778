# comments in English; reST docstrings
from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, TypeVar

import redis  # type: ignore[import-untyped]

from careerpilot.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
    as_utc,
)

T = TypeVar("T")


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic rotation.

    Layout: one hash per user, ``rt:u:{user_id}``, mapping ``jti`` to a JSON
    record ``{"created_at", "expires_at", "invalidated"}``. The key TTL tracks
    the longest-lived record so abandoned collections disappear on their own.

    Every read-modify-write runs under WATCH/MULTI/EXEC on the user's key; a
    concurrent writer aborts the transaction and the loop re-reads, so two
    rotations of the same ``jti`` can never both succeed.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _ku(user_id: str) -> str:
        return f"rt:u:{user_id}"

    @staticmethod
    def _text(value: Any) -> str:
        return value.decode() if isinstance(value, bytes | bytearray) else str(value)

    @classmethod
    def _dump(cls, record: RefreshTokenRecord) -> str:
        return json.dumps(
            {
                "created_at": as_utc(record.created_at).isoformat(),
                "expires_at": as_utc(record.expires_at).isoformat(),
                "invalidated": record.invalidated,
            }
        )

    @classmethod
    def _load(cls, jti: Any, raw: Any) -> RefreshTokenRecord:
        data = json.loads(cls._text(raw))
        return RefreshTokenRecord(
            jti=cls._text(jti),
            created_at=datetime.fromisoformat(data["created_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            invalidated=bool(data["invalidated"]),
        )

    @classmethod
    def _records(cls, raw: dict[Any, Any]) -> list[RefreshTokenRecord]:
        records = [cls._load(j, v) for j, v in raw.items()]
        records.sort(key=lambda r: (as_utc(r.created_at), r.jti))
        return records

    @staticmethod
    def _ttl(records: list[RefreshTokenRecord], now: datetime) -> int:
        latest = max(as_utc(r.expires_at) for r in records)
        return max(1, int((latest - as_utc(now)).total_seconds()))

    def _transact(self, key: str, body: Callable[[Any], T]) -> T:
        """
        Run ``body(pipe)`` under WATCH on ``key``, retrying on ``WatchError``.

        ``body`` reads through the pipe (immediate mode), then calls
        ``pipe.multi()`` before queueing writes, or returns early without
        writing.
        """
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    result = body(p)
                    if p.explicit_transaction:
                        p.execute()
                    return result
            except redis.WatchError:
                # Concurrent modification detected; retry loop
                continue

    # -------------------- API ------------------------

    def register(self, *, user_id: str, record: RefreshTokenRecord) -> None:
        key = self._ku(user_id)

        def _body(p: Any) -> None:
            existing = self._records(p.hgetall(key))
            stale = [r.jti for r in existing if r.is_stale(record.created_at)]
            kept = [r for r in existing if not r.is_stale(record.created_at)]
            p.multi()
            if stale:
                p.hdel(key, *stale)
            p.hset(key, record.jti, self._dump(record))
            p.expire(key, self._ttl([*kept, record], record.created_at))

        self._transact(key, _body)

    def rotate(
        self,
        *,
        user_id: str,
        old_jti: str,
        now: datetime,
        new_record: RefreshTokenRecord,
    ) -> RotationResult:
        """
        Atomically consume ``old_jti`` and append ``new_record``.

        Stale records other than the consumed one are dropped in the same
        transaction.
        """
        key = self._ku(user_id)

        def _body(p: Any) -> RotationResult:
            raw = p.hget(key, old_jti)
            if raw is None:
                return RotationResult.NOT_FOUND
            current = self._load(old_jti, raw)
            if current.invalidated:
                return RotationResult.INVALIDATED
            if not current.is_usable(now):
                return RotationResult.EXPIRED

            others = [r for r in self._records(p.hgetall(key)) if r.jti != old_jti]
            stale = [r.jti for r in others if r.is_stale(now)]
            kept = [r for r in others if not r.is_stale(now)]
            consumed = replace(current, invalidated=True)

            p.multi()
            if stale:
                p.hdel(key, *stale)
            p.hset(key, old_jti, self._dump(consumed))
            p.hset(key, new_record.jti, self._dump(new_record))
            p.expire(key, self._ttl([*kept, consumed, new_record], now))
            return RotationResult.OK

        return self._transact(key, _body)

    def revoke(self, *, user_id: str, jti: str) -> bool:
        key = self._ku(user_id)

        def _body(p: Any) -> bool:
            raw = p.hget(key, jti)
            if raw is None:
                return False
            record = self._load(jti, raw)
            if record.invalidated:
                return False
            p.multi()
            p.hset(key, jti, self._dump(replace(record, invalidated=True)))
            return True

        return self._transact(key, _body)

    def revoke_all_for_user(self, user_id: str) -> int:
        key = self._ku(user_id)

        def _body(p: Any) -> int:
            active = [r for r in self._records(p.hgetall(key)) if not r.invalidated]
            if not active:
                return 0
            p.multi()
            p.hset(
                key,
                mapping={r.jti: self._dump(replace(r, invalidated=True)) for r in active},
            )
            return len(active)

        return self._transact(key, _body)

    def list_for_user(self, user_id: str) -> list[RefreshTokenRecord]:
        return self._records(self.r.hgetall(self._ku(user_id)))

    def prune(self, user_id: str | None = None, *, now: datetime) -> int:
        if user_id is not None:
            keys = [self._ku(user_id)]
        else:
            keys = [self._text(k) for k in self.r.scan_iter(match=self._ku("*"))]

        removed = 0
        for key in keys:

            def _body(p: Any, key: str = key) -> int:
                stale = [r.jti for r in self._records(p.hgetall(key)) if r.is_stale(now)]
                if stale:
                    p.multi()
                    p.hdel(key, *stale)
                return len(stale)

            removed += self._transact(key, _body)
        return removed
