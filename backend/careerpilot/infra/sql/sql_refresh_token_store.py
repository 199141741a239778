# careerpilot/infra/sql/sql_refresh_token_store.py
from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from careerpilot.models.refresh_token import RefreshToken
from careerpilot.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
)
from careerpilot.uow import SQLAlchemyUnitOfWork


@dataclass(slots=True)
class SQLRefreshTokenStore(RefreshTokenStore):
    """
    Refresh token store backed by the ``refresh_tokens`` table.

    Every method runs in its own read-write Unit of Work. ``rotate`` is a
    conditional ``UPDATE`` (see
    :meth:`~careerpilot.repositories.refresh_token.RefreshTokenRepository.consume_if_active`)
    followed by the prune and the insert of the successor row, all in the same
    transaction, so the database arbitrates concurrent rotations.

    :param uow_factory: Callable returning a fresh read-write Unit of Work.
    """

    uow_factory: Callable[[], SQLAlchemyUnitOfWork] = field(default=SQLAlchemyUnitOfWork)

    def register(self, *, user_id: str, record: RefreshTokenRecord) -> None:
        uid = int(user_id)
        with self.uow_factory() as uow:
            uow.refresh_tokens.prune(now=record.created_at, user_id=uid)
            uow.refresh_tokens.add(self._to_row(uid, record))

    def rotate(
        self,
        *,
        user_id: str,
        old_jti: str,
        now: datetime,
        new_record: RefreshTokenRecord,
    ) -> RotationResult:
        uid = int(user_id)
        with self.uow_factory() as uow:
            if not uow.refresh_tokens.consume_if_active(uid, old_jti, now=now):
                # Lost the compare-and-set; classify without writing anything
                row = uow.refresh_tokens.get_for_user(uid, old_jti)
                if row is None:
                    return RotationResult.NOT_FOUND
                if row.invalidated:
                    return RotationResult.INVALIDATED
                return RotationResult.EXPIRED

            uow.refresh_tokens.prune(now=now, user_id=uid, keep_jti=old_jti)
            uow.refresh_tokens.add(self._to_row(uid, new_record))
        return RotationResult.OK

    def revoke(self, *, user_id: str, jti: str) -> bool:
        with self.uow_factory() as uow:
            return uow.refresh_tokens.invalidate(int(user_id), jti)

    def revoke_all_for_user(self, user_id: str) -> int:
        with self.uow_factory() as uow:
            return uow.refresh_tokens.invalidate_all(int(user_id))

    def list_for_user(self, user_id: str) -> list[RefreshTokenRecord]:
        with self.uow_factory() as uow:
            return [row.to_record() for row in uow.refresh_tokens.list_for_user(int(user_id))]

    def prune(self, user_id: str | None = None, *, now: datetime) -> int:
        with self.uow_factory() as uow:
            return uow.refresh_tokens.prune(
                now=now, user_id=int(user_id) if user_id is not None else None
            )

    @staticmethod
    def _to_row(user_id: int, record: RefreshTokenRecord) -> RefreshToken:
        return RefreshToken(
            user_id=user_id,
            jti=record.jti,
            created_at=record.created_at,
            expires_at=record.expires_at,
            invalidated=record.invalidated,
        )
