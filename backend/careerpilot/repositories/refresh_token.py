"""Refresh token repository: per-user records and the rotation compare-and-set."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, false, or_, select, true, update

from careerpilot.models.refresh_token import RefreshToken
from careerpilot.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only access to :class:`RefreshToken` rows.

    All state transitions are single ``UPDATE``/``DELETE`` statements so that
    concurrent requests are arbitrated by the database, never by Python code
    that reads a row and writes it back.
    """

    model = RefreshToken

    def get_for_user(self, user_id: int, jti: str) -> RefreshToken | None:
        stmt = select(RefreshToken).where(
            RefreshToken.user_id == user_id, RefreshToken.jti == jti
        )
        return self.session.execute(stmt).scalars().first()

    def list_for_user(self, user_id: int) -> list[RefreshToken]:
        """Return the user's rows in issuance order."""
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.user_id == user_id)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    def consume_if_active(self, user_id: int, jti: str, *, now: datetime) -> bool:
        """
        Atomically flip ``invalidated`` on a usable row.

        The ``WHERE`` clause repeats every usability condition, so of two
        concurrent callers presenting the same ``jti`` exactly one matches.

        :param user_id: Owner of the record.
        :param jti: Identifier presented by the client.
        :param now: Reference time for the expiry check.
        :returns: ``True`` when this caller won the row.
        """
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.jti == jti,
                RefreshToken.invalidated == false(),
                RefreshToken.expires_at > now,
            )
            .values(invalidated=True)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(stmt)
        return result.rowcount == 1

    def invalidate(self, user_id: int, jti: str) -> bool:
        """Invalidate a single row. :returns: ``True`` if it was still valid."""
        stmt = (
            update(RefreshToken)
            .where(
                RefreshToken.user_id == user_id,
                RefreshToken.jti == jti,
                RefreshToken.invalidated == false(),
            )
            .values(invalidated=True)
            .execution_options(synchronize_session=False)
        )
        return self.session.execute(stmt).rowcount == 1

    def invalidate_all(self, user_id: int) -> int:
        """Invalidate every still-valid row of a user. :returns: Rows changed."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.user_id == user_id, RefreshToken.invalidated == false())
            .values(invalidated=True)
            .execution_options(synchronize_session=False)
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def prune(
        self,
        *,
        now: datetime,
        user_id: int | None = None,
        keep_jti: str | None = None,
    ) -> int:
        """
        Delete invalidated or expired rows.

        :param now: Reference time for expiry.
        :param user_id: Restrict the sweep to one user; ``None`` sweeps all.
        :param keep_jti: Row to spare (the one a rotation just consumed, so a
            later replay of it is still recognised).
        :returns: Number of rows deleted.
        """
        stmt = delete(RefreshToken).where(
            or_(RefreshToken.invalidated == true(), RefreshToken.expires_at <= now)
        )
        if user_id is not None:
            stmt = stmt.where(RefreshToken.user_id == user_id)
        if keep_jti is not None:
            stmt = stmt.where(RefreshToken.jti != keep_jti)
        stmt = stmt.execution_options(synchronize_session=False)
        return int(self.session.execute(stmt).rowcount or 0)
