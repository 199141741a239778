"""Refresh token records owned by a user (one row per issued refresh JWT)."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from careerpilot.core.extensions import db
from careerpilot.services._shared.ports import RefreshTokenRecord, as_utc

from .base import PKMixin, ReprMixin

if TYPE_CHECKING:
    from .user import User


class RefreshToken(PKMixin, ReprMixin, db.Model):
    """
    Server-side state of one refresh token.

    Fields
    ------
    jti : str
        Identifier embedded in the refresh JWT. Unique system-wide.
    user_id : int
        Owning user.
    created_at : datetime
        Issuance time.
    expires_at : datetime
        Record expiry; the record is unusable afterwards.
    invalidated : bool
        Set once by rotation or revocation, never cleared.
    """

    __tablename__ = "refresh_tokens"
    __repr_fields__ = ("user_id", "jti", "invalidated")

    jti: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    invalidated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    user: Mapped[User] = relationship("User", back_populates="refresh_tokens")

    __table_args__ = (
        UniqueConstraint("jti", name="uq_refresh_tokens_jti"),
        Index("ix_refresh_tokens_user_id", "user_id"),
    )

    def to_record(self) -> RefreshTokenRecord:
        """Return the framework-free view of this row."""
        return RefreshTokenRecord(
            jti=self.jti,
            created_at=as_utc(self.created_at),
            expires_at=as_utc(self.expires_at),
            invalidated=bool(self.invalidated),
        )
