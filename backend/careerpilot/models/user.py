"""Account identity; owns the SQL-backed refresh token records."""

from __future__ import annotations

from typing import TYPE_CHECKING, NoReturn

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates
from werkzeug.security import check_password_hash, generate_password_hash

from careerpilot.core.extensions import db

from .base import PKMixin, ReprMixin, TimestampMixin

if TYPE_CHECKING:
    from .refresh_token import RefreshToken

USERNAME_MAX_LENGTH = 50


class User(PKMixin, ReprMixin, TimestampMixin, db.Model):
    """
    A CareerPilot account.

    ``email`` is kept lowercase so lookups need no ``lower()``. The password
    is only ever assigned (``user.password = raw``) and checked with
    :meth:`verify_password`; the hash never leaves the model.
    """

    __tablename__ = "users"
    __repr_fields__ = ("email",)
    __table_args__ = (
        UniqueConstraint("email", name="uq_users_email"),
        UniqueConstraint("username", name="uq_users_username"),
        Index("ix_users_google_id", "google_id"),
    )

    email: Mapped[str] = mapped_column(String(254), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(254), nullable=False)
    username: Mapped[str] = mapped_column(String(USERNAME_MAX_LENGTH), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # OAuth subject of a linked Google account
    google_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    refresh_tokens: Mapped[list[RefreshToken]] = relationship(
        "RefreshToken",
        back_populates="user",
        order_by="RefreshToken.id",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    @property
    def password(self) -> NoReturn:
        raise AttributeError("User.password can be set but not read")

    @password.setter
    def password(self, raw: str) -> None:
        if not raw or not isinstance(raw, str):
            raise ValueError("A password must be a non-empty string")
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        return bool(self.password_hash) and check_password_hash(self.password_hash, raw)

    @validates("email")
    def _clean_email(self, _key: str, value: str) -> str:
        cleaned = value.strip().lower() if isinstance(value, str) else ""
        local, _, domain = cleaned.partition("@")
        # Shape only; the signup schema does the real validation
        if not local or "." not in domain:
            raise ValueError(f"Not an email address: {value!r}")
        return cleaned

    @validates("username")
    def _clean_username(self, _key: str, value: str) -> str:
        cleaned = value.strip() if isinstance(value, str) else ""
        if not cleaned:
            raise ValueError("A username is required")
        return cleaned
