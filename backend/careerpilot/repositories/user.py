"""Lookups on :class:`~careerpilot.models.User` rows."""

from __future__ import annotations

from sqlalchemy import exists, select

from careerpilot.models.user import User
from careerpilot.repositories.base import BaseRepository


def _email_key(email: str) -> str:
    return email.strip().lower()


class UserRepository(BaseRepository[User]):
    """
    Account rows only. Tokens live in
    :class:`~careerpilot.repositories.RefreshTokenRepository`.
    """

    model = User

    def _updatable_fields(self) -> set[str]:
        # password_hash changes only through User.password
        return {"username", "is_verified", "google_id"}

    def _first(self, *criteria) -> User | None:
        return self.session.execute(select(User).where(*criteria)).scalars().first()

    def _any(self, *criteria) -> bool:
        return bool(self.session.execute(select(exists().where(*criteria))).scalar())

    def get_by_email(self, email: str) -> User | None:
        return self._first(User.email == _email_key(email))

    def get_by_google_id(self, google_id: str) -> User | None:
        return self._first(User.google_id == google_id)

    def exists_by_email(self, email: str) -> bool:
        return self._any(User.email == _email_key(email))

    def exists_by_username(self, username: str) -> bool:
        return self._any(User.username == username.strip())

    def authenticate(self, email: str, password: str) -> User | None:
        """
        Return the user when ``password`` matches, else ``None``.

        Unknown email and wrong password are indistinguishable to the caller.
        """
        user = self.get_by_email(email)
        if user is not None and user.verify_password(password):
            return user
        return None
