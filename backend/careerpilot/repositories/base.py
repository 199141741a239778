"""Generic repository base for SQLAlchemy 2.x.

Repositories only translate between rows and queries: they never commit or
roll back (the Unit of Work owns the transaction) and they only assign the
attributes a subclass whitelists in ``_updatable_fields``.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar, cast

from sqlalchemy import select
from sqlalchemy.orm import Session

from careerpilot.core.extensions import db

E = TypeVar("E")


class BaseRepository(Generic[E]):
    """Persistence helpers shared by every repository.

    :cvar model: Mapped class handled by the subclass.
    """

    model: type[E]

    def __init__(self, session: Session | None = None) -> None:
        """
        :param session: Session of the enclosing Unit of Work; defaults to the
            Flask-scoped session.
        """
        self._session = session

    @property
    def session(self) -> Session:
        return self._session if self._session is not None else cast(Session, db.session)

    def _updatable_fields(self) -> set[str]:
        return set()

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so its primary key is available."""
        self.session.add(instance)
        self.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        stmt = select(self.model).where(self.model.id == entity_id)  # type: ignore[attr-defined]
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def update(self, instance: E, **fields: Any) -> E:
        """Assign whitelisted attributes (running ``@validates``) and flush.

        :raises ValueError: On keys outside ``_updatable_fields``.
        """
        unknown = sorted(set(fields) - self._updatable_fields())
        if unknown:
            raise ValueError(f"Unknown or non-updatable fields: {unknown}")
        for key, value in fields.items():
            setattr(instance, key, value)
        self.flush()
        return instance

    def flush(self) -> None:
        self.session.flush()
