"""
SQLAlchemy Units of Work over the Flask-scoped session.

Two flavours share one repository container:

- :class:`SQLAlchemyUnitOfWork` commits on a clean exit. Refresh token
  rotation depends on it: the compare-and-set, the prune and the successor
  insert land in one transaction or not at all.
- :class:`SQLAlchemyReadOnlyUnitOfWork` never commits and refuses writes.
"""

from __future__ import annotations

import logging
from contextlib import suppress

from sqlalchemy import event, text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction, scoped_session

from careerpilot.core.extensions import db
from careerpilot.repositories import RefreshTokenRepository, UserRepository
from careerpilot.uow.base import UnitOfWork

log = logging.getLogger(__name__)

_WRITE_VERBS = ("insert", "update", "delete", "replace", "merge", "create", "alter", "drop")


class SQLAlchemyRepositoryContainer:
    """Repositories bound to one session: ``users`` and ``refresh_tokens``."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=session)
        self.refresh_tokens = RefreshTokenRepository(session=session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """Read-write scope: commit on success, roll back when the block raises."""

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # The session autobegins on its first statement
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except SQLAlchemyError:
            self.rollback()
            raise

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read scope used for lookups (credential checks, user existence).

    Parameters
    ----------
    isolation_level:
        ``SET TRANSACTION ISOLATION LEVEL`` value, applied on PostgreSQL and
        MySQL/MariaDB only. ``None`` keeps the connection default.
    enforce_db_readonly:
        Also issue ``SET TRANSACTION READ ONLY`` on those dialects.

    Notes
    -----
    Whatever the dialect, an ORM ``before_flush`` hook and a
    ``before_cursor_execute`` hook reject writes while the scope is open. If
    the session was already inside a transaction the scope joins it and
    leaves it open on exit; otherwise it owns the transaction and rolls it
    back.
    """

    _DIRECTIVE_DIALECTS = frozenset({"postgresql", "mysql", "mariadb"})

    def __init__(
        self,
        *,
        isolation_level: str | None = "READ COMMITTED",
        enforce_db_readonly: bool = True,
    ) -> None:
        super().__init__(session=db.session)
        self.isolation_level = isolation_level
        self.enforce_db_readonly = enforce_db_readonly
        self._owned: SessionTransaction | None = None
        self._hooks: list[tuple[object, str, object]] = []

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._owned = None
        with suppress(InvalidRequestError):
            self._owned = self.session.begin()

        conn = self.session.connection()
        self._install_guards(conn)
        if self._owned is not None and conn.dialect.name in self._DIRECTIVE_DIALECTS:
            self._apply_directives()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._owned is not None:
                self.session.rollback()
        finally:
            self._owned = None
            self._remove_guards()

    def commit(self) -> None:
        """:raises RuntimeError: Always; this scope cannot persist anything."""
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ------------------------------------------------------------------ #

    def _apply_directives(self) -> None:
        statements = []
        if self.isolation_level:
            statements.append(f"SET TRANSACTION ISOLATION LEVEL {self.isolation_level.upper()}")
        if self.enforce_db_readonly:
            statements.append("SET TRANSACTION READ ONLY")
        try:
            for stmt in statements:
                self.session.execute(text(stmt))
        except SQLAlchemyError as exc:
            log.warning("uow.readonly.directives_failed: %s", exc)

    def _install_guards(self, conn: Connection) -> None:
        def _block_flush(session, flush_context, instances):
            if session.new or session.dirty or session.deleted:
                raise RuntimeError("Read-only UnitOfWork: ORM flush blocked.")

        def _block_write(conn, cursor, statement, parameters, context, executemany):
            verb = statement.lstrip().split(None, 1)[0].lower() if statement else ""
            if verb.startswith(_WRITE_VERBS):
                raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {verb.upper()}")

        # Listen on this session instance, not on the scoped_session registry
        orm_session = self.session() if isinstance(self.session, scoped_session) else self.session
        self._hooks = [
            (orm_session, "before_flush", _block_flush),
            (conn, "before_cursor_execute", _block_write),
        ]
        for target, name, fn in self._hooks:
            event.listen(target, name, fn)

    def _remove_guards(self) -> None:
        for target, name, fn in self._hooks:
            with suppress(InvalidRequestError):
                event.remove(target, name, fn)
        self._hooks = []
