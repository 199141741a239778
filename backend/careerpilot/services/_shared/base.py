"""Plumbing shared by application services: request context, UoW factories, clock."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any

from careerpilot.services._shared.ports import utcnow
from careerpilot.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)


@dataclass(slots=True)
class ServiceContext:
    """Who is calling and from where; filled in by the HTTP layer, empty in the CLI."""

    actor_id: int | None = None
    request_id: str | None = None
    remote_addr: str | None = None


class BaseService:
    """
    Parent of the services; holds no state beyond the caller's context.

    Notes
    -----
    Subclasses open a Unit of Work per use case through :meth:`rw_uow` or
    :meth:`ro_uow` and read time only through :meth:`now_utc`, which the
    tests freeze.
    """

    read_isolation = "READ COMMITTED"

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx if ctx is not None else ServiceContext()

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    def ro_uow(
        self, *, isolation: str | None = None, enforce_db_readonly: bool = True
    ) -> SQLAlchemyReadOnlyUnitOfWork:
        """
        :param isolation: Overrides :attr:`read_isolation` for this scope.
        :param enforce_db_readonly: Ask the database for a read-only transaction too.
        """
        return SQLAlchemyReadOnlyUnitOfWork(
            isolation_level=isolation or self.read_isolation,
            enforce_db_readonly=enforce_db_readonly,
        )

    def log_extra(self, **fields: Any) -> dict[str, Any]:
        """``extra=`` payload for a log call, stamped with the client address."""
        if self.ctx.remote_addr:
            fields.setdefault("remote_addr", self.ctx.remote_addr)
        return fields

    @staticmethod
    def now_utc() -> datetime:
        return utcnow()
