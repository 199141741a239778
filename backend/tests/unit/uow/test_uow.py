"""Unit of Work behaviour: commit/rollback and read-only guards."""

from __future__ import annotations

import pytest
from sqlalchemy import text

from careerpilot.models import User
from careerpilot.uow import SQLAlchemyReadOnlyUnitOfWork as ROuow
from careerpilot.uow import SQLAlchemyUnitOfWork as RWuow
from tests.factories.user import UserFactory


class TestSQLAlchemyUnitOfWork:
    def test_commits_on_clean_exit(self, db, session):
        with RWuow() as uow:
            user = UserFactory.build()
            uow.users.add(user)
            email = user.email

        session.remove()
        assert session.query(User).filter_by(email=email).count() == 1

    def test_rolls_back_when_block_raises(self, db, session):
        email = None
        with pytest.raises(RuntimeError), RWuow() as uow:
            user = UserFactory.build()
            uow.users.add(user)
            email = user.email
            raise RuntimeError("boom")

        assert session.query(User).filter_by(email=email).count() == 0


class TestSQLAlchemyReadOnlyUnitOfWork:
    def test_blocks_orm_flush_writes(self, db):
        with ROuow() as uow, pytest.raises(RuntimeError, match="ORM flush blocked"):
            uow.session.add(UserFactory.build())
            uow.session.flush()

    def test_blocks_core_dml(self, db):
        with ROuow() as uow, pytest.raises(RuntimeError, match="SQL statement blocked"):
            uow.session.execute(
                text("DELETE FROM refresh_tokens WHERE jti = :jti"), {"jti": "x"}
            )

    def test_allows_reads(self, db):
        UserFactory()
        with ROuow() as uow:
            assert uow.session.query(User).count() == 1

    def test_disallows_commit(self, db):
        with ROuow() as uow, pytest.raises(RuntimeError, match="does not allow commit"):
            uow.commit()

    def test_guards_are_removed_on_exit(self, db):
        with ROuow():
            pass
        with RWuow() as uow:
            uow.users.add(UserFactory.build())
