"""SQLRefreshTokenStore against SQLite: each call commits its own Unit of Work."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from careerpilot.infra.sql import SQLRefreshTokenStore
from careerpilot.models import RefreshToken
from careerpilot.services._shared.ports import RefreshTokenRecord, RotationResult
from tests.factories.user import UserFactory

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


def _record(jti: str, *, days: int = 7, created: datetime = NOW) -> RefreshTokenRecord:
    return RefreshTokenRecord(
        jti=jti, created_at=created, expires_at=created + timedelta(days=days)
    )


@pytest.fixture
def store(db) -> SQLRefreshTokenStore:
    return SQLRefreshTokenStore()


@pytest.fixture
def uid(db) -> str:
    return str(UserFactory().id)


def test_register_persists_rows(store, uid, session):
    store.register(user_id=uid, record=_record("a"))
    store.register(user_id=uid, record=_record("b", created=NOW + timedelta(seconds=1)))

    records = store.list_for_user(uid)
    assert [r.jti for r in records] == ["a", "b"]
    assert records[0].expires_at == NOW + timedelta(days=7)
    assert session.query(RefreshToken).count() == 2


def test_rotate_is_a_compare_and_set(store, uid):
    """The second rotation of the same jti matches no row and changes nothing."""
    store.register(user_id=uid, record=_record("a"))
    later = NOW + timedelta(minutes=1)

    first = store.rotate(user_id=uid, old_jti="a", now=later, new_record=_record("b"))
    second = store.rotate(user_id=uid, old_jti="a", now=later, new_record=_record("c"))

    assert first is RotationResult.OK
    assert second is RotationResult.INVALIDATED
    by_jti = {r.jti: r for r in store.list_for_user(uid)}
    assert set(by_jti) == {"a", "b"}
    assert by_jti["a"].invalidated is True
    assert by_jti["b"].invalidated is False


def test_rotate_classifies_rejections(store, uid):
    store.register(user_id=uid, record=_record("short", days=1))

    assert store.rotate(
        user_id=uid, old_jti="never-issued", now=NOW, new_record=_record("x")
    ) is RotationResult.NOT_FOUND
    assert store.rotate(
        user_id=uid, old_jti="short", now=NOW + timedelta(days=2), new_record=_record("y")
    ) is RotationResult.EXPIRED
    assert [r.jti for r in store.list_for_user(uid)] == ["short"]


def test_rotate_does_not_cross_users(store, uid):
    other = str(UserFactory().id)
    store.register(user_id=uid, record=_record("a"))

    result = store.rotate(user_id=other, old_jti="a", now=NOW, new_record=_record("b"))

    assert result is RotationResult.NOT_FOUND
    assert store.list_for_user(uid)[0].invalidated is False


def test_successful_rotation_prunes_stale_rows(store, uid):
    store.register(user_id=uid, record=_record("expiring", days=1))
    store.register(user_id=uid, record=_record("current"))
    store.register(user_id=uid, record=_record("other-device"))

    result = store.rotate(
        user_id=uid,
        old_jti="current",
        now=NOW + timedelta(days=2),
        new_record=_record("next", created=NOW + timedelta(days=2)),
    )

    assert result is RotationResult.OK
    assert [r.jti for r in store.list_for_user(uid)] == ["current", "other-device", "next"]


def test_revoke_and_revoke_all(store, uid):
    store.register(user_id=uid, record=_record("a"))
    store.register(user_id=uid, record=_record("b"))

    assert store.revoke(user_id=uid, jti="a") is True
    assert store.revoke(user_id=uid, jti="a") is False
    assert store.revoke_all_for_user(uid) == 1
    assert all(r.invalidated for r in store.list_for_user(uid))


def test_prune_across_users(store, uid):
    other = str(UserFactory().id)
    store.register(user_id=uid, record=_record("a"))
    store.register(user_id=other, record=_record("b", days=1))
    store.revoke(user_id=uid, jti="a")

    assert store.prune(now=NOW + timedelta(days=2)) == 2
    assert store.list_for_user(uid) == []
    assert store.list_for_user(other) == []
