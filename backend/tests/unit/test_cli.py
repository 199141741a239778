"""Tests for the ``flask sessions`` command group."""

from __future__ import annotations

from careerpilot.core.security import get_auth_components, make_auth_service
from careerpilot.services.auth import LoginIn
from tests.factories.user import DEFAULT_PASSWORD


def _login(email: str):
    return make_auth_service().login(LoginIn(email=email, password=DEFAULT_PASSWORD))


def test_revoke_command(app, user):
    email = user.email
    pair = _login(email)
    _login(email)
    runner = app.test_cli_runner()

    result = runner.invoke(args=["sessions", "revoke", email, "--yes"])

    assert result.exit_code == 0, result.output
    assert "Revoked 2 active refresh token(s)" in result.output
    records = get_auth_components().refresh_store.list_for_user(str(pair.user.id))
    assert all(r.invalidated for r in records)


def test_revoke_command_unknown_email(app, db):
    result = app.test_cli_runner().invoke(args=["sessions", "revoke", "ghost@example.com", "--yes"])

    assert result.exit_code != 0
    assert "User not found" in result.output


def test_revoke_command_asks_for_confirmation(app, user):
    email = user.email
    _login(email)

    result = app.test_cli_runner().invoke(args=["sessions", "revoke", email], input="n\n")

    assert result.exit_code != 0
    assert get_auth_components().refresh_store.list_for_user(str(user.id))[0].invalidated is False


def test_prune_command(app, user):
    pair = _login(user.email)
    make_auth_service().revoke_all_sessions(pair.user.email)

    result = app.test_cli_runner().invoke(args=["sessions", "prune"])

    assert result.exit_code == 0, result.output
    assert "Pruned 1 refresh token record(s)." in result.output
    assert get_auth_components().refresh_store.list_for_user(str(pair.user.id)) == []
