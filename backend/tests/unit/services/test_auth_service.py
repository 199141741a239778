# tests/unit/services/test_auth_service.py
from __future__ import annotations

import logging
import threading
from collections import Counter
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from freezegun import freeze_time

from careerpilot.infra.sql import SQLRefreshTokenStore
from careerpilot.models import User
from careerpilot.models.user import USERNAME_MAX_LENGTH
from careerpilot.services._shared.base import ServiceContext
from careerpilot.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ReplayDetectedError,
    UserNotFoundError,
)
from careerpilot.services._shared.ports import InMemoryDenylistStore, generate_jti
from careerpilot.services.auth import (
    AuthService,
    LoginIn,
    LogoutIn,
    OAuthProfileIn,
    RefreshIn,
    SignupIn,
    TokenPairOut,
)
from tests.factories.user import DEFAULT_PASSWORD, UserFactory


# ------------------------------ Helpers ----------------------------------- #
def _login(service: AuthService, email: str) -> TokenPairOut:
    return service.login(LoginIn(email=email, password=DEFAULT_PASSWORD))


def _refresh(service: AuthService, pair: TokenPairOut) -> TokenPairOut:
    return service.refresh(RefreshIn(refresh_token=pair.refresh_token))


def _jti(service: AuthService, pair: TokenPairOut) -> str:
    return service.tokens.decode_refresh_token(pair.refresh_token).jti


def _records(service: AuthService, pair: TokenPairOut) -> dict:
    return {r.jti: r for r in service.refresh_store.list_for_user(str(pair.user.id))}


@pytest.fixture()
def email(user) -> str:
    return user.email


@pytest.fixture()
def sql_service(db, issuer) -> AuthService:
    """AuthService persisting refresh records in the ``refresh_tokens`` table."""
    return AuthService(
        token_provider=issuer,
        refresh_store=SQLRefreshTokenStore(),
        denylist_store=InMemoryDenylistStore(),
    )


# ----------------------------- Issuance ----------------------------------- #
def test_signup_creates_user_and_registers_refresh_record(auth_service):
    pair = auth_service.signup(
        SignupIn(email="New@Example.com", username="newbie", password="long-enough")
    )

    assert pair.user.email == "new@example.com"
    assert pair.user.is_verified is True
    records = _records(auth_service, pair)
    assert list(records) == [_jti(auth_service, pair)]
    assert records[_jti(auth_service, pair)].expires_at == pair.refresh_expires_at


def test_signup_rejects_taken_email_and_username(auth_service, user):
    with pytest.raises(ConflictError, match="email"):
        auth_service.signup(SignupIn(email=user.email, username="fresh", password="long-enough"))
    with pytest.raises(ConflictError, match="username"):
        auth_service.signup(
            SignupIn(email="fresh@example.com", username=user.username, password="long-enough")
        )


def test_login_issues_token_pair(auth_service, email):
    pair = _login(auth_service, email)

    access = auth_service.tokens.decode_access_token(pair.access_token)
    assert access.user_id == str(pair.user.id)
    assert access.claims["fresh"] is True
    assert _records(auth_service, pair)[_jti(auth_service, pair)].invalidated is False


def test_login_invalid_credentials(auth_service, email):
    with pytest.raises(InvalidCredentialsError):
        auth_service.login(LoginIn(email=email, password="wrong"))
    with pytest.raises(InvalidCredentialsError):
        auth_service.login(LoginIn(email="missing@example.com", password=DEFAULT_PASSWORD))


def test_two_logins_are_independent_sessions(auth_service, email):
    """Rotating one device's token leaves the other device's token usable."""
    laptop = _login(auth_service, email)
    phone = _login(auth_service, email)
    assert _jti(auth_service, laptop) != _jti(auth_service, phone)

    _refresh(auth_service, laptop)

    assert _records(auth_service, phone)[_jti(auth_service, phone)].invalidated is False
    assert isinstance(_refresh(auth_service, phone), TokenPairOut)


# ------------------------------ Rotation ---------------------------------- #
def test_refresh_rotates_and_blocks_reuse(auth_service, email):
    """Login, rotate, replay the first token, then the rotated one is dead too."""
    r1 = _login(auth_service, email)

    r2 = _refresh(auth_service, r1)
    assert r2.refresh_token != r1.refresh_token
    records = _records(auth_service, r1)
    assert records[_jti(auth_service, r1)].invalidated is True
    assert records[_jti(auth_service, r2)].invalidated is False

    with pytest.raises(ReplayDetectedError) as excinfo:
        _refresh(auth_service, r1)
    assert excinfo.value.revoked == 1
    assert all(r.invalidated for r in _records(auth_service, r1).values())

    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, r2)


def test_replay_revokes_every_session_of_the_user(auth_service, email):
    sessions = [_login(auth_service, email) for _ in range(3)]
    rotated = _refresh(auth_service, sessions[0])

    with pytest.raises(ReplayDetectedError) as excinfo:
        _refresh(auth_service, sessions[0])

    assert excinfo.value.revoked == 3
    for pair in (*sessions[1:], rotated):
        with pytest.raises(ReplayDetectedError):
            _refresh(auth_service, pair)


def test_replay_leaves_other_users_alone(auth_service, email):
    victim = _login(auth_service, email)
    other_user = UserFactory()
    bystander = _login(auth_service, other_user.email)

    _refresh(auth_service, victim)
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, victim)

    assert isinstance(_refresh(auth_service, bystander), TokenPairOut)


def test_expired_refresh_token_is_invalid_not_replay(auth_service, email):
    with freeze_time("2026-03-01 12:00:00"):
        pair = _login(auth_service, email)

    with freeze_time("2026-03-08 12:00:01"), pytest.raises(InvalidTokenError):
        _refresh(auth_service, pair)

    # The record was never touched; no mass revocation happened
    (record,) = auth_service.refresh_store.list_for_user(str(pair.user.id))
    assert record.invalidated is False


def test_token_signed_already_expired_is_invalid(auth_service, user):
    issued = auth_service.tokens.issue_refresh_token(user.id, expires_delta=timedelta(seconds=-1))

    with pytest.raises(InvalidTokenError):
        auth_service.refresh(RefreshIn(refresh_token=issued.token))


def test_never_issued_jti_triggers_mass_revocation(auth_service, app, email):
    """A validly signed token with an unknown jti is treated as theft."""
    real = _login(auth_service, email)
    now = datetime.now(UTC)
    forged = jwt.encode(
        {
            "iss": app.config["JWT_ISSUER"],
            "sub": str(real.user.id),
            "jti": generate_jti(),
            "type": "refresh",
            "iat": now,
            "exp": now + timedelta(days=7),
        },
        app.config["JWT_REFRESH_SECRET"],
        algorithm="HS256",
    )

    with pytest.raises(ReplayDetectedError):
        auth_service.refresh(RefreshIn(refresh_token=forged))
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, real)


def test_access_token_cannot_be_used_to_refresh(auth_service, email):
    pair = _login(auth_service, email)
    with pytest.raises(InvalidTokenError):
        auth_service.refresh(RefreshIn(refresh_token=pair.access_token))


def test_refresh_fails_if_user_deleted(auth_service, session, user):
    pair = _login(auth_service, user.email)

    session.delete(user)
    session.commit()

    with pytest.raises(UserNotFoundError):
        _refresh(auth_service, pair)


def test_rotation_prunes_stale_records(auth_service, email):
    first = _login(auth_service, email)
    second = _refresh(auth_service, first)
    third = _refresh(auth_service, second)

    # ``first`` was consumed two rotations ago and has been swept
    assert set(_records(auth_service, third)) == {
        _jti(auth_service, second),
        _jti(auth_service, third),
    }


def test_concurrent_refreshes_of_one_token_have_a_single_winner(app, auth_service, email):
    """Parallel refreshes of the same token: one pair, every other caller flagged as replay."""
    pair = _login(auth_service, email)
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes: list[object] = []
    lock = threading.Lock()

    def _attempt() -> None:
        with app.app_context():
            barrier.wait()
            try:
                outcome: object = _refresh(auth_service, pair)
            except ReplayDetectedError as exc:
                outcome = exc
        with lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=_attempt) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)

    kinds = Counter(type(o).__name__ for o in outcomes)
    assert kinds == {"TokenPairOut": 1, "ReplayDetectedError": workers - 1}
    # The losers revoked everything, including the winner's fresh token
    (winner,) = [o for o in outcomes if isinstance(o, TokenPairOut)]
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, winner)


def test_replay_is_logged_as_warning(auth_service, email, caplog):
    pair = _login(auth_service, email)
    _refresh(auth_service, pair)

    caplog.set_level(logging.INFO, logger="careerpilot.services.auth.service")
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, pair)

    (record,) = [r for r in caplog.records if r.getMessage() == "auth.refresh.replay_detected"]
    assert record.levelno == logging.WARNING
    assert record.user_id == pair.user.id
    assert record.result == "invalidated"
    assert pair.refresh_token not in caplog.text


def test_replay_warning_carries_client_address(auth_service, email, caplog):
    auth_service.ctx = ServiceContext(remote_addr="203.0.113.7")
    pair = _login(auth_service, email)
    _refresh(auth_service, pair)

    caplog.set_level(logging.WARNING, logger="careerpilot.services.auth.service")
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, pair)

    (record,) = [r for r in caplog.records if r.getMessage() == "auth.refresh.replay_detected"]
    assert record.remote_addr == "203.0.113.7"


# ------------------------- SQL-backed rotation ---------------------------- #
def test_sql_store_single_use_and_escalation(sql_service, email):
    r1 = _login(sql_service, email)
    r2 = _refresh(sql_service, r1)

    with pytest.raises(ReplayDetectedError):
        _refresh(sql_service, r1)
    with pytest.raises(ReplayDetectedError):
        _refresh(sql_service, r2)

    records = _records(sql_service, r1)
    assert set(records) == {_jti(sql_service, r1), _jti(sql_service, r2)}
    assert all(r.invalidated for r in records.values())


def test_sql_store_independent_sessions(sql_service, email):
    laptop = _login(sql_service, email)
    phone = _login(sql_service, email)

    _refresh(sql_service, laptop)

    assert isinstance(_refresh(sql_service, phone), TokenPairOut)


# ------------------------------- Logout ----------------------------------- #
def test_logout_denylists_access_and_revokes_refresh(auth_service, email):
    pair = _login(auth_service, email)
    access_jti = auth_service.tokens.decode_access_token(pair.access_token).jti

    out = auth_service.logout(
        LogoutIn(refresh_token=pair.refresh_token, access_token=pair.access_token)
    )

    assert out.revoked == 1
    assert auth_service.denylist.is_revoked(access_jti) is True
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, pair)


def test_logout_all_sessions(auth_service, email):
    current = _login(auth_service, email)
    _login(auth_service, email)

    out = auth_service.logout(LogoutIn(refresh_token=current.refresh_token, all_sessions=True))

    assert out.revoked == 2
    assert all(r.invalidated for r in _records(auth_service, current).values())


def test_logout_ignores_unverifiable_tokens(auth_service):
    out = auth_service.logout(LogoutIn(refresh_token="garbage", access_token="garbage"))
    assert out.revoked == 0


def test_logout_skips_a_signed_token_with_non_numeric_subject(auth_service, email):
    pair = _login(auth_service, email)
    odd = auth_service.tokens.issue_refresh_token("not-a-user-id")

    out = auth_service.logout(
        LogoutIn(refresh_token=odd.token, access_token=pair.access_token, all_sessions=True)
    )

    # The access token still identifies the user whose sessions are revoked
    assert out.revoked == 1
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, pair)


# ------------------------------ Identity ---------------------------------- #
def test_whoami(auth_service, user):
    assert auth_service.whoami(str(user.id)).email == user.email
    with pytest.raises(UserNotFoundError):
        auth_service.whoami(user.id + 1000)
    with pytest.raises(InvalidTokenError):
        auth_service.whoami("not-a-number")


def test_oauth_login_creates_then_links(auth_service, user):
    created = auth_service.login_with_oauth(
        OAuthProfileIn(email="grace@example.com", name="grace", subject="google-1")
    )
    assert created.user.username == "grace"
    assert created.user.is_verified is True

    linked = auth_service.login_with_oauth(
        OAuthProfileIn(email=user.email, name="grace", subject="google-2")
    )
    assert linked.user.id == user.id
    # ``grace`` is taken, so the existing username is kept
    assert linked.user.username == user.username
    assert len(auth_service.refresh_store.list_for_user(str(user.id))) == 1


def test_oauth_keeps_an_existing_provider_link(auth_service, session, user):
    first = OAuthProfileIn(email=user.email, name="", subject="google-A")
    auth_service.login_with_oauth(first)

    again = auth_service.login_with_oauth(
        OAuthProfileIn(email=user.email, name="", subject="google-B")
    )

    assert again.user.id == user.id
    assert session.get(User, user.id).google_id == "google-A"


def test_oauth_finds_the_account_by_subject_after_an_email_change(auth_service, user):
    auth_service.login_with_oauth(OAuthProfileIn(email=user.email, name="", subject="google-7"))

    moved = auth_service.login_with_oauth(
        OAuthProfileIn(email="renamed@example.com", name="", subject="google-7")
    )

    assert moved.user.id == user.id
    assert moved.user.email == user.email


def test_oauth_name_is_cut_to_the_username_column(auth_service, user):
    long_name = "x" * (USERNAME_MAX_LENGTH + 30)

    linked = auth_service.login_with_oauth(
        OAuthProfileIn(email=user.email, name=long_name, subject="google-9")
    )
    created = auth_service.login_with_oauth(
        OAuthProfileIn(email="long@example.com", name=long_name, subject="google-10")
    )

    assert linked.user.username == "x" * USERNAME_MAX_LENGTH
    assert len(created.user.username) <= USERNAME_MAX_LENGTH


# ----------------------------- Operations --------------------------------- #
def test_revoke_all_sessions_by_email(auth_service, email):
    pair = _login(auth_service, email)
    _login(auth_service, email)

    assert auth_service.revoke_all_sessions(email) == 2
    with pytest.raises(ReplayDetectedError):
        _refresh(auth_service, pair)
    with pytest.raises(NotFoundError):
        auth_service.revoke_all_sessions("ghost@example.com")


def test_prune_sessions(auth_service, email):
    pair = _login(auth_service, email)
    auth_service.logout(LogoutIn(refresh_token=pair.refresh_token))

    assert auth_service.prune_sessions() == 1
    assert _records(auth_service, pair) == {}
