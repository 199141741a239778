"""Pytest fixtures configuring the app, a fresh schema per test and factories.

The application is built once per session with :class:`TestingConfig`
(in-memory SQLite). Every test gets its own ``create_all``/``drop_all`` so the
refresh token stores, which commit through their own Unit of Work, never leak
rows into the next case.
"""

from __future__ import annotations

import os

import fakeredis
import pytest

from careerpilot.core.config import TestingConfig
from careerpilot.core.extensions import db as _db
from careerpilot.factory import create_app
from careerpilot.infra.jwt import JWTTokenIssuer
from careerpilot.services._shared.ports import (
    InMemoryDenylistStore,
    InMemoryRefreshTokenStore,
)
from careerpilot.services.auth import AuthService
from tests.factories.user import DEFAULT_PASSWORD, UserFactory


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestingConfig` applied and logging
        noise reduced.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    app = create_app(TestingConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture()
def db(app):
    """Create every table inside an application context, drop them afterwards.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        try:
            yield _db
        finally:
            _db.session.remove()
            _db.drop_all()


@pytest.fixture()
def session(db):
    """Return the Flask-scoped session used by the Units of Work."""
    return db.session


@pytest.fixture()
def client(app, db):
    """Flask test client sharing the per-test schema."""
    return app.test_client()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(request):
    """Wire Factory Boy's session helper when the test uses the database."""
    from tests.factories import SQLAlchemySession

    if "db" not in request.fixturenames:
        yield
        return
    SQLAlchemySession.set(request.getfixturevalue("session"))
    try:
        yield
    finally:
        SQLAlchemySession.set(None)


@pytest.fixture()
def user(session):
    """Persisted user whose password is :data:`DEFAULT_PASSWORD`."""
    return UserFactory(password=DEFAULT_PASSWORD)


@pytest.fixture()
def issuer(app) -> JWTTokenIssuer:
    """Token issuer configured exactly like the running app."""
    return JWTTokenIssuer.from_config(app.config)


@pytest.fixture()
def memory_store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture()
def auth_service(db, issuer, memory_store) -> AuthService:
    """AuthService wired to in-memory stores (users still live in SQLite)."""
    return AuthService(
        token_provider=issuer,
        refresh_store=memory_store,
        denylist_store=InMemoryDenylistStore(),
    )


@pytest.fixture()
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r
