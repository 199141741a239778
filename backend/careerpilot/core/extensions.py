"""Extension singletons, created unbound and attached in :func:`init_app`."""

from __future__ import annotations

import redis  # type: ignore[import-untyped]
from flask import Flask
from flask_jwt_extended import JWTManager
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

# Constraint names are stable across dialects, which Alembic needs on SQLite
NAMING_CONVENTION = {
    "pk": "pk_%(table_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
}

db = SQLAlchemy(
    metadata=MetaData(naming_convention=NAMING_CONVENTION),
    session_options={"autoflush": False},
)
migrate = Migrate(render_as_batch=True)
jwt = JWTManager()
limiter = Limiter(key_func=get_remote_address)

# Set by init_app when REDIS_URL is configured
redis_client: redis.Redis | None = None


def _connect_redis(url: str) -> redis.Redis:
    client = redis.Redis.from_url(url)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Redis at {url!r} is unreachable") from exc
    return client


def init_app(app: Flask) -> None:
    """
    Bind the extensions to ``app``.

    Flask-JWT-Extended verifies access tokens only, so its
    ``JWT_SECRET_KEY`` is the access secret; refresh tokens are handled by
    :class:`~careerpilot.infra.jwt.JWTTokenIssuer` with their own secret.

    :raises RuntimeError: ``REDIS_URL`` is set but Redis does not answer.
    """
    global redis_client

    db.init_app(app)
    # Register the mappers before Flask-Migrate inspects the metadata
    from careerpilot import models  # noqa: F401

    migrate.init_app(app, db)

    app.config["JWT_SECRET_KEY"] = app.config["JWT_ACCESS_SECRET"]
    app.config.setdefault("JWT_ALGORITHM", "HS256")
    jwt.init_app(app)
    limiter.init_app(app)

    url = app.config.get("REDIS_URL")
    redis_client = _connect_redis(url) if url else None
    if redis_client is None:
        app.extensions.pop("redis_client", None)
    else:
        app.extensions["redis_client"] = redis_client


def get_redis() -> redis.Redis:
    """:raises RuntimeError: When no Redis client was configured (``REDIS_URL`` unset)."""
    if redis_client is None:
        raise RuntimeError("Redis is not configured; set REDIS_URL")
    return redis_client
