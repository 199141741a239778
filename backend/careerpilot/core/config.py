"""Settings classes read from the environment (and `.env`), picked by ``APP_ENV``."""

from __future__ import annotations

import os
from collections.abc import Mapping
from datetime import timedelta
from typing import Any, Final

from dotenv import load_dotenv

from careerpilot.services._shared.errors import ConfigurationError

ENV_VAR: Final[str] = "APP_ENV"

REFRESH_STORE_BACKENDS: Final[frozenset[str]] = frozenset({"sql", "redis", "memory"})
_TRUTHY: Final[frozenset[str]] = frozenset({"1", "true", "yes", "y", "on"})


load_dotenv()


def env_bool(name: str, default: bool = False) -> bool:
    """``1``, ``true``, ``yes``, ``y`` and ``on`` (any case) are true; unset gives ``default``."""
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in _TRUTHY


def env_seconds(name: str, default: timedelta) -> timedelta:
    """Read a lifetime expressed in seconds, falling back to ``default``."""
    val = os.getenv(name)
    if val is None or not val.strip():
        return default
    return timedelta(seconds=int(val))


class BaseConfig:
    """Settings common to every environment.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Mount point of the versioned blueprints.
    SECRET_KEY: str | None
        Flask secret used for session signing.
    JWT_ACCESS_SECRET: str | None
        HMAC key for access tokens. Also handed to ``flask-jwt-extended`` as
        ``JWT_SECRET_KEY`` so protected routes verify the same tokens.
    JWT_REFRESH_SECRET: str | None
        HMAC key for refresh tokens. Must differ from the access secret.
    ACCESS_TOKEN_EXPIRES / REFRESH_TOKEN_EXPIRES: timedelta
        Token lifetimes (15 minutes / 7 days).
    ACCESS_COOKIE_NAME / REFRESH_COOKIE_NAME: str
        Cookie names carrying the session credentials.
    SESSION_COOKIE_SECURE_FLAG: bool
        ``Secure`` attribute of the credential cookies.
    REFRESH_STORE_BACKEND: str
        ``sql`` (default), ``redis`` or ``memory``.
    REDIS_URL: str | None
        Redis connection string; enables the Redis denylist when set.
    SQLALCHEMY_DATABASE_URI: str
        From ``DATABASE_URL``; SQLite file in the working directory otherwise.
    LOG_LEVEL: str
        Level of the root JSON logger.
    CORS_ORIGINS: str
        Comma-separated list of frontend origins allowed to send cookies.
    """

    API_BASE_PREFIX = "/api"

    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY")
    JWT_ACCESS_SECRET = os.getenv("JWT_ACCESS_SECRET")
    JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET")
    JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
    JWT_ISSUER = os.getenv("JWT_ISSUER", "careerpilot")

    # Token lifetimes
    ACCESS_TOKEN_EXPIRES = env_seconds("ACCESS_TOKEN_EXPIRES_SECONDS", timedelta(minutes=15))
    REFRESH_TOKEN_EXPIRES = env_seconds("REFRESH_TOKEN_EXPIRES_SECONDS", timedelta(days=7))

    # flask-jwt-extended: where protected routes look for the access token
    JWT_TOKEN_LOCATION = ["cookies", "headers"]
    JWT_ACCESS_COOKIE_NAME = "token"
    JWT_COOKIE_CSRF_PROTECT = False  # SameSite=Strict cookies

    # Credential cookies
    ACCESS_COOKIE_NAME = "token"
    REFRESH_COOKIE_NAME = "refreshToken"
    SESSION_COOKIE_SECURE_FLAG = env_bool("SESSION_COOKIE_SECURE_FLAG", True)
    SESSION_COOKIE_SAMESITE_POLICY = os.getenv("SESSION_COOKIE_SAMESITE_POLICY", "Strict")

    # Refresh token persistence
    REFRESH_STORE_BACKEND = os.getenv("REFRESH_STORE_BACKEND", "sql").strip().lower()
    REDIS_URL = os.getenv("REDIS_URL") or None

    # Rate limiting (flask-limiter)
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per minute")
    AUTH_REFRESH_RATE_LIMIT = os.getenv("AUTH_REFRESH_RATE_LIMIT", "30 per minute")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)

    # DB
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./dev.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging & CORS
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:3000")

    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Local development.

    Ships placeholder signing secrets so ``flask run`` works out of the box
    and sends cookies over plain HTTP.
    """

    DEBUG = env_bool("FLASK_DEBUG", True)
    SECRET_KEY = BaseConfig.SECRET_KEY or "dev-secret-key"
    JWT_ACCESS_SECRET = BaseConfig.JWT_ACCESS_SECRET or "dev-access-secret-change-me-0123456789"
    JWT_REFRESH_SECRET = BaseConfig.JWT_REFRESH_SECRET or "dev-refresh-secret-change-me-9876543210"
    SESSION_COOKIE_SECURE_FLAG = env_bool("SESSION_COOKIE_SECURE_FLAG", False)
    CORS_MAX_AGE = 600


class TestingConfig(BaseConfig):
    """pytest: fixed secrets, SQLite in memory (or ``TEST_DATABASE_URL``), no rate limits."""

    TESTING = True
    DEBUG = False
    SECRET_KEY = "test-secret-key"
    JWT_ACCESS_SECRET = "test-access-secret-0123456789abcdef"
    JWT_REFRESH_SECRET = "test-refresh-secret-fedcba9876543210"
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    SESSION_COOKIE_SECURE_FLAG = False
    REFRESH_STORE_BACKEND = "sql"
    REDIS_URL = None
    RATELIMIT_ENABLED = False
    PROPAGATE_EXCEPTIONS = True


class ProductionConfig(BaseConfig):
    """Production. There are no fallback secrets, so a missing signing secret
    aborts startup in :func:`ensure_signing_secrets`.
    """

    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False
    SESSION_COOKIE_SECURE_FLAG = True


CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Config class named by ``APP_ENV``; unknown or unset means development."""
    return CONFIG_MAP.get(os.getenv(ENV_VAR, "").strip().lower(), DevelopmentConfig)


def ensure_signing_secrets(config: Mapping[str, Any]) -> None:
    """Validate the security-critical settings before the app starts.

    :param config: Flask config (or any mapping of settings).
    :raises ConfigurationError: If a signing secret is missing, both secrets
        are equal, or the refresh store backend is unknown.
    """
    access = config.get("JWT_ACCESS_SECRET")
    refresh = config.get("JWT_REFRESH_SECRET")
    missing = [
        name
        for name, value in (("JWT_ACCESS_SECRET", access), ("JWT_REFRESH_SECRET", refresh))
        if not value
    ]
    if missing:
        raise ConfigurationError(f"Missing signing secret(s): {', '.join(missing)}")
    if access == refresh:
        raise ConfigurationError("JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must differ.")

    backend = str(config.get("REFRESH_STORE_BACKEND", "sql")).lower()
    if backend not in REFRESH_STORE_BACKENDS:
        raise ConfigurationError(f"Unknown REFRESH_STORE_BACKEND {backend!r}")
    if backend == "redis" and not config.get("REDIS_URL"):
        raise ConfigurationError("REFRESH_STORE_BACKEND=redis requires REDIS_URL.")
