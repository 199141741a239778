"""Session security wiring: token issuer, refresh store, access denylist.

The concrete adapters are chosen from configuration once per app and kept in
``app.extensions["auth"]``. Flask-JWT-Extended verifies access tokens on
protected routes; its callbacks are pointed at the denylist and answer with
RFC 7807 problems.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Any

from flask import Flask, current_app

from careerpilot.core import extensions
from careerpilot.core.extensions import get_redis, jwt
from careerpilot.infra.jwt import JWTTokenIssuer
from careerpilot.services._shared.base import ServiceContext
from careerpilot.services._shared.errors import ConfigurationError
from careerpilot.services._shared.ports import (
    InMemoryDenylistStore,
    InMemoryRefreshTokenStore,
    RefreshTokenStore,
    TokenDenylistStore,
)

log = logging.getLogger(__name__)


@dataclass(slots=True)
class AuthComponents:
    """Per-app collaborators of :class:`~careerpilot.services.auth.AuthService`."""

    issuer: JWTTokenIssuer
    refresh_store: RefreshTokenStore
    denylist: TokenDenylistStore


def build_refresh_store(backend: str) -> RefreshTokenStore:
    """
    Return the refresh token store for ``REFRESH_STORE_BACKEND``.

    :raises ConfigurationError: On an unknown backend name.
    """
    if backend == "sql":
        from careerpilot.infra.sql import SQLRefreshTokenStore

        return SQLRefreshTokenStore()
    if backend == "redis":
        from careerpilot.infra.redis import RedisRefreshTokenStore

        return RedisRefreshTokenStore(get_redis())
    if backend == "memory":
        return InMemoryRefreshTokenStore()
    raise ConfigurationError(f"Unknown refresh store backend: {backend!r}")


def build_denylist() -> TokenDenylistStore:
    """Shared Redis denylist when Redis is configured, else process-local."""
    if extensions.redis_client is not None:
        from careerpilot.infra.redis import RedisTokenDenylistStore

        return RedisTokenDenylistStore(extensions.redis_client)
    return InMemoryDenylistStore()


def get_auth_components() -> AuthComponents:
    """Return the collaborators registered on the current app."""
    return current_app.extensions["auth"]


def make_auth_service(ctx: ServiceContext | None = None):
    """Return an :class:`~careerpilot.services.auth.AuthService` for the current app."""
    from careerpilot.services.auth import AuthService

    components = get_auth_components()
    return AuthService(
        token_provider=components.issuer,
        refresh_store=components.refresh_store,
        denylist_store=components.denylist,
        ctx=ctx,
    )


def _unauthorized(code: str, message: str):
    from careerpilot.core.errors import APIError, problem_response

    err = APIError(message, status_code=HTTPStatus.UNAUTHORIZED, code=code)
    return problem_response(err.to_problem()), HTTPStatus.UNAUTHORIZED


def init_app(app: Flask) -> None:
    """
    Build the auth collaborators and hook Flask-JWT-Extended callbacks.

    :raises ConfigurationError: If a signing secret is missing.
    """
    backend = app.config.get("REFRESH_STORE_BACKEND", "sql")
    app.extensions["auth"] = AuthComponents(
        issuer=JWTTokenIssuer.from_config(app.config),
        refresh_store=build_refresh_store(backend),
        denylist=build_denylist(),
    )
    log.info(
        "Auth wiring ready: refresh_store=%s denylist=%s",
        backend,
        "redis" if extensions.redis_client is not None else "memory",
    )

    @jwt.token_in_blocklist_loader
    def _is_access_token_revoked(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]) -> bool:
        jti = jwt_payload.get("jti")
        return not jti or get_auth_components().denylist.is_revoked(jti)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return _unauthorized("unauthorized", "Authentication required.")

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return _unauthorized("invalid_token", "Invalid token.")

    @jwt.expired_token_loader
    def _expired_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _unauthorized("token_expired", "Token expired.")

    @jwt.revoked_token_loader
    def _revoked_token(jwt_header: dict[str, Any], jwt_payload: dict[str, Any]):
        return _unauthorized("token_revoked", "Token has been revoked.")
