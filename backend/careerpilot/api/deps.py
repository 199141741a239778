"""Per-request plumbing for the route handlers."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request
from flask_jwt_extended import get_jwt_identity, verify_jwt_in_request

from careerpilot.core.logger import ensure_request_id
from careerpilot.core.security import make_auth_service
from careerpilot.services._shared.base import ServiceContext
from careerpilot.services.auth import AuthService

F = TypeVar("F", bound=Callable[..., Any])


def get_auth_service() -> AuthService:
    ctx = ServiceContext(
        actor_id=g.get("actor_id"),
        request_id=ensure_request_id(),
        remote_addr=request.remote_addr,
    )
    return make_auth_service(ctx)


def require_auth(func: F) -> F:
    """
    Reject the request unless it carries a valid, non-denylisted access token.

    The token may come from the access cookie or an ``Authorization: Bearer``
    header; its subject is kept on :data:`flask.g` as ``actor_id``.
    """

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        verify_jwt_in_request()
        g.actor_id = int(get_jwt_identity())
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def json_response(payload: Any, *, status: int = 200) -> Response:
    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Log the handler's wall time at DEBUG as ``request.elapsed``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        started = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            current_app.logger.debug(
                "request.elapsed",
                extra={
                    "endpoint": request.endpoint,
                    "elapsed_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )

    return wrapper  # type: ignore[return-value]
