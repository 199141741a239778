"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from careerpilot.api.deps import json_response, timing
from careerpilot.core import extensions
from careerpilot.core.extensions import db

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database and (when configured) Redis health."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except SQLAlchemyError:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"

    payload = {
        "status": "ok",
        "db": db_status,
        "refresh_store": current_app.config.get("REFRESH_STORE_BACKEND", "sql"),
        "version": current_app.config.get("APP_VERSION", "dev"),
        "commit": current_app.config.get("APP_COMMIT", "unknown"),
    }
    if extensions.redis_client is not None:
        try:
            extensions.redis_client.ping()
            payload["redis"] = "ok"
        except RedisError:  # pragma: no cover - depends on Redis availability
            current_app.logger.exception("healthcheck.redis_error")
            payload["redis"] = "fail"
    if "fail" in (payload["db"], payload.get("redis")):
        payload["status"] = "degraded"
    return json_response(payload, status=200 if payload["status"] == "ok" else 503)
