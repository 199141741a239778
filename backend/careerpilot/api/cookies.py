"""Session cookies: ``token`` (access JWT) and ``refreshToken`` (refresh JWT)."""

from __future__ import annotations

from datetime import timedelta

from flask import Response, current_app

from careerpilot.services.auth import TokenPairOut


def _cookie_options() -> dict[str, object]:
    cfg = current_app.config
    return {
        "httponly": True,
        "secure": bool(cfg.get("SESSION_COOKIE_SECURE_FLAG", True)),
        "samesite": cfg.get("SESSION_COOKIE_SAMESITE_POLICY", "Strict"),
        "path": "/",
    }


def set_session_cookies(response: Response, pair: TokenPairOut) -> Response:
    """Replace both session cookies with the freshly issued pair."""
    cfg = current_app.config
    access_lifetime: timedelta = cfg.get("ACCESS_TOKEN_EXPIRES", timedelta(minutes=15))
    refresh_lifetime: timedelta = cfg.get("REFRESH_TOKEN_EXPIRES", timedelta(days=7))
    options = _cookie_options()

    response.set_cookie(
        cfg.get("ACCESS_COOKIE_NAME", "token"),
        pair.access_token,
        max_age=int(access_lifetime.total_seconds()),
        **options,
    )
    response.set_cookie(
        cfg.get("REFRESH_COOKIE_NAME", "refreshToken"),
        pair.refresh_token,
        max_age=int(refresh_lifetime.total_seconds()),
        expires=pair.refresh_expires_at,
        **options,
    )
    return response


def clear_session_cookies(response: Response) -> Response:
    """Expire both session cookies on the client."""
    cfg = current_app.config
    options = _cookie_options()
    response.delete_cookie(cfg.get("ACCESS_COOKIE_NAME", "token"), **options)
    response.delete_cookie(cfg.get("REFRESH_COOKIE_NAME", "refreshToken"), **options)
    return response
