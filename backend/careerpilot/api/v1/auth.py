"""Authentication endpoints using the service layer.

Tokens travel in httpOnly cookies (``token`` / ``refreshToken``); response
bodies only describe the session.
"""

from __future__ import annotations

from http import HTTPStatus

from flask import Blueprint, Response, current_app, g, request

from careerpilot.api.cookies import clear_session_cookies, set_session_cookies
from careerpilot.api.deps import get_auth_service, json_response, require_auth, timing
from careerpilot.core.extensions import limiter
from careerpilot.schemas import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    SessionResponseSchema,
    SignupSchema,
    UserPublicSchema,
)
from careerpilot.services.auth import (
    LoginIn,
    LogoutIn,
    RefreshIn,
    SignupIn,
    TokenPairOut,
)
from careerpilot.services._shared.errors import InvalidTokenError

bp = Blueprint("auth", __name__)

signup_schema = SignupSchema()
login_schema = LoginSchema()
refresh_schema = RefreshSchema()
logout_schema = LogoutSchema()
session_schema = SessionResponseSchema()
user_schema = UserPublicSchema()

# Statuses on which a refresh attempt leaves the client without a session
_REFRESH_REJECTIONS = frozenset(
    {HTTPStatus.UNAUTHORIZED, HTTPStatus.FORBIDDEN, HTTPStatus.NOT_FOUND}
)


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


def _refresh_rate_limit() -> str:
    return str(current_app.config.get("AUTH_REFRESH_RATE_LIMIT", "30 per minute"))


def _cookie(name_key: str, default: str) -> str | None:
    return request.cookies.get(current_app.config.get(name_key, default))


def _session_response(pair: TokenPairOut, *, status: int = HTTPStatus.OK) -> Response:
    body = {"data": session_schema.dump(pair)}
    return set_session_cookies(json_response(body, status=status), pair)


@bp.after_request
def _clear_cookies_on_rejected_refresh(response: Response) -> Response:
    if request.endpoint == "auth.refresh_token" and response.status_code in _REFRESH_REJECTIONS:
        clear_session_cookies(response)
    return response


@bp.post("/signup")
@timing
def signup():
    """Create an account and open its first session."""

    data = signup_schema.load(request.get_json(silent=True) or {})
    pair = get_auth_service().signup(SignupIn(**data))
    return _session_response(pair, status=HTTPStatus.CREATED)


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and open an additional session."""

    data = login_schema.load(request.get_json(silent=True) or {})
    pair = get_auth_service().login(LoginIn(**data))
    return _session_response(pair)


@bp.post("/refresh-token")
@limiter.limit(_refresh_rate_limit)
@timing
def refresh_token():
    """Rotate the refresh token and replace both session cookies."""

    data = refresh_schema.load(request.get_json(silent=True) or {})
    token = _cookie("REFRESH_COOKIE_NAME", "refreshToken") or data.get("refresh_token")
    if not token:
        raise InvalidTokenError("Refresh token is missing.")
    pair = get_auth_service().refresh(RefreshIn(refresh_token=token))
    return _session_response(pair)


@bp.post("/logout")
@timing
def logout():
    """Revoke the presented session (or all of them) and clear the cookies."""

    data = logout_schema.load(request.get_json(silent=True) or {})
    access = _cookie("ACCESS_COOKIE_NAME", "token")
    auth_header = request.headers.get("Authorization", "")
    if not access and auth_header.startswith("Bearer "):
        access = auth_header.removeprefix("Bearer ").strip()

    result = get_auth_service().logout(
        LogoutIn(
            refresh_token=_cookie("REFRESH_COOKIE_NAME", "refreshToken"),
            access_token=access,
            all_sessions=data["all_sessions"],
        )
    )
    body = {"data": {"message": "Logged out successfully", "revoked": result.revoked}}
    return clear_session_cookies(json_response(body))


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the authenticated user profile."""

    user = get_auth_service().whoami(g.actor_id)
    return json_response({"data": user_schema.dump(user)})
