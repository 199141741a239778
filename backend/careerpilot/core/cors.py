"""CORS configuration for the cookie-authenticated API."""

from __future__ import annotations

from flask import Flask
from flask_cors import CORS


def init_app(app: Flask) -> None:
    """Allow the configured frontend origins to call the API with cookies.

    Parameters
    ----------
    app: flask.Flask
        Application whose ``CORS_ORIGINS`` setting lists the trusted frontend
        origins. Credentialed requests cannot use a wildcard origin, so ``"*"``
        or an empty value leaves the API same-origin only.
    """
    raw_origins = app.config.get("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip() and o.strip() != "*"]
    if not origins:
        app.logger.warning("cors.disabled: no explicit CORS_ORIGINS configured")
        return

    CORS(
        app,
        resources={r"/api/*": {"origins": origins}},
        supports_credentials=True,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )
