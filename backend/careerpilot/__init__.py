"""Expose the application factory at package level.

Callers can ``from careerpilot import create_app`` (for example
``gunicorn "careerpilot:create_app()"``) without traversing the package.
"""

from __future__ import annotations

from .factory import create_app

__all__ = ["create_app"]
