"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    LogoutSchema,
    RefreshSchema,
    SessionResponseSchema,
    SignupSchema,
    UserPublicSchema,
)

__all__ = [
    "LoginSchema",
    "LogoutSchema",
    "RefreshSchema",
    "SessionResponseSchema",
    "SignupSchema",
    "UserPublicSchema",
]
