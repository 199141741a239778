"""Repository package exposing persistence-layer access for all domain models."""

from __future__ import annotations

from careerpilot.repositories.base import BaseRepository
from careerpilot.repositories.refresh_token import RefreshTokenRepository
from careerpilot.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
