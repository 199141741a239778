"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask or HTTP
helpers. The translation to RFC 7807 responses lives in
``careerpilot/core/errors.py``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer translates them to ``APIError`` responses.
    """


# --------------------------------------------------------------------------- #
# Generic errors
# --------------------------------------------------------------------------- #


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class ConfigurationError(ServiceError):
    """Raised when the process is misconfigured (e.g. a signing secret is missing)."""


# --------------------------------------------------------------------------- #
# Authentication errors
# --------------------------------------------------------------------------- #


class InvalidCredentialsError(ServiceError):
    """Raised when email/password authentication fails."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class InvalidTokenError(ServiceError):
    """Raised for malformed, expired, wrongly typed or badly signed tokens."""

    def __init__(self, message: str = "Invalid or expired token") -> None:
        super().__init__(message)


class UserNotFoundError(NotFoundError):
    """Raised when a verified token references a user that no longer exists."""

    def __init__(self, user_id: str | int) -> None:
        NotFoundError.__init__(self, "User", user_id)


class ReplayDetectedError(ServiceError):
    """
    Raised when a refresh token is reused, unknown or stale.

    Every refresh token of the user has been revoked by the time this is
    raised; the client must authenticate again.

    :param user_id: Owner of the revoked session family.
    :param revoked: Number of refresh records invalidated.
    """

    def __init__(self, user_id: str | int, revoked: int = 0) -> None:
        super().__init__("Refresh token reuse detected. Please log in again.")
        self.user_id = user_id
        self.revoked = revoked
