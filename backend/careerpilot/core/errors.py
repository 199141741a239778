"""RFC 7807 problem responses for every error leaving the API.

Service code raises :class:`~careerpilot.services._shared.errors.ServiceError`
subclasses; this module is the only place that knows their HTTP status.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from careerpilot.core.logger import ensure_request_id
from careerpilot.services._shared.errors import (
    ConfigurationError,
    ConflictError,
    InvalidCredentialsError,
    InvalidTokenError,
    NotFoundError,
    ReplayDetectedError,
    ServiceError,
)

log = logging.getLogger(__name__)


def _problem(
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build a Problem Details body carrying ``code`` and ``request_id``.

    :param status: HTTP status code.
    :param code: Stable snake_case identifier clients can switch on.
    :param message: Client-safe summary.
    :param details: Optional structured payload (e.g. field errors).
    """
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        body["details"] = details
    return body


def problem_response(problem: dict[str, Any]) -> Response:
    """Serialize ``problem`` with the ``application/problem+json`` media type."""
    resp = jsonify(problem)
    resp.status_code = int(problem["status"])
    resp.mimetype = "application/problem+json"
    return resp


class APIError(Exception):
    """
    An error with a fixed HTTP status and machine-readable code.

    Parameters
    ----------
    message : str
        Client-safe description.
    status_code : int, optional
        HTTP status. Defaults to ``400``.
    code : str, optional
        snake_case identifier. Defaults to ``"bad_request"``.
    details : dict[str, Any] | None, optional
        Extra structured payload.
    """

    status_code: int = HTTPStatus.BAD_REQUEST
    code: str = "bad_request"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code or self.status_code)
        self.code = code or self.code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return _problem(self.status_code, self.code, self.message, self.details or None)


class NotFound(APIError):
    status_code = HTTPStatus.NOT_FOUND
    code = "not_found"


class Conflict(APIError):
    status_code = HTTPStatus.CONFLICT
    code = "conflict"


class Unauthorized(APIError):
    """401: missing, invalid or expired credentials."""

    status_code = HTTPStatus.UNAUTHORIZED
    code = "unauthorized"


class ReauthenticationRequired(APIError):
    """403 after a refresh token replay; every session of the user is gone."""

    status_code = HTTPStatus.FORBIDDEN
    code = "reauthentication_required"


# Most specific first: UserNotFoundError is a NotFoundError
_SERVICE_ERRORS: tuple[tuple[type[ServiceError], type[APIError], str | None], ...] = (
    (ReplayDetectedError, ReauthenticationRequired, None),
    (InvalidTokenError, Unauthorized, "invalid_token"),
    (InvalidCredentialsError, Unauthorized, "invalid_credentials"),
    (NotFoundError, NotFound, None),
    (ConflictError, Conflict, None),
)


def translate_service_error(exc: ServiceError) -> APIError:
    """
    Map a framework-agnostic service error onto its HTTP representation.

    :param exc: Exception raised within the service layer.
    :returns: API error ready to be serialized.
    """
    for service_type, api_type, code in _SERVICE_ERRORS:
        if isinstance(exc, service_type):
            return api_type(str(exc), code=code)
    if isinstance(exc, ConfigurationError):
        # Operator problem; the message stays in the logs
        return APIError(
            "Service misconfigured",
            status_code=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="configuration_error",
        )
    return APIError(str(exc))


def _status_code_name(status: int) -> str:
    try:
        return HTTPStatus(status).phrase.lower().replace(" ", "_").replace("-", "_")
    except ValueError:
        return "error"


def init_app(app: Flask) -> None:
    """
    Register the JSON error handlers.

    Notes
    -----
    - 5xx are logged with ``exc_info``; 4xx as warnings without a traceback.
    - Database driver messages never reach clients.
    """

    def _respond(problem: dict[str, Any], *, exc_info: bool = False) -> Response:
        status = int(problem["status"])
        level = logging.ERROR if status >= 500 else logging.WARNING
        log.log(
            level,
            "request.failed code=%s status=%s request_id=%s",
            problem["code"],
            status,
            problem["request_id"],
            exc_info=exc_info,
        )
        return problem_response(problem)

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        return _respond(err.to_problem())

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        api_err = translate_service_error(err)
        return _respond(api_err.to_problem(), exc_info=api_err.status_code >= 500)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        message = (err.description or HTTPStatus(status).phrase).strip()
        if status == HTTPStatus.NOT_FOUND and request:
            message = f"Route '{request.path}' not found"
        return _respond(_problem(status, _status_code_name(status), message))

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return _respond(
            _problem(
                HTTPStatus.UNPROCESSABLE_ENTITY,
                "validation_error",
                "Validation failed",
                {"errors": err.messages},
            )
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        problem = _problem(HTTPStatus.CONFLICT, "conflict", "Resource conflict")
        return _respond(problem, exc_info=True)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        return _respond(
            _problem(
                HTTPStatus.SERVICE_UNAVAILABLE,
                "service_unavailable",
                "Service temporarily unavailable",
            ),
            exc_info=True,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        return _respond(
            _problem(HTTPStatus.INTERNAL_SERVER_ERROR, "internal_server_error", "Unexpected error"),
            exc_info=True,
        )
