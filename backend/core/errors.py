"""
Domain errors raised by workflows and rendered at the request boundary.
"""

import uuid
from typing import Any


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Any = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        body: dict[str, Any] = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationFailed(AppError):
    status_code = 400


class Unauthenticated(AppError):
    status_code = 401


class Forbidden(AppError):
    status_code = 403


class NotFound(AppError):
    status_code = 404


class Conflict(AppError):
    status_code = 409


class Gone(AppError):
    status_code = 410


class WorkflowFailed(AppError):
    """Unexpected failure inside a transactional workflow."""

    status_code = 500


def parse_uuid(value, message: str, error_cls: type[AppError] = ValidationFailed) -> uuid.UUID:
    """Coerce an id coming from a request body, raising a domain error when malformed."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise error_cls(message) from None
