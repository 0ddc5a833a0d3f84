"""Domain error taxonomy.

Each error kind maps to exactly one HTTP status at the boundary (see the
handlers registered in ``app.main``), so callers never need to inspect
messages to decide how to respond.
"""
from typing import Optional


class DomainError(Exception):
    """Base class for every expected failure raised by the service layer."""

    status_code = 500
    default_message = "An error occurred while processing your request"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(DomainError):
    """Field-keyed validation failure. Nothing has been written."""

    status_code = 422
    default_message = "Validation failed"

    def __init__(self, errors: dict[str, list[str]], message: Optional[str] = None):
        super().__init__(message)
        self.errors = errors

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailed":
        return cls({field: [message]})


class NotFound(DomainError):
    status_code = 404
    default_message = "Resource not found"


class Forbidden(DomainError):
    status_code = 403
    default_message = "This action is unauthorized."


class Unauthenticated(DomainError):
    status_code = 401
    default_message = "Unauthenticated"


class Conflict(DomainError):
    status_code = 409
    default_message = "The resource was modified by another request"
