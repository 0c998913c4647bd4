"""
Error taxonomy for GigFlow operations.

Every failure raised by the services is a ``GigFlowError`` subclass with a
stable ``kind`` and the HTTP status the service layer maps it to. Callers are
expected to correct their request before retrying; nothing here is retried
automatically.
"""

import math
from typing import Any, Optional


class GigFlowError(Exception):
    """Base exception for GigFlow operations."""

    kind = "server_error"
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        """Error envelope returned to clients."""
        return {"success": False, "error": self.kind, "message": self.message}


class ValidationError(GigFlowError):
    """A field is missing, malformed or out of range."""

    kind = "validation"
    status_code = 400
    reason = "invalid"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.field:
            data["field"] = self.field
            data["reason"] = self.reason
        return data


class MissingFieldError(ValidationError):
    """A required field was not supplied."""

    reason = "missing"

    def __init__(self, field: str):
        super().__init__(f"{field} is required", field=field)


class OutOfRangeError(ValidationError):
    """A field was supplied but its value is outside the allowed range."""

    reason = "out_of_range"


class AuthenticationError(GigFlowError):
    """Credentials are missing or invalid."""

    kind = "unauthenticated"
    status_code = 401


class ForbiddenError(GigFlowError):
    """Authenticated, but not allowed to perform this action."""

    kind = "forbidden"
    status_code = 403


class NotFoundError(GigFlowError):
    """Referenced entity is absent or invisible to the caller."""

    kind = "not_found"
    status_code = 404


class ConflictError(GigFlowError):
    """A state-transition precondition was violated."""

    kind = "conflict"
    status_code = 409


class UpstreamError(GigFlowError):
    """An external dependency is unavailable."""

    kind = "upstream"
    status_code = 503


def require(field: str, value: Any) -> None:
    """Raise MissingFieldError when ``value`` is absent or blank."""
    if value is None:
        raise MissingFieldError(field)
    if isinstance(value, str) and not value.strip():
        raise MissingFieldError(field)


def check_length(field: str, value: str, minimum: int, maximum: int) -> str:
    """Strip ``value`` and check it is between ``minimum`` and ``maximum`` chars."""
    require(field, value)
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string", field=field)
    text = value.strip()
    if len(text) < minimum:
        raise OutOfRangeError(f"{field} must be at least {minimum} characters", field=field)
    if len(text) > maximum:
        raise OutOfRangeError(f"{field} cannot exceed {maximum} characters", field=field)
    return text


def check_minimum(field: str, value: Any, minimum: float) -> float:
    """Check a numeric field is present, numeric and at least ``minimum``."""
    require(field, value)
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number", field=field)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a number", field=field)
    if not math.isfinite(number):
        raise ValidationError(f"{field} must be a number", field=field)
    if number < minimum:
        raise OutOfRangeError(f"{field} must be at least {minimum:g}", field=field)
    return number
