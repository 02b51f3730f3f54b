"""Domain errors raised by the services and rendered by the API layer."""

from __future__ import annotations

from typing import Any


class QuoteDeskError(Exception):
    status_code = 500
    code = "INTERNAL_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None, status_code: int | None = None):
        self.message = message or self.default_message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload


class ValidationError(QuoteDeskError):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Invalid request"


class Unauthorized(QuoteDeskError):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "Unauthorized"


class NotFound(QuoteDeskError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Not found"


class Conflict(QuoteDeskError):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class InvalidState(QuoteDeskError):
    status_code = 400
    code = "INVALID_STATE"
    default_message = "Operation not allowed in the current state"


class InvalidToken(QuoteDeskError):
    """Unknown, expired or already used linking token.

    The message is deliberately identical for every cause.
    """

    status_code = 400
    code = "INVALID_TOKEN"
    default_message = "Invalid or expired token"


class EmailDeliveryError(QuoteDeskError):
    status_code = 500
    code = "EMAIL_DELIVERY_FAILED"
    default_message = "Failed to send email notification"

    def __init__(self, message: str | None = None, *, provider_status: int | None = None, provider_error: Any = None):
        super().__init__(message, details={"provider_status": provider_status, "provider_error": provider_error})
        self.provider_status = provider_status
        self.provider_error = provider_error


class StorageDegraded(QuoteDeskError):
    """A secondary write failed. Logged by callers unless they run fail-closed."""

    status_code = 503
    code = "STORAGE_DEGRADED"
    default_message = "Storage temporarily unavailable"
