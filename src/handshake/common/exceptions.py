"""Custom exceptions for the handshake engine.

Provides a hierarchy of exceptions with status codes and structured
error payloads for the host application. Not-found conditions inside
the engine are signalled with ``None`` or empty results; these
exceptions cover misuse and infrastructure failures.
"""

from typing import Any


class HandshakeError(Exception):
    """Base exception for all handshake engine errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize exception with optional details.

        Args:
            message: Human-readable error message.
            details: Additional error details for debugging.
            cause: Original exception that caused this error.
        """
        self.message = message or self.message
        self.details = details or {}
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# 400 Bad Request errors
class ValidationError(HandshakeError):
    """Input validation failed."""

    status_code = 400
    error_code = "VALIDATION_ERROR"
    message = "Input validation failed"


# 404 Not Found errors
class NotFoundError(HandshakeError):
    """Resource not found."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


# 409 Conflict errors
class ConflictError(HandshakeError):
    """Resource conflict."""

    status_code = 409
    error_code = "CONFLICT"
    message = "Resource conflict"


# 422 Unprocessable Entity errors
class BusinessLogicError(HandshakeError):
    """Business logic validation failed."""

    status_code = 422
    error_code = "BUSINESS_LOGIC_ERROR"
    message = "Business logic validation failed"


class SelfConnectionError(BusinessLogicError):
    """A user cannot be connected to themselves."""

    error_code = "SELF_CONNECTION"
    message = "A connection requires two distinct users"


class ChainStateError(BusinessLogicError):
    """Requested chain transition is not allowed from the current status."""

    error_code = "INVALID_CHAIN_TRANSITION"
    message = "Chain transition not allowed"


# 500 Internal Server errors
class InternalError(HandshakeError):
    """Internal server error."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
    message = "An internal error occurred"


class DatabaseError(InternalError):
    """Database operation failed."""

    error_code = "DATABASE_ERROR"
    message = "Database operation failed"


class ConfigurationError(InternalError):
    """Configuration error."""

    error_code = "CONFIGURATION_ERROR"
    message = "Service configuration error"


# 502 Bad Gateway errors
class ExternalServiceError(HandshakeError):
    """External service error."""

    status_code = 502
    error_code = "EXTERNAL_SERVICE_ERROR"
    message = "External service unavailable"


class DeliveryError(ExternalServiceError):
    """Outbound event delivery failed."""

    error_code = "DELIVERY_ERROR"
    message = "Outbound event delivery failed"
