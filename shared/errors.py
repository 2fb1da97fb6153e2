"""
Shared error handling for the Webhook Relay.

Every failure a relay request can end in is one of the exceptions below. Each
carries a fixed HTTP status, a stable machine-readable ``code`` and a
human-readable ``message``. Diagnostic ``details`` are attached where useful
but only rendered when the service runs in a development configuration.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Optional[Any] = None


class RelayException(Exception):
    """Base exception for relay failures."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        details: Optional[Any] = None,
        status_code: Optional[int] = None,
        extra: Optional[Dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        # Outcome fields rendered next to ``message`` (limit, retryAfter, ...)
        self.extra = extra or {}
        self.headers: Dict[str, str] = {}
        super().__init__(message)

    def to_response(self, expose_details: bool = False) -> Dict[str, Any]:
        """Convert to an error response body."""
        response = ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details if expose_details else None,
        )
        body = response.model_dump(exclude_none=True)
        body.update(self.extra)
        return body


class MethodNotAllowedError(RelayException):
    """Request used a method other than POST."""

    status_code = 405

    def __init__(self, message: str = "Method not allowed", details: Optional[Any] = None):
        super().__init__("METHOD_NOT_ALLOWED", message, details)


class ForbiddenError(RelayException):
    """Client key missing or wrong."""

    status_code = 403

    def __init__(self, message: str = "Forbidden - invalid client key", details: Optional[Any] = None):
        super().__init__("FORBIDDEN", message, details)


class InvalidBodyError(RelayException):
    """Body absent, not JSON, or not a JSON object."""

    status_code = 400

    def __init__(self, message: str = "Invalid body", details: Optional[Any] = None):
        super().__init__("INVALID_BODY", message, details)


class ValidationFailedError(RelayException):
    """Body is an object but its fields break a size or shape rule."""

    status_code = 400

    def __init__(self, message: str = "Validation failed", details: Optional[Any] = None):
        super().__init__("VALIDATION_FAILED", message, details)


class AuthenticationError(RelayException):
    """Signature is wrong or its timestamp is stale."""

    status_code = 401

    def __init__(self, message: str = "Invalid signature", details: Optional[Any] = None):
        super().__init__("UNAUTHENTICATED", message, details)


class RateLimitError(RelayException):
    """Identity has used up its quota for the current window."""

    status_code = 429

    def __init__(
        self,
        message: str = "Rate limit exceeded",
        limit: int = 0,
        remaining: int = 0,
        reset_time: Optional[str] = None,
        retry_after: int = 0,
    ):
        super().__init__(
            "RATE_LIMITED",
            message,
            extra={
                "limit": limit,
                "remaining": remaining,
                "resetTime": reset_time,
                "retryAfter": retry_after,
            },
        )
        self.retry_after = retry_after
        self.headers = {
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(limit),
            "X-RateLimit-Remaining": str(remaining),
        }


class UpstreamTimeoutError(RelayException):
    """Webhook call did not complete within the forward timeout."""

    status_code = 408

    def __init__(self, message: str = "Discord request timed out", details: Optional[Any] = None):
        super().__init__("UPSTREAM_TIMEOUT", message, details)


class UpstreamRejectedError(RelayException):
    """Webhook answered with a non-success status."""

    def __init__(
        self,
        upstream_status: int,
        message: str = "Discord error",
        details: Optional[Any] = None,
        propagate_status: bool = False,
    ):
        super().__init__(
            "UPSTREAM_REJECTED",
            message,
            details,
            status_code=upstream_status if propagate_status and 400 <= upstream_status < 600 else 500,
            extra={"status": upstream_status},
        )
        self.upstream_status = upstream_status


class ConfigurationMissingError(RelayException):
    """A required setting (webhook URL, client key, shared secret) is absent."""

    status_code = 500

    def __init__(self, message: str = "Webhook not configured", details: Optional[Any] = None):
        super().__init__("CONFIGURATION_MISSING", message, details)


class InternalError(RelayException):
    """Anything unexpected, including counter store and network failures."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", details: Optional[Any] = None):
        super().__init__("INTERNAL_ERROR", message, details)
