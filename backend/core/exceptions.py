"""
Typed errors raised by the auth core.

Services and dependencies raise these; ``backend.core.error_handlers`` turns them into the
JSON error envelope. Each error carries a stable machine-readable ``code`` next to the
human message, and optionally a field-level ``errors`` list.

Usage:
    from backend.core.exceptions import NotFoundError

    if identity is None:
        raise NotFoundError('Account not found')
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for every error that maps to an HTTP status."""

    status_code = 500
    default_code = "INTERNAL_SERVER_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        errors: Optional[List[Dict[str, Any]]] = None,
    ):
        self.message = message
        self.code = code or self.default_code
        self.errors = errors or []
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.errors:
            body["errors"] = self.errors
        return body


class BadRequestError(AppError):
    """Malformed input, or an expired/used reset token."""

    status_code = 400
    default_code = "BAD_REQUEST"

    def __init__(self, message: str = "Bad Request", errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, errors=errors)


class ValidationError(BadRequestError):
    def __init__(self, errors: List[Dict[str, Any]], message: str = "Validation failed"):
        super().__init__(message, errors=errors)
        self.code = "VALIDATION_ERROR"


# ============================================
# Authentication & Authorization Errors
# ============================================

class UnauthorizedError(AppError):
    """Missing or unusable credential. The client should re-authenticate."""

    status_code = 401
    default_code = "UNAUTHORIZED"

    def __init__(self, message: str = "Not authorized to access this route"):
        super().__init__(message)


class InvalidTokenError(UnauthorizedError):
    """Session token is malformed or its signature does not verify."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)
        self.code = "INVALID_TOKEN"


class TokenExpiredError(UnauthorizedError):
    """Session token was valid but its ``exp`` claim has passed."""

    def __init__(self, message: str = "Token expired"):
        super().__init__(message)
        self.code = "TOKEN_EXPIRED"


class ForbiddenError(AppError):
    """Valid credential, insufficient role or permission. Retrying will not help."""

    status_code = 403
    default_code = "FORBIDDEN"

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message)


# ============================================
# Resource Errors
# ============================================

class NotFoundError(AppError):
    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message)


class ConflictError(AppError):
    status_code = 409
    default_code = "CONFLICT"

    def __init__(self, message: str = "Conflict"):
        super().__init__(message)


class ServiceUnavailableError(AppError):
    """Storage or another downstream dependency failed transiently."""

    status_code = 503
    default_code = "SERVICE_UNAVAILABLE"

    def __init__(self, message: str = "Service temporarily unavailable. Please try again."):
        super().__init__(message)
