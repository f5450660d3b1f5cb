"""
Shared error handling for the donor screening service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel

from .logging import request_id_var


class ErrorResponse(BaseModel):
    """Standard error response format."""

    request_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class ScreeningException(Exception):
    """Base exception for screening service errors."""

    status_code: int = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            request_id=request_id_var.get(),
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(ScreeningException):
    """Validation-related errors."""

    status_code = 422

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class DuplicateRuleKeyError(ScreeningException):
    """A rule with the same rule_key already exists."""

    status_code = 409

    def __init__(self, rule_key: str):
        super().__init__(
            "DUPLICATE_RULE_KEY",
            f"A rule with key '{rule_key}' already exists",
            {"rule_key": rule_key}
        )


class UnknownFieldPathError(ScreeningException):
    """Field path outside the supported submission field set."""

    status_code = 422

    def __init__(self, field_path: str):
        self.field_path = field_path
        super().__init__(
            "UNKNOWN_FIELD_PATH",
            f"Unsupported field path '{field_path}'",
            {"field_path": field_path}
        )


class NotFoundError(ScreeningException):
    """Requested record does not exist."""

    status_code = 404

    def __init__(self, kind: str, identifier: str):
        super().__init__(
            "NOT_FOUND",
            f"{kind} '{identifier}' not found",
            {"kind": kind, "id": identifier}
        )


class PersistenceError(ScreeningException):
    """Storage backend failures."""

    status_code = 503

    def __init__(self, message: str = "Persistence error", details: Optional[Dict[str, Any]] = None):
        super().__init__("PERSISTENCE_ERROR", message, details)
