"""
Errors raised by request handlers and rendered by ``error_middleware``.

Bodies look like ``{"error": {"code": ..., "message": ..., "request_id": ...}}``.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    # 4xx
    INVALID_REQUEST = "INVALID_REQUEST"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    JOB_NOT_FOUND = "JOB_NOT_FOUND"
    JOB_RUNNING = "JOB_RUNNING"

    # 5xx
    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORAGE_ERROR = "STORAGE_ERROR"


class APIError(Exception):
    """A failure with a machine-readable code and an HTTP status."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        status: int = 400,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status
        self.details = details or {}

    def to_dict(self, request_id: str | None = None) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            body["details"] = self.details
        if request_id:
            body["request_id"] = request_id
        return {"error": body}


class NotFoundError(APIError):
    def __init__(self, resource_type: str, resource_id: str, code: ErrorCode = ErrorCode.JOB_NOT_FOUND):
        super().__init__(
            code=code,
            message=f"{resource_type} '{resource_id}' not found",
            status=404,
            details={resource_type.lower(): resource_id},
        )


class ValidationError(APIError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.VALIDATION_ERROR, message=message, status=400, details=details)


class ConflictError(APIError):
    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code=ErrorCode.JOB_RUNNING, message=message, status=409, details=details)
