"""
Typed failures returned by the attendance and leave core.

Every failure carries a stable machine-readable ``kind`` and a human-readable
message. The HTTP layer renders them as ``{"kind": ..., "message": ...}``.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    VALIDATION_ERROR = "validation_error"
    PRECONDITION_FAILED = "precondition_failed"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    UPLOAD_ERROR = "upload_error"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal"


class ServiceError(Exception):
    """Base class for failures surfaced to the caller."""

    kind: ErrorKind = ErrorKind.INTERNAL
    status_code: int = 500
    headers: Optional[dict[str, str]] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "message": self.message}


class ValidationError(ServiceError):
    """Malformed input, missing evidence or exceeded balance."""

    kind = ErrorKind.VALIDATION_ERROR
    status_code = 422


class PreconditionFailed(ServiceError):
    """Weekend/holiday, closed window or leave already started."""

    kind = ErrorKind.PRECONDITION_FAILED
    status_code = 412


class Conflict(ServiceError):
    """Duplicate check-in/out, overlapping leave or already-reviewed application."""

    kind = ErrorKind.CONFLICT
    status_code = 409


class NotFound(ServiceError):
    kind = ErrorKind.NOT_FOUND
    status_code = 404


class UploadError(ServiceError):
    """Evidence store failure. No partial state is retained."""

    kind = ErrorKind.UPLOAD_ERROR
    status_code = 502


class RateLimited(ServiceError):
    """Too many attendance marking attempts in the current window."""

    kind = ErrorKind.RATE_LIMITED
    status_code = 429

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after
        self.headers = {"Retry-After": str(retry_after)}

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "retry_after": self.retry_after}


class InternalError(ServiceError):
    kind = ErrorKind.INTERNAL
    status_code = 500
