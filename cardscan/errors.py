"""
Error taxonomy for the card processing pipeline.

Fatal outcomes are raised as ``CardPipelineError`` subclasses and stop the
current item. Non-fatal field problems are returned as ``ValidationIssue``
values and end up in ``ProcessingResult.warnings``.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


class CardPipelineError(Exception):
    """Base class for fatal pipeline failures."""

    code = "PIPELINE_ERROR"
    fatal = True

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error_type": self.code,
            "error": self.message,
            "details": self.details,
        }


# =========================
# INPUT
# =========================

class InvalidInput(CardPipelineError):
    """Empty or oversized input, or an out-of-range parameter."""

    code = "INVALID_INPUT"

    def __init__(self, message: str, field: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.field = field
        if field:
            self.details.setdefault("field", field)


class UnsupportedImageFormat(InvalidInput):
    code = "UNSUPPORTED_IMAGE_FORMAT"

    def __init__(self, message: str = "Unsupported image format", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, field="image", details=details)


class ImageTooLarge(InvalidInput):
    code = "IMAGE_TOO_LARGE"

    def __init__(self, size: int, limit: int):
        super().__init__(
            f"Image is {size} bytes, limit is {limit} bytes",
            field="image",
            details={"size": size, "limit": limit},
        )
        self.size = size
        self.limit = limit


# =========================
# EXTERNAL SERVICES
# =========================

class ExternalServiceError(CardPipelineError):
    """Failure reported by the OCR engine or the AI parser."""

    code = "EXTERNAL_SERVICE_ERROR"

    def __init__(self, message: str, service: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.service = service
        if service:
            self.details.setdefault("service", service)


class ServiceUnavailable(ExternalServiceError):
    code = "SERVICE_UNAVAILABLE"


class StageTimeout(ServiceUnavailable):
    """A stage or a whole item ran past its time budget."""

    code = "TIMEOUT"

    def __init__(self, stage: str, timeout: float):
        super().__init__(
            f"{stage} timed out after {timeout:g}s",
            service=stage,
            details={"stage": stage, "timeout": timeout},
        )
        self.stage = stage
        self.timeout = timeout


class QuotaExceeded(ExternalServiceError):
    code = "QUOTA_EXCEEDED"

    def __init__(self, message: str, reset_time: datetime, service: Optional[str] = None):
        super().__init__(message, service=service, details={"reset_time": reset_time.isoformat()})
        self.reset_time = reset_time


class RateLimited(ExternalServiceError):
    code = "RATE_LIMITED"

    def __init__(self, message: str, retry_after: float, service: Optional[str] = None):
        super().__init__(message, service=service, details={"retry_after": retry_after})
        self.retry_after = retry_after


# =========================
# SECURITY / STORAGE
# =========================

class SecurityViolation(CardPipelineError):
    """Malicious content found in the recognized text."""

    code = "SECURITY_VIOLATION"

    def __init__(self, message: str, violation: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.violation = violation
        self.details.setdefault("violation", violation)


class StorageFailure(CardPipelineError):
    code = "STORAGE_FAILURE"


class StorageSpaceExceeded(StorageFailure):
    code = "STORAGE_SPACE_EXCEEDED"


class ConnectionFailure(StorageFailure):
    code = "STORAGE_CONNECTION_FAILURE"


# =========================
# ORCHESTRATION
# =========================

class BatchCancelled(CardPipelineError):
    """The batch was cancelled before this item started."""

    code = "BATCH_CANCELLED"


class UnexpectedError(CardPipelineError):
    """A collaborator raised something outside the taxonomy."""

    code = "UNEXPECTED_ERROR"

    def __init__(self, stage: str, cause: BaseException):
        super().__init__(
            f"{stage} failed: {cause}",
            details={"stage": stage, "cause": type(cause).__name__},
        )
        self.stage = stage


@dataclass(frozen=True)
class ValidationIssue:
    """Non-fatal per-field problem; the field is dropped or trimmed."""

    field: str
    message: str
    fatal = False

    def __str__(self) -> str:
        return self.message
