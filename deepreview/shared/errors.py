"""
Standardized error types for the DeepReview core.

Every error carries a machine-readable `code` from ErrorCode so the
presentation layer can branch on it without parsing English messages,
and can be rendered as an ErrorDetail for published state.

Usage:
    from deepreview.shared.errors import ErrorCode, FileWriteError

    try:
        await store.add(entry)
    except FileWriteError as exc:
        show_banner(exc.to_detail())
"""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel


class ErrorCode(str, Enum):
    """Standard error codes used across the store and the gateway."""

    INTERNAL_ERROR = "INTERNAL_ERROR"

    # Store errors
    FILE_READ_ERROR = "FILE_READ_ERROR"
    FILE_WRITE_ERROR = "FILE_WRITE_ERROR"
    DESERIALIZATION_ERROR = "DESERIALIZATION_ERROR"
    BACKUP_MISSING = "BACKUP_MISSING"
    BACKUP_ERROR = "BACKUP_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INSTANCE_UNAVAILABLE = "INSTANCE_UNAVAILABLE"

    # Gateway errors
    NETWORK_UNAVAILABLE = "NETWORK_UNAVAILABLE"
    INVALID_CREDENTIAL = "INVALID_CREDENTIAL"
    RATE_LIMITED = "RATE_LIMITED"
    SERVER_ERROR = "SERVER_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    TIMEOUT = "TIMEOUT"
    ALL_PROVIDERS_UNAVAILABLE = "ALL_PROVIDERS_UNAVAILABLE"


class ErrorDetail(BaseModel):
    """Structured error detail model."""
    code: str
    message: str
    details: Optional[dict[str, Any]] = None
    correlation_id: Optional[str] = None


class DeepReviewError(Exception):
    """Base class for all DeepReview errors."""
    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code.value, "message": self.message}
        if self.details:
            payload["details"] = self.details
        return payload

    def to_detail(self, correlation_id: Optional[str] = None) -> ErrorDetail:
        return ErrorDetail(
            code=self.code.value,
            message=self.message,
            details=self.details or None,
            correlation_id=correlation_id,
        )


# ---------------------------------------------------------------------------
# Entry store
# ---------------------------------------------------------------------------

class StoreError(DeepReviewError):
    """Base class for entry store failures."""


class FileReadError(StoreError):
    code = ErrorCode.FILE_READ_ERROR

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Could not read {path}: {reason}",
            details={"path": path},
        )


class FileWriteError(StoreError):
    code = ErrorCode.FILE_WRITE_ERROR

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Could not write {path}: {reason}",
            details={"path": path},
        )


class DeserializationError(StoreError):
    code = ErrorCode.DESERIALIZATION_ERROR

    def __init__(self, path: str, reason: str):
        super().__init__(
            message=f"Could not decode entries from {path}: {reason}",
            details={"path": path},
        )


class BackupMissingError(StoreError):
    code = ErrorCode.BACKUP_MISSING

    def __init__(self, path: str):
        super().__init__(
            message="No backup file exists to restore from.",
            details={"path": path},
        )


class BackupError(StoreError):
    code = ErrorCode.BACKUP_ERROR

    def __init__(self, reason: str, backup_reason: Optional[str] = None):
        super().__init__(
            message=f"Backup failed: {reason}",
            details={"reason": backup_reason} if backup_reason else {},
        )


class EntryNotFoundError(StoreError):
    code = ErrorCode.NOT_FOUND

    def __init__(self, entry_id: Any):
        super().__init__(
            message=f"Entry {entry_id} does not exist.",
            details={"entry_id": str(entry_id)},
        )


class InstanceUnavailableError(StoreError):
    code = ErrorCode.INSTANCE_UNAVAILABLE

    def __init__(self):
        super().__init__(message="Entry store instance is not available.")


# ---------------------------------------------------------------------------
# Analysis gateway
# ---------------------------------------------------------------------------

class AnalysisError(DeepReviewError):
    """Base class for analysis failures. `retryable` drives the retry loop."""
    retryable: bool = True


class NetworkUnavailableError(AnalysisError):
    code = ErrorCode.NETWORK_UNAVAILABLE
    retryable = False

    def __init__(self):
        super().__init__(message="No network connection. Check connectivity and try again.")


class InvalidCredentialError(AnalysisError):
    code = ErrorCode.INVALID_CREDENTIAL
    retryable = False

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} rejected the configured API key.",
            details={"provider": provider},
        )


class RateLimitedError(AnalysisError):
    code = ErrorCode.RATE_LIMITED

    def __init__(self, provider: str):
        super().__init__(
            message=f"{provider} rate limit reached.",
            details={"provider": provider},
        )


class ServerError(AnalysisError):
    code = ErrorCode.SERVER_ERROR

    def __init__(self, provider: str, detail: str, status_code: Optional[int] = None):
        details: dict[str, Any] = {"provider": provider, "detail": detail}
        if status_code is not None:
            details["status_code"] = status_code
        super().__init__(message=f"{provider} request failed: {detail}", details=details)
        self.detail = detail
        self.status_code = status_code


class InvalidResponseError(AnalysisError):
    code = ErrorCode.INVALID_RESPONSE

    def __init__(self, provider: str, reason: str = "unexpected response shape"):
        super().__init__(
            message=f"{provider} returned an invalid response: {reason}",
            details={"provider": provider},
        )


class AnalysisTimeoutError(AnalysisError):
    code = ErrorCode.TIMEOUT

    def __init__(self, provider: str, timeout: Optional[float] = None):
        details: dict[str, Any] = {"provider": provider}
        if timeout is not None:
            details["timeout_seconds"] = timeout
        super().__init__(message=f"{provider} request timed out.", details=details)


class AllProvidersUnavailableError(AnalysisError):
    code = ErrorCode.ALL_PROVIDERS_UNAVAILABLE
    retryable = False

    def __init__(self, failures: Optional[dict[str, str]] = None):
        super().__init__(
            message="No analysis provider is available. Configure an API key in settings.",
            details={"failures": failures} if failures else {},
        )
