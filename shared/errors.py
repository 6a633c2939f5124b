"""
Error hierarchy for the generation pipeline.

Every error carries an ErrorKind so the retry policy and the batch
orchestrator can classify failures without inspecting message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Closed taxonomy of failure causes."""

    CONFIGURATION = "configuration"
    VALIDATION = "validation"
    RATE_LIMITED = "rate_limited"
    DAILY_QUOTA_EXHAUSTED = "daily_quota_exhausted"
    CONTENT_FILTERED = "content_filtered"
    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    EMPTY_RESULT = "empty_result"
    OTHER = "other"


class PipelineError(Exception):
    """Base error for all generation failures."""

    kind: ErrorKind = ErrorKind.OTHER

    def __init__(self, message: str, batch_id: Optional[str] = None):
        self.message = message
        self.batch_id = batch_id
        super().__init__(message)


class ConfigError(PipelineError):
    """Missing or invalid configuration (credentials, settings)."""

    kind = ErrorKind.CONFIGURATION


class ValidationError(PipelineError):
    """Invalid caller input."""

    kind = ErrorKind.VALIDATION


class RetryableError(PipelineError):
    """Transient failure that may succeed on a later attempt."""

    kind = ErrorKind.RATE_LIMITED


class RateLimitError(RetryableError):
    """Backend throttled the request (HTTP 429 / RESOURCE_EXHAUSTED)."""

    kind = ErrorKind.RATE_LIMITED


class DailyQuotaExhaustedError(PipelineError):
    """Per-day quota used up; retrying cannot succeed before the reset."""

    kind = ErrorKind.DAILY_QUOTA_EXHAUSTED


class ContentFilteredError(PipelineError):
    """Backend safety filter rejected the generated media."""

    kind = ErrorKind.CONTENT_FILTERED

    def __init__(self, message: str, reasons: Optional[list] = None, batch_id: Optional[str] = None):
        self.reasons = list(reasons or [])
        super().__init__(message, batch_id=batch_id)


class GenerationTimeoutError(PipelineError):
    """Long-running operation did not finish within the poll ceiling."""

    kind = ErrorKind.TIMEOUT


class TransportError(PipelineError):
    """HTTP or network failure not classified as rate limiting."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, message: str, status_code: Optional[int] = None, batch_id: Optional[str] = None):
        self.status_code = status_code
        super().__init__(message, batch_id=batch_id)


class EmptyResultError(PipelineError):
    """Backend reported success but produced no usable artifact."""

    kind = ErrorKind.EMPTY_RESULT


class RetryableEmptyResultError(RetryableError):
    """Empty result treated as transient when empty-result retries are enabled."""

    kind = ErrorKind.EMPTY_RESULT
