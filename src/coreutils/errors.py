"""
Pipeline Exception Hierarchy

Specific exception types for each failure category, carrying structured
details so the run report can record them.
"""

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """Base exception for all patient pipeline errors."""

    def __init__(
        self,
        message: str,
        code: str = "PIPELINE_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for the run report."""
        return {"error": self.code, "message": self.message, "details": self.details}


class ConfigurationError(PipelineError):
    """Missing or malformed configuration."""

    def __init__(self, message: str, key: Optional[str] = None):
        super().__init__(message, code="CONFIGURATION_ERROR", details={"key": key})
        self.key = key


class FetchError(PipelineError):
    """Base class for failures of a single logical HTTP request."""

    def __init__(
        self,
        message: str,
        url: str,
        code: str = "FETCH_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details={"url": url, **(details or {})})
        self.url = url


class HTTPStatusError(FetchError):
    """Non-retryable, non-success HTTP status."""

    def __init__(self, status_code: int, url: str):
        super().__init__(
            f"Request failed with status {status_code}",
            url,
            code="HTTP_STATUS_ERROR",
            details={"status_code": status_code},
        )
        self.status_code = status_code


class RetryExhaustedError(FetchError):
    """Retryable statuses kept coming back until the retry budget ran out."""

    def __init__(self, url: str, attempts: int, last_status: Optional[int]):
        super().__init__(
            f"Gave up after {attempts} attempts (last status {last_status})",
            url,
            code="RETRY_EXHAUSTED",
            details={"attempts": attempts, "last_status": last_status},
        )
        self.attempts = attempts
        self.last_status = last_status


class InvalidResponseError(FetchError):
    """Success status but the body is not valid JSON."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"Invalid JSON response: {reason}", url, code="INVALID_RESPONSE"
        )


class TransportError(FetchError):
    """Connection, timeout or other transport level failure."""

    def __init__(self, url: str, reason: str):
        super().__init__(
            f"HTTP request failed: {reason}", url, code="TRANSPORT_ERROR"
        )


class CollectionError(PipelineError):
    """Patient collection could not produce a usable result."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="COLLECTION_ERROR", details=details)


class SubmissionError(PipelineError):
    """The assessment could not be submitted."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="SUBMISSION_ERROR", details=details)


class PipelineCancelled(PipelineError):
    """The run was cancelled while waiting or before a request."""

    def __init__(self, message: str = "Pipeline run cancelled"):
        super().__init__(message, code="CANCELLED")
