"""
Exceptions used throughout the card extraction pipeline.

Exception Hierarchy:
    CardExtractionError (base)
    ├── RecognitionError
    │   ├── AuthMissingError
    │   ├── QuotaExceededError
    │   ├── BackendNetworkError
    │   ├── MalformedResponseError
    │   └── RecognitionTimeout
    ├── LayoutUnavailable
    └── ExtractionFailed
"""

from typing import Optional


class CardExtractionError(Exception):
    """Base exception for all card extraction errors.

    Attributes:
        message: Human-readable error message.
        details: Optional dictionary with additional error details.
    """

    def __init__(self, message: str, details: dict = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


# =============================================================================
# BACKEND ERRORS
# =============================================================================

class RecognitionError(CardExtractionError):
    """Raised by a recognition backend when it cannot produce a result.

    Every subclass carries a stable ``kind`` string so callers and the
    analytics log can tell failures apart without isinstance checks.
    """

    kind = "recognition_error"

    def __init__(self, message: str, backend: Optional[str] = None, details: dict = None):
        details = dict(details or {})
        if backend:
            details.setdefault("backend", backend)
        self.backend = backend
        super().__init__(message, details)


class AuthMissingError(RecognitionError):
    """Backend credentials are absent or were rejected."""

    kind = "auth_missing"


class QuotaExceededError(RecognitionError):
    """Backend refused the request because a usage quota is spent."""

    kind = "quota_exceeded"


class BackendNetworkError(RecognitionError):
    """Backend could not be reached or failed in transit."""

    kind = "network_error"


class MalformedResponseError(RecognitionError):
    """Backend answered with something that cannot be interpreted."""

    kind = "malformed_response"


class RecognitionTimeout(RecognitionError):
    """Backend did not answer within its time limit."""

    kind = "timeout"


# =============================================================================
# PIPELINE ERRORS
# =============================================================================

class LayoutUnavailable(CardExtractionError):
    """No usable tokens, so spatial analysis cannot run.

    Recoverable: the parser switches to plain line splitting.
    """
    pass


class ExtractionFailed(CardExtractionError):
    """Every backend allowed by the current strategy failed.

    Attributes:
        cause: The recognition error that ended the attempt.
        strategy: The strategy that was in effect.
    """

    def __init__(self, message: str, cause: Optional[RecognitionError] = None,
                 strategy=None, details: dict = None):
        details = dict(details or {})
        if cause is not None:
            details.setdefault("kind", cause.kind)
        self.cause = cause
        self.strategy = strategy
        super().__init__(message, details)

    @property
    def kind(self) -> str:
        return self.cause.kind if self.cause is not None else "extraction_failed"
