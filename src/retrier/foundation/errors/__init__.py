"""Unified error handling for retrier.

- ErrorCode/classify_exception: classification of operation failures
- RetryError and subclasses: terminal outcomes of a retry sequence
"""

from .errors import (
    AttemptsExhaustedError,
    DeadlineExceededError,
    ErrorCode,
    NoAttemptsAllowedError,
    NonRetryableError,
    OperationCancelledError,
    RetryError,
    RetryErrorCode,
    classify_exception,
)

__all__ = [
    # Operation failure classification
    "ErrorCode", "classify_exception",
    # Retry outcomes
    "RetryError", "RetryErrorCode", "NoAttemptsAllowedError", "NonRetryableError",
    "AttemptsExhaustedError", "OperationCancelledError", "DeadlineExceededError",
]
