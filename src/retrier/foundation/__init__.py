"""Foundation layer: errors and configuration shared by the runtime."""

from .config import LoggingSettings, RetrierSettings, RetrySettings, clear_settings_cache, get_settings
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
    # Config
    "LoggingSettings", "RetrierSettings", "RetrySettings", "get_settings", "clear_settings_cache",
    # Errors
    "ErrorCode", "classify_exception", "RetryError", "RetryErrorCode", "NoAttemptsAllowedError",
    "NonRetryableError", "AttemptsExhaustedError", "OperationCancelledError", "DeadlineExceededError",
]
