"""Retrier - cancellable retry orchestration with pluggable backoff.

Runs a fallible operation until it succeeds, a policy declares its error
non-retryable, an attempt cap is reached, or a cancellation token fires,
pausing between attempts according to a backoff strategy.

Quick Start:
    >>> from retrier import Retry, ExponentialBackoff, CancellationToken
    >>>
    >>> retry = Retry(
    ...     max_attempts=5,
    ...     backoff=ExponentialBackoff(min_wait=0.1, max_wait=5.0, max_jitter=0.05),
    ... )
    >>> token = CancellationToken(timeout=30.0)
    >>> retry.do(token, lambda tok: fetch("https://example.com", cancel=tok))

Policies:
    >>> from retrier import retry_on, transient_only, all_of
    >>> retry = retry.with_policy(all_of(retry_on(OSError), transient_only))

Async:
    >>> await retry.ado(token, lambda tok: client.get(url))

Errors:
    >>> from retrier import AttemptsExhaustedError
    >>> try:
    ...     retry.do(token, flaky)
    ... except AttemptsExhaustedError as e:
    ...     print(e.attempts, repr(e.__cause__))

Configuration (environment):
    RETRIER_RETRY_MAX_ATTEMPTS=5 RETRIER_RETRY_BACKOFF=constant
    >>> retry = Retry.from_settings()
"""

from __future__ import annotations

__version__ = "0.1.0"

# Foundation
from .foundation import (
    AttemptsExhaustedError,
    DeadlineExceededError,
    ErrorCode,
    LoggingSettings,
    NoAttemptsAllowedError,
    NonRetryableError,
    OperationCancelledError,
    RetrierSettings,
    RetryError,
    RetryErrorCode,
    RetrySettings,
    classify_exception,
    clear_settings_cache,
    get_settings,
)

# Runtime
from .runtime import (
    DEFAULT_RETRYABLE,
    MAX_DELAY,
    Backoff,
    CancellationToken,
    ConstantBackoff,
    ExponentialBackoff,
    OnRetry,
    Policy,
    Retry,
    RetryConfig,
    all_of,
    always_retry,
    any_of,
    configure_logging,
    jitter,
    retry_on,
    retry_on_codes,
    retry_unless,
    sleep,
    sleep_async,
    transient_only,
)

__all__ = [
    "__version__",
    # Driver
    "Retry", "RetryConfig", "OnRetry",
    # Backoff
    "Backoff", "ConstantBackoff", "ExponentialBackoff", "jitter", "MAX_DELAY",
    # Policies
    "Policy", "DEFAULT_RETRYABLE", "always_retry", "retry_on", "retry_unless", "retry_on_codes",
    "transient_only", "all_of", "any_of",
    # Cancellation
    "CancellationToken", "sleep", "sleep_async",
    # Errors
    "RetryError", "RetryErrorCode", "NoAttemptsAllowedError", "NonRetryableError",
    "AttemptsExhaustedError", "OperationCancelledError", "DeadlineExceededError",
    "ErrorCode", "classify_exception",
    # Config
    "RetrierSettings", "RetrySettings", "LoggingSettings", "get_settings", "clear_settings_cache",
    "configure_logging",
]
