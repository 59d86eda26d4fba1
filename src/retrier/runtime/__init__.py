"""Runtime layer: cancellation, retry orchestration and observability."""

from .concurrency import MAX_DELAY, CancellationToken, sleep, sleep_async
from .observability import configure_logging
from .retry import (
    DEFAULT_RETRYABLE,
    Backoff,
    ConstantBackoff,
    ExponentialBackoff,
    OnRetry,
    Policy,
    Retry,
    RetryConfig,
    all_of,
    always_retry,
    any_of,
    jitter,
    retry_on,
    retry_on_codes,
    retry_unless,
    transient_only,
)

__all__ = [
    # Concurrency
    "CancellationToken", "MAX_DELAY", "sleep", "sleep_async",
    # Retry
    "Retry", "RetryConfig", "OnRetry",
    "Backoff", "ConstantBackoff", "ExponentialBackoff", "jitter",
    "Policy", "DEFAULT_RETRYABLE", "always_retry", "retry_on", "retry_unless", "retry_on_codes",
    "transient_only", "all_of", "any_of",
    # Observability
    "configure_logging",
]
