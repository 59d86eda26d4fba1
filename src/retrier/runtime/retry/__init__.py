"""Retry orchestration: backoff strategies, policies and the retry driver.

Example:
    >>> from retrier.runtime.retry import Retry, ConstantBackoff, retry_on
    >>>
    >>> retry = Retry(
    ...     max_attempts=3,
    ...     backoff=ConstantBackoff(wait=0.5, max_jitter=0.1),
    ...     policy=retry_on(ConnectionError, TimeoutError),
    ... )
    >>> retry.do(None, lambda token: ping(host))
"""

from .backoff import (
    Backoff,
    ConstantBackoff,
    ExponentialBackoff,
    jitter,
)
from .driver import (
    OnRetry,
    Retry,
    RetryConfig,
)
from .policy import (
    DEFAULT_RETRYABLE,
    Policy,
    all_of,
    always_retry,
    any_of,
    retry_on,
    retry_on_codes,
    retry_unless,
    transient_only,
)

__all__ = [
    # Backoff strategies
    "Backoff",
    "ConstantBackoff",
    "ExponentialBackoff",
    "jitter",
    # Policies
    "Policy",
    "DEFAULT_RETRYABLE",
    "always_retry",
    "retry_on",
    "retry_unless",
    "retry_on_codes",
    "transient_only",
    "all_of",
    "any_of",
    # Driver
    "Retry",
    "RetryConfig",
    "OnRetry",
]
