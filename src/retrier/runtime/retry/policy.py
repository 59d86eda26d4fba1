"""Retry policies: predicates deciding whether an error is worth retrying.

A policy is any callable ``(error) -> bool``. True keeps retrying, False stops
the sequence with ``NonRetryableError``. The driver evaluates the policy
exactly once per failed attempt, before checking the attempt budget.

Example:
    >>> policy = all_of(retry_unless(PermissionError), transient_only)
    >>> policy(TimeoutError("read timed out"))
    True
    >>> policy(PermissionError("denied"))
    False
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Callable, TypeAlias

from retrier.foundation.errors import ErrorCode, classify_exception

Policy: TypeAlias = Callable[[BaseException], bool]

# Transient failures that may succeed on retry
DEFAULT_RETRYABLE: frozenset[ErrorCode] = frozenset({
    ErrorCode.RATE_LIMITED,
    ErrorCode.TIMEOUT,
    ErrorCode.NETWORK_ERROR,
})


def always_retry(error: BaseException) -> bool:
    """Default policy: every error is retryable."""
    return True


def retry_on(*exc_types: type[BaseException]) -> Policy:
    """Retry only errors that are instances of ``exc_types``."""
    if not exc_types:
        raise ValueError("retry_on() requires at least one exception type")

    def policy(error: BaseException) -> bool:
        return isinstance(error, exc_types)

    return policy


def retry_unless(*exc_types: type[BaseException]) -> Policy:
    """Retry every error except instances of ``exc_types``."""
    if not exc_types:
        raise ValueError("retry_unless() requires at least one exception type")

    def policy(error: BaseException) -> bool:
        return not isinstance(error, exc_types)

    return policy


def retry_on_codes(codes: Iterable[ErrorCode | str]) -> Policy:
    """Retry errors whose classified ErrorCode is in ``codes``.

    Classification uses ``classify_exception``: an explicit ``code`` attribute
    on the error, then its type, then name/message patterns.
    """
    # Pre-computed string values for fast lookup
    values = frozenset(ErrorCode(c).value for c in codes)

    def policy(error: BaseException) -> bool:
        return classify_exception(error).value in values

    return policy


transient_only: Policy = retry_on_codes(DEFAULT_RETRYABLE)


def all_of(*policies: Policy) -> Policy:
    """Retry only when every policy agrees (short-circuits on first False)."""
    def policy(error: BaseException) -> bool:
        return all(p(error) for p in policies)

    return policy


def any_of(*policies: Policy) -> Policy:
    """Retry when at least one policy agrees."""
    def policy(error: BaseException) -> bool:
        return any(p(error) for p in policies)

    return policy
