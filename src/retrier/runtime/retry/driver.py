"""Retry driver: runs an operation until success, rejection, exhaustion or cancellation.

State machine per call:

    Ready -> Invoking -> Success
                      -> Evaluating -> NonRetryable
                                    -> Exhausted
                                    -> Waiting -> Cancelled
                                               -> Ready

Example:
    >>> retry = (
    ...     Retry()
    ...     .with_max_attempts(5)
    ...     .with_backoff(ExponentialBackoff(min_wait=0.1, max_wait=2.0, max_jitter=0.05))
    ...     .with_policy(transient_only)
    ... )
    >>> token = CancellationToken(timeout=10.0)
    >>> body = retry.do(token, lambda tok: fetch(url, cancel=tok))
    >>>
    >>> # Async operations share the same configuration
    >>> body = await retry.ado(token, lambda tok: afetch(url, cancel=tok))
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import TYPE_CHECKING, Callable, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from retrier.foundation.errors import AttemptsExhaustedError, NoAttemptsAllowedError, NonRetryableError, OperationCancelledError
from retrier.runtime.concurrency import CancellationToken, sleep, sleep_async

from .backoff import Backoff
from .policy import Policy, always_retry

if TYPE_CHECKING:
    from retrier.foundation.config import RetrySettings

T = TypeVar("T")

OnRetry = Callable[[int, BaseException, float], None]

logger = logging.getLogger("retrier.retry")


class RetryConfig(BaseModel):
    """Immutable retry configuration.

    Built once and shared by any number of ``do``/``ado`` calls; each call
    keeps its own attempt counter.

    Attributes:
        max_attempts: Cap on total invocations (None = unlimited). Values
            below 1 are accepted here and rejected when the driver runs.
        backoff: Delay strategy between attempts (None = no pacing)
        policy: Predicate deciding whether an error is retryable
        on_retry: Optional callback ``(attempt, error, delay)`` before each wait
        name: Label used in log records
    """

    model_config = ConfigDict(
        frozen=True,
        arbitrary_types_allowed=True,  # For Backoff protocol
        extra="forbid",
        revalidate_instances="never",
    )

    max_attempts: int | None = None
    backoff: Backoff | None = Field(default=None, repr=False)
    policy: Policy = Field(default=always_retry, repr=False)
    on_retry: OnRetry | None = Field(default=None, exclude=True, repr=False)
    name: str = "retry"

    @property
    def is_unlimited(self) -> bool:
        return self.max_attempts is None


class Retry:
    """Retry driver.

    By default a driver:
        - attempts ad infinitum
        - does not wait between attempts
        - retries on all errors

    Operations receive the cancellation token so they can bail out early;
    the driver never interrupts a running operation.

    Args:
        max_attempts: Cap on total invocations (None = unlimited)
        backoff: Backoff strategy (None = no pacing)
        policy: Retry predicate (default: always retry)
        on_retry: Callback invoked as ``(attempt, error, delay)`` before each wait
        name: Label for log records
        config: Pre-built RetryConfig (overrides the other arguments)
    """

    __slots__ = ("_config",)

    def __init__(
        self,
        max_attempts: int | None = None,
        backoff: Backoff | None = None,
        policy: Policy = always_retry,
        *,
        on_retry: OnRetry | None = None,
        name: str = "retry",
        config: RetryConfig | None = None,
    ) -> None:
        self._config = config or RetryConfig(
            max_attempts=max_attempts, backoff=backoff, policy=policy, on_retry=on_retry, name=name,
        )

    @classmethod
    def from_settings(cls, settings: RetrySettings | None = None, **overrides: object) -> Retry:
        """Build a driver from ``RetrySettings`` (default: environment settings).

        Keyword overrides (``policy``, ``on_retry``, ``name``...) replace the
        corresponding configured values.
        """
        if settings is None:
            from retrier.foundation.config import get_settings
            settings = get_settings().retry
        values: dict[str, object] = {"max_attempts": settings.max_attempts, "backoff": settings.build_backoff()}
        values.update(overrides)
        return cls(config=RetryConfig(**values))  # type: ignore[arg-type]

    @property
    def config(self) -> RetryConfig:
        return self._config

    def _replace(self, **update: object) -> Retry:
        return Retry(config=RetryConfig(**{**dict(self._config), **update}))  # type: ignore[arg-type]

    def with_max_attempts(self, max_attempts: int | None) -> Retry:
        """New driver capped at ``max_attempts`` invocations."""
        return self._replace(max_attempts=max_attempts)

    def with_backoff(self, backoff: Backoff | None) -> Retry:
        """New driver pacing attempts with ``backoff``."""
        return self._replace(backoff=backoff)

    def with_policy(self, policy: Policy) -> Retry:
        """New driver classifying errors with ``policy``."""
        return self._replace(policy=policy)

    def with_on_retry(self, on_retry: OnRetry | None) -> Retry:
        return self._replace(on_retry=on_retry)

    def do(self, token: CancellationToken | None, operation: Callable[[CancellationToken], T]) -> T:
        """Run ``operation`` until it succeeds or the sequence terminates.

        Args:
            token: Cancellation token observed between attempts and passed to
                the operation (None = never cancelled)
            operation: Callable taking the token; raising an Exception marks
                the attempt as failed

        Returns:
            The value returned by the first successful attempt

        Raises:
            NoAttemptsAllowedError: ``max_attempts`` is below 1 (nothing runs)
            NonRetryableError: The policy rejected the operation's error
            AttemptsExhaustedError: ``max_attempts`` invocations all failed
            OperationCancelledError: The token fired during a wait
        """
        self._check_allowed()
        token = token if token is not None else CancellationToken.never()
        attempt = 0
        while True:
            try:
                return operation(token)
            except Exception as err:
                attempt, delay = self._next_attempt(err, attempt)
                try:
                    sleep(delay, token)
                except OperationCancelledError as cancelled:
                    raise self._cancelled(cancelled, err, attempt) from err

    async def ado(
        self, token: CancellationToken | None, operation: Callable[[CancellationToken], Awaitable[T]],
    ) -> T:
        """Async version of ``do`` for operations returning awaitables.

        Waits race an asyncio timer against the token, which may be cancelled
        from any thread. Cancelling the calling task propagates
        ``asyncio.CancelledError`` untouched.
        """
        self._check_allowed()
        token = token if token is not None else CancellationToken.never()
        attempt = 0
        while True:
            try:
                return await operation(token)
            except Exception as err:
                attempt, delay = self._next_attempt(err, attempt)
                try:
                    await sleep_async(delay, token)
                except OperationCancelledError as cancelled:
                    raise self._cancelled(cancelled, err, attempt) from err

    def _check_allowed(self) -> None:
        if (cap := self._config.max_attempts) is not None and cap < 1:
            raise NoAttemptsAllowedError(cap)

    def _next_attempt(self, error: Exception, attempt: int) -> tuple[int, float]:
        """Evaluate a failed attempt; return the new count and the delay to wait.

        Raises the terminal error when the sequence must stop.
        """
        cfg = self._config
        extra = {"retry_name": cfg.name, "error": repr(error)}

        if not cfg.policy(error):
            logger.warning(
                f"[{cfg.name}] Non-retryable error on attempt {attempt + 1}: {error}",
                extra={**extra, "attempt": attempt + 1},
            )
            raise NonRetryableError(error, attempt + 1) from error

        attempt += 1
        if cfg.max_attempts is not None and attempt >= cfg.max_attempts:
            logger.warning(
                f"[{cfg.name}] All {attempt} attempts exhausted: {error}",
                extra={**extra, "attempt": attempt},
            )
            raise AttemptsExhaustedError(error, attempt) from error

        delay = cfg.backoff.delay(attempt) if cfg.backoff is not None else 0.0
        logger.info(
            f"[{cfg.name}] Retry {attempt}/{cfg.max_attempts or 'unlimited'} after {delay:.3f}s ({error})",
            extra={**extra, "attempt": attempt, "delay": delay},
        )
        if cfg.on_retry:
            cfg.on_retry(attempt, error, delay)
        return attempt, delay

    def _cancelled(self, cancelled: OperationCancelledError, error: Exception, attempt: int) -> OperationCancelledError:
        """Attach the last operation error to a cancellation that won the wait."""
        cancelled.last_error = error
        logger.warning(
            f"[{self._config.name}] Cancelled after {attempt} failed attempt(s): {cancelled}",
            extra={"retry_name": self._config.name, "attempt": attempt, "error": repr(error)},
        )
        return cancelled

    def __repr__(self) -> str:
        cfg = self._config
        backoff = type(cfg.backoff).__name__ if cfg.backoff is not None else "none"
        return f"Retry(max_attempts={cfg.max_attempts}, backoff={backoff}, name={cfg.name!r})"
