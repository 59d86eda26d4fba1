"""Tests for the synchronous retry driver.

Validates:
- Attempt accounting against max_attempts
- Policy short-circuiting
- Cancellation precedence and cause preservation
- Builder immutability and configuration
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable

import pytest
from pydantic import ValidationError

from retrier import (
    AttemptsExhaustedError,
    CancellationToken,
    ConstantBackoff,
    DeadlineExceededError,
    NoAttemptsAllowedError,
    NonRetryableError,
    OperationCancelledError,
    Retry,
    RetryConfig,
    RetryErrorCode,
    retry_unless,
)


class FailAttempt(Exception):
    """Error raised by failing attempts."""


def fail_first(failures: int) -> Callable[[CancellationToken], str]:
    """Operation failing on its first ``failures`` calls, then returning "ok"."""
    calls = {"n": 0}

    def operation(token: CancellationToken) -> str:
        calls["n"] += 1
        if calls["n"] <= failures:
            raise FailAttempt(f"fail attempt {calls['n']}")
        return "ok"

    operation.calls = calls  # type: ignore[attr-defined]
    return operation


@dataclass
class RecordingBackoff:
    """Backoff spy recording requested attempt numbers."""
    wait: float = 0.0
    attempts: list[int] = field(default_factory=list)

    def delay(self, attempt: int) -> float:
        self.attempts.append(attempt)
        return self.wait


# ─────────────────────────────────────────────────────────────────────────────
# Attempt budget
# ─────────────────────────────────────────────────────────────────────────────


def test_do_succeeds_on_last_allowed_attempt() -> None:
    op = fail_first(2)

    assert Retry(max_attempts=3).do(CancellationToken(), op) == "ok"
    assert op.calls["n"] == 3  # type: ignore[attr-defined]


def test_do_no_attempts_allowed() -> None:
    op = fail_first(0)

    with pytest.raises(NoAttemptsAllowedError) as exc_info:
        Retry(max_attempts=0).do(CancellationToken(), op)

    assert op.calls["n"] == 0  # type: ignore[attr-defined]
    assert exc_info.value.max_attempts == 0
    assert exc_info.value.code == RetryErrorCode.NO_ATTEMPTS_ALLOWED
    assert str(exc_info.value) == "no attempts are allowed with max attempts set to 0"


def test_do_negative_max_attempts() -> None:
    with pytest.raises(NoAttemptsAllowedError) as exc_info:
        Retry(max_attempts=-3).do(None, fail_first(0))
    assert exc_info.value.max_attempts == -3


def test_do_single_attempt_exhausts_without_waiting() -> None:
    op = fail_first(10)
    backoff = RecordingBackoff(wait=5.0)

    with pytest.raises(AttemptsExhaustedError) as exc_info:
        Retry(max_attempts=1, backoff=backoff).do(CancellationToken(), op)

    assert op.calls["n"] == 1  # type: ignore[attr-defined]
    assert backoff.attempts == []
    err = exc_info.value
    assert err.attempts == 1
    assert isinstance(err.last_error, FailAttempt)
    assert err.__cause__ is err.last_error
    assert str(err) == "all attempts have been exhausted, finished with error: fail attempt 1"


def test_do_exhausts_after_max_attempts() -> None:
    op = fail_first(10)
    backoff = RecordingBackoff()

    with pytest.raises(AttemptsExhaustedError) as exc_info:
        Retry(max_attempts=4, backoff=backoff).do(None, op)

    assert op.calls["n"] == 4  # type: ignore[attr-defined]
    assert backoff.attempts == [1, 2, 3]
    assert str(exc_info.value.last_error) == "fail attempt 4"


def test_do_unlimited_attempts() -> None:
    op = fail_first(25)

    assert Retry().do(None, op) == "ok"
    assert op.calls["n"] == 26  # type: ignore[attr-defined]


def test_do_with_backoff() -> None:
    op = fail_first(2)
    retry = Retry(max_attempts=3, backoff=ConstantBackoff(0.002, 0.001))

    assert retry.do(CancellationToken(), op) == "ok"
    assert op.calls["n"] == 3  # type: ignore[attr-defined]


def test_do_returns_operation_value_and_passes_token() -> None:
    token = CancellationToken()
    seen: list[CancellationToken] = []

    def operation(tok: CancellationToken) -> int:
        seen.append(tok)
        return 42

    assert Retry().do(token, operation) == 42
    assert seen == [token]


# ─────────────────────────────────────────────────────────────────────────────
# Policy
# ─────────────────────────────────────────────────────────────────────────────


def test_do_non_retryable_error_stops_immediately() -> None:
    calls = 0

    def operation(token: CancellationToken) -> None:
        nonlocal calls
        calls += 1
        raise PermissionError("denied")

    with pytest.raises(NonRetryableError) as exc_info:
        Retry(max_attempts=10, policy=retry_unless(PermissionError)).do(None, operation)

    assert calls == 1
    err = exc_info.value
    assert isinstance(err.last_error, PermissionError)
    assert err.__cause__ is err.last_error
    assert err.code == RetryErrorCode.NON_RETRYABLE
    assert str(err) == "got a non-retryable error: denied"


def test_do_policy_checked_before_budget() -> None:
    """A rejected error is non-retryable even on the last allowed attempt."""
    with pytest.raises(NonRetryableError):
        Retry(max_attempts=1, policy=lambda e: False).do(None, fail_first(5))


def test_do_policy_evaluated_once_per_failure() -> None:
    evaluated: list[BaseException] = []

    def policy(error: BaseException) -> bool:
        evaluated.append(error)
        return True

    Retry(max_attempts=5, policy=policy).do(None, fail_first(3))

    assert [str(e) for e in evaluated] == ["fail attempt 1", "fail attempt 2", "fail attempt 3"]


def test_do_base_exceptions_are_not_retried() -> None:
    calls = 0

    def operation(token: CancellationToken) -> None:
        nonlocal calls
        calls += 1
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        Retry(max_attempts=3).do(None, operation)
    assert calls == 1


# ─────────────────────────────────────────────────────────────────────────────
# Cancellation
# ─────────────────────────────────────────────────────────────────────────────


def test_do_cancelled_mid_wait() -> None:
    """Cancellation wins over the backoff delay and the operation's error."""
    token = CancellationToken()
    op = fail_first(100)
    threading.Timer(0.1, token.cancel).start()
    start = time.monotonic()

    with pytest.raises(OperationCancelledError) as exc_info:
        Retry(backoff=ConstantBackoff(10.0)).do(token, op)

    assert time.monotonic() - start < 2.0
    assert op.calls["n"] == 1  # type: ignore[attr-defined]
    err = exc_info.value
    assert err.code == RetryErrorCode.CANCELLED
    assert isinstance(err.last_error, FailAttempt)
    assert err.__cause__ is err.last_error


def test_do_cancelled_without_backoff() -> None:
    """Without pacing, cancellation is still observed between attempts."""
    token = CancellationToken()
    threading.Timer(0.3, token.cancel).start()

    def operation(tok: CancellationToken) -> None:
        time.sleep(0.02)
        raise FailAttempt("fail this attempt")

    with pytest.raises(OperationCancelledError) as exc_info:
        Retry().do(token, operation)
    assert str(exc_info.value) == "operation cancelled"


def test_do_already_cancelled_token_runs_one_attempt() -> None:
    token = CancellationToken()
    token.cancel()
    op = fail_first(5)

    with pytest.raises(OperationCancelledError):
        Retry(max_attempts=5).do(token, op)
    assert op.calls["n"] == 1  # type: ignore[attr-defined]


def test_do_already_cancelled_token_success_wins() -> None:
    token = CancellationToken()
    token.cancel()

    assert Retry().do(token, fail_first(0)) == "ok"


def test_do_deadline_exceeded() -> None:
    token = CancellationToken(timeout=0.1)

    with pytest.raises(DeadlineExceededError) as exc_info:
        Retry(backoff=ConstantBackoff(0.03)).do(token, fail_first(1000))
    assert exc_info.value.code == RetryErrorCode.DEADLINE_EXCEEDED


def test_do_operation_observes_token_cooperatively() -> None:
    token = CancellationToken()

    def operation(tok: CancellationToken) -> None:
        tok.cancel("giving up")
        tok.raise_if_cancelled()

    with pytest.raises(OperationCancelledError) as exc_info:
        Retry(max_attempts=5).do(token, operation)
    assert exc_info.value.reason == "giving up"


# ─────────────────────────────────────────────────────────────────────────────
# Hooks, logging, configuration
# ─────────────────────────────────────────────────────────────────────────────


def test_on_retry_called_before_each_wait() -> None:
    events: list[tuple[int, str, float]] = []
    retry = Retry(
        max_attempts=5,
        backoff=ConstantBackoff(0.001),
        on_retry=lambda attempt, error, delay: events.append((attempt, str(error), delay)),
    )

    retry.do(None, fail_first(2))

    assert events == [(1, "fail attempt 1", 0.001), (2, "fail attempt 2", 0.001)]


def test_retries_are_logged(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="retrier.retry")

    with pytest.raises(AttemptsExhaustedError):
        Retry(max_attempts=2, name="fetch").do(None, fail_first(5))

    retries = [r for r in caplog.records if r.levelno == logging.INFO]
    assert len(retries) == 1
    assert "[fetch] Retry 1/2" in retries[0].getMessage()
    assert retries[0].attempt == 1  # type: ignore[attr-defined]
    assert any("exhausted" in r.getMessage() for r in caplog.records if r.levelno == logging.WARNING)


def test_builders_return_new_drivers() -> None:
    base = Retry()
    capped = base.with_max_attempts(3).with_backoff(ConstantBackoff(0.1)).with_policy(lambda e: False)

    assert base.config.max_attempts is None
    assert base.config.backoff is None
    assert capped.config.max_attempts == 3
    assert isinstance(capped.config.backoff, ConstantBackoff)
    assert capped.config.policy(RuntimeError()) is False


def test_config_is_frozen() -> None:
    config = RetryConfig(max_attempts=3)

    with pytest.raises(ValidationError):
        config.max_attempts = 5  # type: ignore[misc]
    with pytest.raises(ValidationError):
        RetryConfig(unknown_option=1)  # type: ignore[call-arg]


def test_config_rejects_non_backoff() -> None:
    with pytest.raises(ValidationError):
        RetryConfig(backoff="exponential")  # type: ignore[arg-type]


def test_builders_validate_updates() -> None:
    base = Retry(max_attempts=2, name="checked")

    with pytest.raises(ValidationError):
        base.with_backoff("exponential")  # type: ignore[arg-type]
    with pytest.raises(ValidationError):
        base.with_max_attempts("many")  # type: ignore[arg-type]

    kept = base.with_on_retry(lambda attempt, err, delay: None)
    assert kept.config.max_attempts == 2
    assert kept.config.name == "checked"
    assert kept.config.on_retry is not None


def test_driver_from_config() -> None:
    config = RetryConfig(max_attempts=2)
    retry = Retry(config=config)

    assert retry.config is config
    assert repr(retry) == "Retry(max_attempts=2, backoff=none, name='retry')"


def test_driver_is_reusable_across_threads() -> None:
    retry = Retry(max_attempts=3, backoff=ConstantBackoff(0.001, 0.001))

    def run(_: int) -> tuple[str, int]:
        op = fail_first(2)
        return retry.do(CancellationToken(), op), op.calls["n"]  # type: ignore[attr-defined]

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(run, range(16)))

    assert results == [("ok", 3)] * 16
