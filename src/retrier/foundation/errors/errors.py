"""Standardized error handling for retry orchestration.

Two taxonomies live here:
- ErrorCode: classification of *operation* failures, used by code-based policies
- RetryErrorCode: why a retry sequence itself terminated unsuccessfully

Every terminal retry exception keeps the original failure reachable through
``__cause__`` and ``last_error``.
"""

from __future__ import annotations

import re
from enum import StrEnum
from functools import lru_cache


class ErrorCode(StrEnum):
    """Standard error codes for operation failures.

    Used for programmatic retry decisions (see ``retry_on_codes``).
    """
    RATE_LIMITED = "RATE_LIMITED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    INVALID_PARAMS = "INVALID_PARAMS"
    PARSE_ERROR = "PARSE_ERROR"
    NOT_FOUND = "NOT_FOUND"
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    UNKNOWN = "UNKNOWN"


# Exception types mapped directly, checked before message patterns
_TYPE_CODES: tuple[tuple[type[BaseException], ErrorCode], ...] = (
    (TimeoutError, ErrorCode.TIMEOUT),
    (ConnectionError, ErrorCode.NETWORK_ERROR),
    (PermissionError, ErrorCode.PERMISSION_DENIED),
    (FileNotFoundError, ErrorCode.NOT_FOUND),
    (LookupError, ErrorCode.NOT_FOUND),
    (ValueError, ErrorCode.INVALID_PARAMS),
)

# Word-prefix patterns, ordered for priority. Each must start on a word
# boundary so "generate" or "sparse" never match "rate" or "parse".
_PATTERN_CODES: tuple[tuple[re.Pattern[str], ErrorCode], ...] = tuple(
    (re.compile(rf"\b(?:{pattern})"), code)
    for pattern, code in (
        (r"time ?out|timed out", ErrorCode.TIMEOUT),
        (r"connection|network|unavailable", ErrorCode.NETWORK_ERROR),
        (r"rate[ _-]?limit|too many requests|throttl", ErrorCode.RATE_LIMITED),
        (r"permission|forbidden", ErrorCode.PERMISSION_DENIED),
        (r"pars(?:e|er|ing)\b|decod", ErrorCode.PARSE_ERROR),
        (r"not ?found", ErrorCode.NOT_FOUND),
    )
)

# Splits CamelCase type names so "ReadTimeoutError" reads "read timeout error"
_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])")


@lru_cache(maxsize=256)
def _classify_cached(exc_key: str) -> ErrorCode:
    """Cached classification by exception signature."""
    haystack = exc_key.lower()
    for pattern, code in _PATTERN_CODES:
        if pattern.search(haystack):
            return code
    return ErrorCode.EXTERNAL_SERVICE_ERROR


def classify_exception(exc: BaseException) -> ErrorCode:
    """Map exception to error code via its type, then name/message patterns.

    Exceptions may carry an explicit ``code`` attribute (an ErrorCode or its
    string value) which wins over any heuristic.
    """
    explicit = getattr(exc, "code", None)
    if isinstance(explicit, str) and explicit in ErrorCode.__members__:
        return ErrorCode(explicit)
    for exc_type, code in _TYPE_CODES:
        if isinstance(exc, exc_type):
            return code
    return _classify_cached(f"{_CAMEL_BOUNDARY.sub(' ', type(exc).__name__)} {exc}")


class RetryErrorCode(StrEnum):
    """Terminal states of a failed retry sequence."""
    NO_ATTEMPTS_ALLOWED = "NO_ATTEMPTS_ALLOWED"
    NON_RETRYABLE = "NON_RETRYABLE"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    CANCELLED = "CANCELLED"
    DEADLINE_EXCEEDED = "DEADLINE_EXCEEDED"


class RetryError(Exception):
    """Base class for every error raised by the retry driver.

    Attributes:
        code: Machine-readable reason the retry sequence ended
        message: Human-readable description
    """

    code: RetryErrorCode

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class NoAttemptsAllowedError(RetryError):
    """Raised before any invocation when the attempt cap is below 1."""

    code = RetryErrorCode.NO_ATTEMPTS_ALLOWED

    def __init__(self, max_attempts: int) -> None:
        self.max_attempts = max_attempts
        super().__init__(f"no attempts are allowed with max attempts set to {max_attempts}")


class NonRetryableError(RetryError):
    """The retry policy rejected the operation's error.

    Attributes:
        last_error: Error that the policy classified as terminal
        attempts: Failed invocations so far, including this one
    """

    code = RetryErrorCode.NON_RETRYABLE

    def __init__(self, last_error: BaseException, attempts: int = 1) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"got a non-retryable error: {last_error}")


class AttemptsExhaustedError(RetryError):
    """The attempt cap was reached while the operation kept failing.

    Attributes:
        last_error: Error returned by the final attempt
        attempts: Number of invocations performed
    """

    code = RetryErrorCode.ATTEMPTS_EXHAUSTED

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(f"all attempts have been exhausted, finished with error: {last_error}")


class OperationCancelledError(RetryError):
    """The cancellation token fired before the sequence could finish.

    Raised by the cancellation token itself and by the driver when a wait
    loses its race against the token. When raised by the driver, the most
    recent operation error is kept on ``last_error`` and as ``__cause__``.
    """

    code = RetryErrorCode.CANCELLED

    def __init__(self, reason: str | None = None, last_error: BaseException | None = None) -> None:
        self.reason = reason
        self.last_error = last_error
        super().__init__(self._describe())

    def _describe(self) -> str:
        return f"operation cancelled: {self.reason}" if self.reason else "operation cancelled"


class DeadlineExceededError(OperationCancelledError):
    """The token's deadline elapsed; a special case of cancellation."""

    code = RetryErrorCode.DEADLINE_EXCEEDED

    def _describe(self) -> str:
        return f"deadline exceeded: {self.reason}" if self.reason else "deadline exceeded"
