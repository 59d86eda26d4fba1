"""Cancellation tokens with deadlines and parent/child propagation.

A token is a revocable signal shared between whoever decides a unit of work
should stop (the owner) and the code doing the work (the observers). Tokens
are thread-safe and usable from both threads and asyncio tasks.

Key Features:
    - Explicit cancellation: ``cancel()`` with an optional reason
    - Deadlines: a token created with ``timeout`` cancels itself once it expires
    - Children: ``child()`` derives a token cancelled with its parent
    - Callbacks: run once when cancellation is observed

Deadlines are evaluated lazily: expiry is noticed by ``cancelled``, ``wait``
and the waiters in ``retrier.runtime.concurrency.wait``, which never block
past the deadline. No background thread is started.

Example:
    >>> token = CancellationToken(timeout=5.0)
    >>> with token.child(timeout=1.0) as sub:
    ...     sub.wait(10.0)   # returns True after ~1s
    True
    >>> token.cancel("shutting down")
    True
    >>> token.exception()
    OperationCancelledError('operation cancelled: shutting down')
"""

from __future__ import annotations

import itertools
import logging
import threading
import time
from typing import TYPE_CHECKING, Callable

from retrier.foundation.errors import DeadlineExceededError, OperationCancelledError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger("retrier.token")


class CancellationToken:
    """Thread-safe cancellation signal with an optional deadline.

    Args:
        timeout: Seconds until the token cancels itself (None = no deadline)

    Attributes:
        deadline: ``time.monotonic()`` instant of expiry, or None
    """

    __slots__ = (
        "_event", "_lock", "_reason", "_error_type", "_deadline", "_callbacks",
        "_handles", "_cancellable", "_parent", "_parent_handle",
    )

    def __init__(self, timeout: float | None = None) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason: str | None = None
        self._error_type: type[OperationCancelledError] = OperationCancelledError
        self._deadline = None if timeout is None else time.monotonic() + max(timeout, 0.0)
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._handles = itertools.count(1)
        self._cancellable = True
        self._parent: CancellationToken | None = None
        self._parent_handle = 0

    @classmethod
    def never(cls) -> CancellationToken:
        """Token that can never be cancelled (the default for ``Retry.do``)."""
        token = cls()
        token._cancellable = False
        return token

    @property
    def deadline(self) -> float | None:
        return self._deadline

    @property
    def reason(self) -> str | None:
        return self._reason

    @property
    def cancelled(self) -> bool:
        """Whether cancellation was requested or the deadline has passed."""
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._cancel(None, DeadlineExceededError)
            return True
        return False

    def remaining(self) -> float | None:
        """Seconds left before the deadline, None without one."""
        if self._deadline is None:
            return None
        return max(self._deadline - time.monotonic(), 0.0)

    def cancel(self, reason: str | None = None) -> bool:
        """Request cancellation. Idempotent.

        Returns:
            True if this call cancelled the token, False if it was already
            cancelled or cannot be cancelled
        """
        return self._cancel(reason, OperationCancelledError)

    def _cancel(self, reason: str | None, error_type: type[OperationCancelledError]) -> bool:
        with self._lock:
            if self._event.is_set() or not self._cancellable:
                return False
            self._reason = reason
            self._error_type = error_type
            self._event.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        logger.debug("token cancelled", extra={"reason": reason, "kind": error_type.code.value})
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.exception("cancellation callback failed")
        return True

    def exception(self) -> OperationCancelledError | None:
        """New error describing why the token was cancelled, None if it wasn't."""
        if not self.cancelled:
            return None
        return self._error_type(self._reason)

    def raise_if_cancelled(self) -> None:
        """Raise the cancellation error if the token has been cancelled."""
        if (error := self.exception()) is not None:
            raise error

    def wait(self, timeout: float | None = None) -> bool:
        """Block until cancelled or ``timeout`` seconds elapse.

        Never blocks past the token's deadline.

        Returns:
            True if the token is cancelled on return
        """
        remaining = self.remaining()
        if remaining is not None:
            timeout = remaining if timeout is None else min(timeout, remaining)
        self._event.wait(timeout)
        return self.cancelled

    def add_callback(self, callback: Callable[[], None]) -> int:
        """Run ``callback`` once when the token is cancelled.

        Runs immediately if the token is already cancelled.

        Returns:
            Handle for ``remove_callback`` (0 when run immediately)
        """
        if not self.cancelled:
            with self._lock:
                if not self._event.is_set():
                    handle = next(self._handles)
                    self._callbacks[handle] = callback
                    return handle
        callback()
        return 0

    def remove_callback(self, handle: int) -> None:
        """Unregister a callback. Unknown or already-run handles are ignored."""
        with self._lock:
            self._callbacks.pop(handle, None)

    def child(self, timeout: float | None = None) -> CancellationToken:
        """Derive a token cancelled whenever this one is.

        The child's deadline is the earlier of ``timeout`` and this token's
        deadline. Release it with ``close()`` (or a ``with`` block) so the
        parent stops tracking it.
        """
        child = CancellationToken(timeout)
        if self._deadline is not None and (child._deadline is None or self._deadline < child._deadline):
            child._deadline = self._deadline
        child._parent = self
        child._parent_handle = self.add_callback(child._cancel_from_parent)
        return child

    def _cancel_from_parent(self) -> None:
        parent = self._parent
        if parent is not None:
            self._cancel(parent._reason, parent._error_type)

    def close(self) -> None:
        """Release the token: cancel it and detach it from its parent."""
        self._cancel("token closed", OperationCancelledError)
        if (parent := self._parent) is not None:
            parent.remove_callback(self._parent_handle)
            self._parent = None

    def __enter__(self) -> CancellationToken:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "active"
        return f"CancellationToken({state}, deadline={self._deadline!r})"
