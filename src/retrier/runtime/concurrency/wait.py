"""Cancellable waits: a timer raced against a cancellation token.

Provides the two suspension primitives used between retry attempts:
    - sleep: blocking wait for threads
    - sleep_async: awaitable wait for asyncio tasks

Both return normally when the delay elapses first and raise the token's
cancellation error when the token wins, including when it was already
cancelled before the wait began. Neither leaves a timer, callback or future
behind on either path.

Example:
    >>> token = CancellationToken()
    >>> threading.Timer(0.1, token.cancel).start()
    >>> sleep(10.0, token)
    Traceback (most recent call last):
    ...
    OperationCancelledError: operation cancelled
"""

from __future__ import annotations

import asyncio
import threading
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .token import CancellationToken

# Largest timeout a blocking wait accepts on this platform
MAX_DELAY: float = threading.TIMEOUT_MAX


def _bounded(delay: float, token: CancellationToken | None) -> float:
    """Clamp delay into [0, MAX_DELAY] and to the token's deadline."""
    delay = min(max(delay, 0.0), MAX_DELAY)
    if token is not None and (remaining := token.remaining()) is not None:
        delay = min(delay, remaining)
    return delay


def sleep(delay: float, token: CancellationToken | None = None) -> None:
    """Block for ``delay`` seconds unless ``token`` is cancelled first.

    Args:
        delay: Seconds to wait (negative values wait 0)
        token: Cancellation token to race against (None = plain sleep)

    Raises:
        OperationCancelledError: If the token fires before the delay elapses
        DeadlineExceededError: If the token's deadline passes first
    """
    if token is None:
        time.sleep(_bounded(delay, None))
        return
    if token.wait(_bounded(delay, token)):
        raise token.exception()  # type: ignore[misc]


async def sleep_async(delay: float, token: CancellationToken | None = None) -> None:
    """Await ``delay`` seconds unless ``token`` is cancelled first.

    The token may be cancelled from any thread. Cancellation of the awaiting
    task itself propagates as ``asyncio.CancelledError`` as usual.

    Raises:
        OperationCancelledError: If the token fires before the delay elapses
        DeadlineExceededError: If the token's deadline passes first
    """
    if token is None:
        await asyncio.sleep(_bounded(delay, None))
        return
    token.raise_if_cancelled()

    loop = asyncio.get_running_loop()
    fired: asyncio.Future[None] = loop.create_future()

    def _resolve() -> None:
        if not fired.done():
            fired.set_result(None)

    def _wake() -> None:
        loop.call_soon_threadsafe(_resolve)

    handle = token.add_callback(_wake)
    try:
        await asyncio.wait({fired}, timeout=_bounded(delay, token))
    finally:
        token.remove_callback(handle)
        fired.cancel()
    token.raise_if_cancelled()
