"""Cancellation primitives for retry sequences.

Key Components:
    - CancellationToken: thread-safe revocable signal with deadlines and children
    - sleep / sleep_async: waits raced against a token
    - MAX_DELAY: largest wait the platform accepts

Example:
    >>> from retrier.runtime.concurrency import CancellationToken, sleep
    >>> token = CancellationToken(timeout=0.5)
    >>> sleep(0.1, token)   # returns normally
"""

from __future__ import annotations

from .token import CancellationToken
from .wait import MAX_DELAY, sleep, sleep_async

__all__ = [
    "CancellationToken",
    "MAX_DELAY",
    "sleep",
    "sleep_async",
]
