"""Backoff strategies for retry drivers.

Provides pluggable delay calculation between attempts:
- ConstantBackoff: Fixed delay plus bounded jitter
- ExponentialBackoff: Exponential growth plus bounded jitter, capped

Attempt numbers count failed invocations so far: ``delay(0)`` is always 0
(nothing has failed yet) and ``delay(1)`` is the wait after the first failure.
Delays are seconds as ``float`` and never negative.

Each strategy owns a ``random.Random`` for jitter. Pass a seeded instance to
make sequences reproducible.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from retrier.runtime.concurrency import MAX_DELAY


@runtime_checkable
class Backoff(Protocol):
    """Protocol for backoff delay calculation.

    Implementations must be pure functions of ``attempt`` and their fixed
    configuration (entropy aside), so one instance can serve any number of
    concurrent retry sequences.
    """

    def delay(self, attempt: int) -> float:
        """Calculate delay in seconds before the next attempt.

        Args:
            attempt: Number of failed attempts so far

        Returns:
            Non-negative delay in seconds
        """
        ...


def jitter(max_jitter: float, rng: random.Random | None = None) -> float:
    """Uniform random value in ``[0, max_jitter)``, exactly 0 if ``max_jitter <= 0``."""
    if max_jitter <= 0:
        return 0.0
    return (rng or random).random() * max_jitter


@dataclass(frozen=True, slots=True)
class ConstantBackoff:
    """Fixed delay between retries, plus jitter.

    Delay = wait + uniform[0, max_jitter)

    Negative settings are clamped to 0.

    Attributes:
        wait: Fixed delay in seconds (default: 1.0)
        max_jitter: Exclusive upper bound of added jitter (default: 0.0)
        rng: Random source for jitter
    """

    wait: float = 1.0
    max_jitter: float = 0.0
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "wait", max(float(self.wait), 0.0))
        object.__setattr__(self, "max_jitter", max(float(self.max_jitter), 0.0))

    def delay(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        return self.wait + jitter(self.max_jitter, self.rng)


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff with jitter and a hard cap.

    Delay = min(min_wait * factor ^ (attempt - 1) + jitter, max_wait)

    Once the exponential term reaches ``max_wait`` every further delay is
    exactly ``max_wait``; jitter never pushes a delay past the cap. Growth
    that overflows a float, or exceeds ``MAX_DELAY``, is treated as capped.

    Attributes:
        min_wait: Delay after the first failure in seconds (default: 0.1)
        max_wait: Maximum delay cap in seconds (default: 30.0)
        max_jitter: Exclusive upper bound of added jitter (default: 0.0)
        factor: Exponential growth factor, at least 1 (default: 2.0)
        rng: Random source for jitter
    """

    min_wait: float = 0.1
    max_wait: float = 30.0
    max_jitter: float = 0.0
    factor: float = 2.0
    rng: random.Random = field(default_factory=random.Random, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.factor < 1.0:
            raise ValueError(f"factor must be >= 1 for non-decreasing delays, got {self.factor}")
        object.__setattr__(self, "min_wait", max(float(self.min_wait), 0.0))
        object.__setattr__(self, "max_wait", max(float(self.max_wait), 0.0))
        object.__setattr__(self, "max_jitter", max(float(self.max_jitter), 0.0))
        object.__setattr__(self, "factor", float(self.factor))

    def delay(self, attempt: int) -> float:
        if attempt <= 0:
            return 0.0
        raw = self._growth(attempt)
        if raw is None:
            return self.max_wait
        return min(raw + jitter(self.max_jitter, self.rng), self.max_wait)

    def _growth(self, attempt: int) -> float | None:
        """Exponential term for ``attempt``, None when it overflows."""
        if self.min_wait == 0.0:
            return 0.0
        try:
            raw = self.min_wait * self.factor ** (attempt - 1)
        except OverflowError:
            return None
        if not math.isfinite(raw) or raw > MAX_DELAY:
            return None
        return raw
