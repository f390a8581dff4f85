"""Retry policies that bound a convergence polling loop."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from meshprobe.datastructures.type_aliases import (
    AttemptBudget,
    AttemptCount,
    DurationSeconds,
    SuccessStreak,
)

from .errors import RetryPolicyError

DEFAULT_RETRY_TIMEOUT = 30.0  # seconds
DEFAULT_RETRY_DELAY = 0.01  # 10 milliseconds between attempts
DEFAULT_CONVERGE = 1  # consecutive successes needed


@runtime_checkable
class DelayStrategy(Protocol):
    """Computes the wait after a failed attempt."""

    def delay_for(self, attempt: AttemptCount) -> DurationSeconds: ...


@dataclass(frozen=True, slots=True)
class FixedDelay:
    """Wait the same amount of time after every attempt."""

    seconds: DurationSeconds = DEFAULT_RETRY_DELAY

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise RetryPolicyError(f"delay must be >= 0, got {self.seconds}")

    def delay_for(self, attempt: AttemptCount) -> DurationSeconds:
        return self.seconds


@dataclass(frozen=True, slots=True)
class ExponentialBackoff:
    """Exponential backoff with optional multiplicative jitter.

    ``attempt`` is the number of attempts made so far, so the first wait is
    ``initial_seconds``. Jitter only stretches or shrinks the wait; it never
    changes how many attempts the policy allows.
    """

    initial_seconds: DurationSeconds = DEFAULT_RETRY_DELAY
    multiplier: float = 2.0
    max_seconds: DurationSeconds = 1.0
    jitter_factor: float = 0.0
    rng: random.Random = field(default_factory=random.Random, compare=False, repr=False)

    def __post_init__(self) -> None:
        if self.initial_seconds < 0 or self.max_seconds < 0:
            raise RetryPolicyError("backoff delays must be >= 0")
        if self.multiplier < 1.0:
            raise RetryPolicyError(f"backoff multiplier must be >= 1, got {self.multiplier}")
        if not 0.0 <= self.jitter_factor <= 1.0:
            raise RetryPolicyError(
                f"jitter factor must be within [0, 1], got {self.jitter_factor}"
            )

    def delay_for(self, attempt: AttemptCount) -> DurationSeconds:
        exponent = max(attempt - 1, 0)
        delay = min(self.initial_seconds * (self.multiplier**exponent), self.max_seconds)
        if self.jitter_factor:
            delay *= 1 + self.rng.uniform(-self.jitter_factor, self.jitter_factor)
        return max(delay, 0.0)


class _Unset(Enum):
    DEADLINE = "deadline"


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Bounds a polling loop by wall-clock deadline and/or attempt count.

    Leaving ``deadline`` out means ``DEFAULT_RETRY_TIMEOUT`` when there is no
    attempt budget, and no deadline at all when there is one. A policy with
    neither bound is rejected at construction. A policy whose bound is zero
    or negative can be built, but polling with it fails immediately without
    invoking the probe.
    """

    deadline: DurationSeconds | None | _Unset = _Unset.DEADLINE
    max_attempts: AttemptBudget | None = None
    delay: DelayStrategy = field(default_factory=FixedDelay)
    converge: SuccessStreak = DEFAULT_CONVERGE

    def __post_init__(self) -> None:
        if self.deadline is _Unset.DEADLINE:
            default = DEFAULT_RETRY_TIMEOUT if self.max_attempts is None else None
            object.__setattr__(self, "deadline", default)
        if self.deadline is None and self.max_attempts is None:
            raise RetryPolicyError(
                "retry policy needs a deadline, an attempt budget, or both"
            )
        if self.converge < 1:
            raise RetryPolicyError(f"converge must be >= 1, got {self.converge}")

    @classmethod
    def attempts(
        cls, max_attempts: AttemptBudget, delay: DurationSeconds = 0.0
    ) -> RetryPolicy:
        """Attempt-bounded policy with a fixed delay and no deadline."""
        return cls(deadline=None, max_attempts=max_attempts, delay=FixedDelay(delay))

    @classmethod
    def timeout(
        cls, deadline: DurationSeconds, delay: DurationSeconds = DEFAULT_RETRY_DELAY
    ) -> RetryPolicy:
        """Deadline-bounded policy with a fixed delay and no attempt budget."""
        return cls(deadline=deadline, max_attempts=None, delay=FixedDelay(delay))

    def budget_error(self) -> str | None:
        """Describe why this policy cannot run a single attempt, if it cannot."""
        if self.max_attempts is not None and self.max_attempts <= 0:
            return f"attempt budget must be positive, got {self.max_attempts}"
        if self.deadline is not None and self.deadline <= 0:
            return f"deadline must be positive, got {self.deadline}"
        return None

    def attempts_exhausted(self, attempts: AttemptCount) -> bool:
        return self.max_attempts is not None and attempts >= self.max_attempts

    def deadline_exceeded(self, elapsed: DurationSeconds) -> bool:
        return self.deadline is not None and elapsed >= self.deadline

    def remaining(self, elapsed: DurationSeconds) -> DurationSeconds | None:
        if self.deadline is None:
            return None
        return max(self.deadline - elapsed, 0.0)

    def describe(self) -> str:
        bounds = []
        if self.deadline is not None:
            bounds.append(f"deadline={self.deadline:g}s")
        if self.max_attempts is not None:
            bounds.append(f"max_attempts={self.max_attempts}")
        if self.converge > 1:
            bounds.append(f"converge={self.converge}")
        return ", ".join(bounds)
