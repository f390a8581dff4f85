"""
Convergence poller.

Invokes a probe until it succeeds or the retry policy's budget runs out and
reports a single ``Outcome``. A blocking variant (thread sleep) and an asyncio
variant (``await`` on the delay) share the same bookkeeping, so attempt
counting and ordering are identical under both scheduling models.

Probes signal "not yet" by raising or by returning ``False``, so plain
predicates work as probes; any other return value is a success. By default
every ordinary exception is treated as transient; ``FatalProbeFailure`` (or
anything the ``is_fatal`` hook accepts) aborts the loop immediately.
"""

from __future__ import annotations

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable
from typing import Any

from loguru import logger

from meshprobe.datastructures.type_aliases import DurationSeconds

from .errors import FatalProbeFailure, RetryPolicyError, TransientProbeFailure
from .outcome import FailureKind, Outcome
from .retry_policy import RetryPolicy

type Probe = Callable[[], Any]
type AsyncProbe = Callable[[], Awaitable[Any] | Any]
type FatalClassifier = Callable[[BaseException], bool]
type Clock = Callable[[], float]


def default_is_fatal(error: BaseException) -> bool:
    """Only explicit ``FatalProbeFailure`` stops polling early."""
    return isinstance(error, FatalProbeFailure)


class _PollLoop:
    """Attempt bookkeeping shared by the blocking and asyncio pollers."""

    __slots__ = (
        "policy",
        "is_fatal",
        "clock",
        "description",
        "started",
        "attempts",
        "streak",
        "last_error",
    )

    def __init__(
        self,
        policy: RetryPolicy,
        is_fatal: FatalClassifier,
        clock: Clock,
        description: str,
    ) -> None:
        self.policy = policy
        self.is_fatal = is_fatal
        self.clock = clock
        self.description = description
        self.started = clock()
        self.attempts = 0
        self.streak = 0
        self.last_error: BaseException | None = None

    def elapsed(self) -> DurationSeconds:
        return self.clock() - self.started

    def precheck(self) -> Outcome | None:
        problem = self.policy.budget_error()
        if problem is None:
            return None
        return Outcome.failed(
            FailureKind.INVALID_POLICY, 0, self.elapsed(), RetryPolicyError(problem)
        )

    def begin_attempt(self) -> None:
        self.attempts += 1

    def record_success(self, value: Any) -> Outcome | None:
        if value is False:
            return self.record_failure(TransientProbeFailure("probe returned False"))
        self.streak += 1
        if self.streak >= self.policy.converge:
            return Outcome.converged(self.attempts, self.elapsed(), value)
        logger.debug(
            f"Probe {self.description} succeeded "
            f"({self.streak}/{self.policy.converge} in a row)"
        )
        return self._exhausted()

    def record_failure(self, error: Exception) -> Outcome | None:
        self.streak = 0
        self.last_error = error
        if self.is_fatal(error):
            return Outcome.failed(FailureKind.FATAL, self.attempts, self.elapsed(), error)
        logger.debug(
            f"Probe {self.description} attempt {self.attempts} not converged: {error}"
        )
        return self._exhausted()

    def _exhausted(self) -> Outcome | None:
        if self.policy.attempts_exhausted(
            self.attempts
        ) or self.policy.deadline_exceeded(self.elapsed()):
            last_error = self.last_error
            if last_error is None or self.streak:
                last_error = TransientProbeFailure(
                    f"only {self.streak} of {self.policy.converge} "
                    "consecutive successes observed"
                )
            return Outcome.failed(
                FailureKind.TIMEOUT, self.attempts, self.elapsed(), last_error
            )
        return None

    def next_delay(self) -> DurationSeconds:
        delay = self.policy.delay.delay_for(self.attempts)
        remaining = self.policy.remaining(self.elapsed())
        if remaining is not None:
            delay = min(delay, remaining)
        return max(delay, 0.0)

    def finish(self, outcome: Outcome) -> Outcome:
        if outcome.is_converged:
            logger.info(
                f"Probe {self.description} converged after {outcome.attempts} "
                f"attempt(s) in {outcome.elapsed:.3f}s"
            )
        elif outcome.failure_kind is FailureKind.INVALID_POLICY:
            logger.error(f"Probe {self.description} not started: {outcome.reason}")
        else:
            logger.warning(
                f"Probe {self.description} failed ({outcome.failure_kind.value}) "
                f"after {outcome.attempts} attempt(s) in {outcome.elapsed:.3f}s: "
                f"{outcome.reason}"
            )
        return outcome


def _describe(probe: Callable[..., Any], description: str | None) -> str:
    if description:
        return description
    return (
        getattr(probe, "description", None)
        or getattr(probe, "__name__", None)
        or type(probe).__name__
    )


def poll_until_converged(
    probe: Probe,
    policy: RetryPolicy | None = None,
    *,
    is_fatal: FatalClassifier = default_is_fatal,
    clock: Clock = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
    description: str | None = None,
) -> Outcome:
    """Block until ``probe`` succeeds or ``policy`` is exhausted."""
    loop = _PollLoop(policy or RetryPolicy(), is_fatal, clock, _describe(probe, description))

    outcome = loop.precheck()
    while outcome is None:
        loop.begin_attempt()
        try:
            value = probe()
        except Exception as error:
            outcome = loop.record_failure(error)
        else:
            if inspect.isawaitable(value):
                if inspect.iscoroutine(value):
                    value.close()
                raise TypeError(
                    "probe returned an awaitable; use poll_until_converged_async"
                )
            outcome = loop.record_success(value)

        if outcome is None:
            sleep(loop.next_delay())

    return loop.finish(outcome)


async def poll_until_converged_async(
    probe: AsyncProbe,
    policy: RetryPolicy | None = None,
    *,
    is_fatal: FatalClassifier = default_is_fatal,
    clock: Clock = time.monotonic,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    description: str | None = None,
) -> Outcome:
    """Await ``probe`` until it succeeds or ``policy`` is exhausted.

    ``probe`` may be a coroutine function or a plain callable. The only
    suspension point owned by the poller is the inter-attempt delay.
    """
    loop = _PollLoop(policy or RetryPolicy(), is_fatal, clock, _describe(probe, description))

    outcome = loop.precheck()
    while outcome is None:
        loop.begin_attempt()
        try:
            value = probe()
            if inspect.isawaitable(value):
                value = await value
        except Exception as error:
            outcome = loop.record_failure(error)
        else:
            outcome = loop.record_success(value)

        if outcome is None:
            await sleep(loop.next_delay())

    return loop.finish(outcome)


def until_success(probe: Probe, policy: RetryPolicy | None = None, **kwargs: Any) -> Any:
    """Poll and return the probe's value, raising if convergence fails."""
    return poll_until_converged(probe, policy, **kwargs).raise_for_failure()


async def until_success_async(
    probe: AsyncProbe, policy: RetryPolicy | None = None, **kwargs: Any
) -> Any:
    """Async counterpart of ``until_success``."""
    outcome = await poll_until_converged_async(probe, policy, **kwargs)
    return outcome.raise_for_failure()
