"""Aggregate result of a convergence polling loop."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from meshprobe.datastructures.type_aliases import AttemptCount, DurationSeconds

from .errors import ConvergenceTimeout, FatalProbeFailure, RetryPolicyError


class OutcomeStatus(Enum):
    """Terminal state of a polling loop."""

    CONVERGED = "converged"
    FAILED = "failed"


class FailureKind(Enum):
    """Why a polling loop ended without converging."""

    TIMEOUT = "timeout"
    FATAL = "fatal"
    INVALID_POLICY = "invalid_policy"


@dataclass(frozen=True, slots=True)
class Outcome:
    """Result of ``poll_until_converged``.

    ``value`` holds whatever the final successful probe returned.
    ``last_error`` holds the most recent probe failure (or the policy error
    for ``FailureKind.INVALID_POLICY``).
    """

    status: OutcomeStatus
    attempts: AttemptCount
    elapsed: DurationSeconds
    last_error: BaseException | None = None
    failure_kind: FailureKind | None = None
    value: Any = None

    @classmethod
    def converged(
        cls, attempts: AttemptCount, elapsed: DurationSeconds, value: Any = None
    ) -> Outcome:
        return cls(
            status=OutcomeStatus.CONVERGED,
            attempts=attempts,
            elapsed=elapsed,
            value=value,
        )

    @classmethod
    def failed(
        cls,
        kind: FailureKind,
        attempts: AttemptCount,
        elapsed: DurationSeconds,
        last_error: BaseException | None,
    ) -> Outcome:
        return cls(
            status=OutcomeStatus.FAILED,
            attempts=attempts,
            elapsed=elapsed,
            last_error=last_error,
            failure_kind=kind,
        )

    @property
    def is_converged(self) -> bool:
        return self.status is OutcomeStatus.CONVERGED

    @property
    def reason(self) -> str:
        if self.is_converged:
            return ""
        if self.last_error is None:
            return "no probe failure recorded"
        return str(self.last_error) or type(self.last_error).__name__

    def raise_for_failure(self) -> Any:
        """Return the probe value, or raise the error matching the failure kind."""
        if self.is_converged:
            return self.value

        if self.failure_kind is FailureKind.INVALID_POLICY:
            if isinstance(self.last_error, RetryPolicyError):
                raise self.last_error
            raise RetryPolicyError(self.reason)

        if self.failure_kind is FailureKind.FATAL:
            if isinstance(self.last_error, FatalProbeFailure):
                raise self.last_error
            raise FatalProbeFailure(self.reason) from self.last_error

        raise ConvergenceTimeout(
            self.attempts, self.elapsed, self.last_error
        ) from self.last_error
