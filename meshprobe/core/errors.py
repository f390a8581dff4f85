"""
Exception hierarchy for meshprobe.

Setup problems, probe failures and policy mistakes are kept in separate
branches so callers can tell a broken environment from a slow control plane.
"""

from __future__ import annotations

from meshprobe.datastructures.type_aliases import (
    AttemptCount,
    DurationSeconds,
    ErrorMessage,
    StageName,
    StagePosition,
)


class MeshProbeError(Exception):
    """Base exception for all meshprobe errors."""

    pass


class ConfigurationError(MeshProbeError):
    """Raised when settings or environment variables are invalid."""

    pass


class RetryPolicyError(ConfigurationError):
    """Raised when a retry policy cannot bound a polling loop."""

    pass


class SetupFailure(MeshProbeError):
    """A setup stage failed; the whole run is void.

    The underlying exception is chained as ``__cause__``.
    """

    def __init__(
        self, stage: StageName, position: StagePosition, reason: ErrorMessage
    ) -> None:
        self.stage = stage
        self.position = position
        self.reason = reason
        super().__init__(f"setup stage {position} ({stage!r}) failed: {reason}")


class EnvironmentMismatch(MeshProbeError):
    """The suite requires an environment kind that is not active."""

    def __init__(self, suite: str, required: str, active: str) -> None:
        self.suite = suite
        self.required = required
        self.active = active
        super().__init__(
            f"suite {suite!r} requires environment {required!r}, active is {active!r}"
        )


class ProbeFailure(MeshProbeError):
    """Base class for a single unsuccessful probe attempt."""

    pass


class TransientProbeFailure(ProbeFailure):
    """The expected state is not observable yet; polling continues."""

    pass


class FatalProbeFailure(ProbeFailure):
    """The probe hit an unrecoverable condition; polling stops immediately."""

    pass


class ConvergenceTimeout(MeshProbeError):
    """The retry budget ran out before the probe succeeded."""

    def __init__(
        self,
        attempts: AttemptCount,
        elapsed: DurationSeconds,
        last_error: BaseException | None,
    ) -> None:
        self.attempts = attempts
        self.elapsed = elapsed
        self.last_error = last_error
        detail = f": {last_error}" if last_error is not None else ""
        super().__init__(
            f"not converged after {attempts} attempt(s) in {elapsed:.2f}s{detail}"
        )


class EndpointCallError(MeshProbeError):
    """Transport-level failure while calling a data-plane endpoint."""

    pass
