"""Core convergence-verification machinery."""

from .collaborators import (
    ComponentFactory,
    ConfigStore,
    apply_config_dir,
    new_scope_name,
)
from .config import HarnessSettings, get_settings, reset_settings
from .environment import Environment, EnvironmentKind
from .errors import (
    ConfigurationError,
    ConvergenceTimeout,
    EndpointCallError,
    EnvironmentMismatch,
    FatalProbeFailure,
    MeshProbeError,
    ProbeFailure,
    RetryPolicyError,
    SetupFailure,
    TransientProbeFailure,
)
from .outcome import FailureKind, Outcome, OutcomeStatus
from .poller import (
    default_is_fatal,
    poll_until_converged,
    poll_until_converged_async,
    until_success,
    until_success_async,
)
from .probes import EndpointProbe, expect_response
from .retry_policy import (
    DEFAULT_RETRY_DELAY,
    DEFAULT_RETRY_TIMEOUT,
    DelayStrategy,
    ExponentialBackoff,
    FixedDelay,
    RetryPolicy,
)
from .stages import Stage, StageOrchestrator, Suite, run_stages

__all__ = [
    "ComponentFactory",
    "ConfigStore",
    "ConfigurationError",
    "ConvergenceTimeout",
    "DEFAULT_RETRY_DELAY",
    "DEFAULT_RETRY_TIMEOUT",
    "DelayStrategy",
    "EndpointCallError",
    "EndpointProbe",
    "Environment",
    "EnvironmentKind",
    "EnvironmentMismatch",
    "ExponentialBackoff",
    "FailureKind",
    "FatalProbeFailure",
    "FixedDelay",
    "HarnessSettings",
    "MeshProbeError",
    "Outcome",
    "OutcomeStatus",
    "ProbeFailure",
    "RetryPolicy",
    "RetryPolicyError",
    "SetupFailure",
    "Stage",
    "StageOrchestrator",
    "Suite",
    "TransientProbeFailure",
    "apply_config_dir",
    "default_is_fatal",
    "expect_response",
    "get_settings",
    "new_scope_name",
    "poll_until_converged",
    "poll_until_converged_async",
    "reset_settings",
    "run_stages",
    "until_success",
    "until_success_async",
]
