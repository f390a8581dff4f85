"""
meshprobe - convergence verification for control-plane integration tests

Brings up interdependent components in a fixed order, then checks that a
configuration change applied to a control plane becomes observable at the
data plane, by polling a probe under a bounded retry policy instead of
sleeping and asserting once.

## Quick Start

```python
from meshprobe import RetryPolicy, Suite, poll_until_converged

env = (
    Suite("ingress")
    .setup(start_control_plane)
    .setup(start_gateway)
    .run()
)

apply_route(env["control_plane"])
outcome = poll_until_converged(lambda: check_route(env["gateway"]), RetryPolicy())
outcome.raise_for_failure()
```
"""

from .core import (
    ComponentFactory,
    ConfigStore,
    ConfigurationError,
    ConvergenceTimeout,
    EndpointCallError,
    EndpointProbe,
    Environment,
    EnvironmentKind,
    EnvironmentMismatch,
    ExponentialBackoff,
    FailureKind,
    FatalProbeFailure,
    FixedDelay,
    HarnessSettings,
    MeshProbeError,
    Outcome,
    OutcomeStatus,
    RetryPolicy,
    RetryPolicyError,
    SetupFailure,
    Stage,
    StageOrchestrator,
    Suite,
    TransientProbeFailure,
    apply_config_dir,
    new_scope_name,
    poll_until_converged,
    poll_until_converged_async,
    run_stages,
    until_success,
    until_success_async,
)
from .core.transport import AiohttpEndpoint, CallRequest, CallResponse, CallType, Endpoint

__version__ = "0.1.0"

__all__ = [
    "AiohttpEndpoint",
    "CallRequest",
    "CallResponse",
    "CallType",
    "ComponentFactory",
    "ConfigStore",
    "ConfigurationError",
    "ConvergenceTimeout",
    "Endpoint",
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
    "RetryPolicy",
    "RetryPolicyError",
    "SetupFailure",
    "Stage",
    "StageOrchestrator",
    "Suite",
    "TransientProbeFailure",
    "apply_config_dir",
    "new_scope_name",
    "poll_until_converged",
    "poll_until_converged_async",
    "run_stages",
    "until_success",
    "until_success_async",
]
