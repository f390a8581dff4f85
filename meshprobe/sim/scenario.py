"""End-to-end apply-then-poll scenario against the loopback simulator."""

from __future__ import annotations

import json

from meshprobe.core.environment import Environment, EnvironmentKind
from meshprobe.core.outcome import Outcome
from meshprobe.core.poller import poll_until_converged_async
from meshprobe.core.probes import EndpointProbe
from meshprobe.core.retry_policy import RetryPolicy
from meshprobe.core.stages import StageOrchestrator, Suite
from meshprobe.core.transport import AiohttpEndpoint, CallRequest, CallType
from meshprobe.datastructures.type_aliases import DurationSeconds, HostName, UrlPath

from .control_plane import InMemoryConfigStore
from .gateway import GatewayConfig, GatewayFactory, LoopbackGateway, validate_route_document

DEMO_HOST = "my.domain.example"
DEMO_PATH = "/get"


def build_loopback_suite(propagation_delay: DurationSeconds) -> StageOrchestrator:
    """Two stages: a config store, then a gateway subscribed to it."""

    def config_store(env: Environment) -> dict[str, InMemoryConfigStore]:
        return {
            "store": InMemoryConfigStore(
                propagation_delay, validator=validate_route_document
            )
        }

    async def gateway(env: Environment) -> dict[str, LoopbackGateway]:
        store = env.require("store", InMemoryConfigStore)
        return {"gateway": await GatewayFactory().new(GatewayConfig(store=store))}

    async def close_store(env: Environment) -> None:
        await env.require("store", InMemoryConfigStore).close()

    async def stop_gateway(env: Environment) -> None:
        await env.require("gateway", LoopbackGateway).stop()

    return (
        Suite("loopback")
        .setup(config_store, teardown=close_store)
        .setup(gateway, teardown=stop_gateway)
        .build(EnvironmentKind.NATIVE)
    )


def route_document(
    host: HostName, path_prefix: UrlPath, status: int = 200, body: str = "ok"
) -> str:
    return json.dumps(
        {
            "kind": "Route",
            "host": host,
            "path_prefix": path_prefix,
            "status": status,
            "body": body,
        }
    )


async def run_gateway_scenario(
    propagation_delay: DurationSeconds,
    policy: RetryPolicy,
    *,
    host: HostName = DEMO_HOST,
    path: UrlPath = DEMO_PATH,
) -> Outcome:
    """Set up the loopback stack, apply a route and poll until it is served."""
    orchestrator = build_loopback_suite(propagation_delay)
    env = await orchestrator.run_async()
    try:
        store = env.require("store", InMemoryConfigStore)
        gateway = env.require("gateway", LoopbackGateway)

        scope = store.create_scope("gateway")
        await store.apply(scope, route_document(host, path))

        probe = EndpointProbe(
            AiohttpEndpoint(),
            CallRequest(
                host=host,
                path=path,
                address=gateway.address,
                call_type=CallType.PLAIN_TEXT,
            ),
        )
        return await poll_until_converged_async(probe, policy)
    finally:
        await orchestrator.teardown_async()
