"""
Integration tests against the loopback control plane and gateway.

Each test gets a config store and a live aiohttp gateway built by the stage
orchestrator (see the ``loopback_env`` fixture), applies route documents and
polls the gateway over real HTTP until the route is served.
"""

import json

import pytest

from meshprobe.core.collaborators import (
    ComponentFactory,
    ConfigStore,
    apply_config_dir,
    new_scope_name,
)
from meshprobe.core.errors import EndpointCallError
from meshprobe.core.outcome import FailureKind
from meshprobe.core.poller import poll_until_converged_async
from meshprobe.core.probes import EndpointProbe
from meshprobe.core.retry_policy import RetryPolicy
from meshprobe.core.transport import AiohttpEndpoint, CallRequest
from meshprobe.sim.control_plane import InMemoryConfigStore
from meshprobe.sim.gateway import GatewayFactory, LoopbackGateway, Route, parse_routes
from meshprobe.sim.scenario import route_document, run_gateway_scenario
from tests.test_helpers import unused_tcp_port

POLICY = RetryPolicy.timeout(10.0, delay=0.02)


def gateway_probe(gateway: LoopbackGateway, host: str, path: str, **kwargs) -> EndpointProbe:
    request = CallRequest(host=host, path=path, address=gateway.address, timeout=2.0)
    return EndpointProbe(AiohttpEndpoint(), request, **kwargs)


class TestRouteParsing:
    def test_single_object(self):
        routes = parse_routes(route_document("a.example", "/x", 201, "hi"))
        assert routes == [Route(host="a.example", path_prefix="/x", status=201, body="hi")]

    def test_list_with_other_kinds(self):
        document = json.dumps(
            [
                {"kind": "Route", "host": "a.example"},
                {"kind": "Secret", "name": "ignored"},
            ]
        )
        assert parse_routes(document) == [Route(host="a.example")]

    @pytest.mark.parametrize(
        "document",
        ["{not json", "[1, 2]", json.dumps({"kind": "Route", "path_prefix": "/"})],
    )
    def test_invalid_documents(self, document):
        with pytest.raises(ValueError):
            parse_routes(document)

    def test_resolve_prefers_specific_host_then_longest_prefix(self):
        gateway = LoopbackGateway()
        gateway.routes = {
            (None, "*", "/"): Route(host="*", body="wildcard"),
            (None, "a.example", "/"): Route(host="a.example", body="root"),
            (None, "a.example", "/api"): Route(host="a.example", path_prefix="/api", body="api"),
        }
        assert gateway.resolve("a.example", "/api/v1").body == "api"
        assert gateway.resolve("a.example", "/other").body == "root"
        assert gateway.resolve("b.example", "/api").body == "wildcard"


class TestCollaborators:
    def test_bindings_satisfy_protocols(self):
        assert isinstance(InMemoryConfigStore(), ConfigStore)
        assert isinstance(GatewayFactory(), ComponentFactory)

    def test_scope_names_are_unique_and_dns_safe(self):
        names = {new_scope_name("Gateway-") for _ in range(50)}
        assert len(names) == 50
        for name in names:
            assert name.startswith("gateway-")
            assert name == name.lower()
            assert len(name) == len("gateway-") + 8


class TestLoopbackGateway:
    @pytest.mark.asyncio
    async def test_route_converges_after_propagation(self, loopback_env):
        store = loopback_env.require("store", InMemoryConfigStore)
        gateway = loopback_env.require("gateway", LoopbackGateway)

        scope = store.create_scope("gateway")
        await store.apply(scope, route_document("my.domain.example", "/get", body="hello"))

        probe = gateway_probe(gateway, "my.domain.example", "/get", body_contains="hello")
        outcome = await poll_until_converged_async(probe, POLICY)

        assert outcome.is_converged
        assert outcome.attempts > 1
        assert outcome.value.status == 200

    @pytest.mark.asyncio
    async def test_cluster_scoped_ingress_route(self, loopback_env):
        store = loopback_env.require("store", InMemoryConfigStore)
        gateway = loopback_env.require("gateway", LoopbackGateway)

        await store.apply(None, route_document("server", "/", body="server"))

        outcome = await poll_until_converged_async(gateway_probe(gateway, "server", "/"), POLICY)
        assert outcome.is_converged
        assert store.documents(None)

    @pytest.mark.asyncio
    async def test_probe_before_propagation_sees_404(self, loopback_env):
        store = loopback_env.require("store", InMemoryConfigStore)
        gateway = loopback_env.require("gateway", LoopbackGateway)

        scope = store.create_scope("gateway")
        await store.apply(scope, route_document("late.example", "/"))

        outcome = await poll_until_converged_async(
            gateway_probe(gateway, "late.example", "/"), RetryPolicy.attempts(1)
        )
        assert outcome.failure_kind is FailureKind.TIMEOUT
        assert "404" in outcome.reason

    @pytest.mark.asyncio
    async def test_fatal_status_aborts_polling(self, loopback_env):
        store = loopback_env.require("store", InMemoryConfigStore)
        gateway = loopback_env.require("gateway", LoopbackGateway)

        scope = store.create_scope("gateway")
        await store.apply(scope, route_document("denied.example", "/", status=403))
        await store.settle()

        probe = gateway_probe(gateway, "denied.example", "/", fatal_statuses=frozenset({403}))
        outcome = await poll_until_converged_async(probe, POLICY)
        assert outcome.failure_kind is FailureKind.FATAL
        assert outcome.attempts == 1

    @pytest.mark.asyncio
    async def test_invalid_document_rejected_on_apply(self, loopback_env):
        store = loopback_env.require("store", InMemoryConfigStore)
        scope = store.create_scope("gateway")
        with pytest.raises(ValueError, match="not valid JSON"):
            await store.apply(scope, "{broken")
        assert store.documents(scope) == ()

    @pytest.mark.asyncio
    async def test_unknown_scope_rejected(self, loopback_env):
        store = loopback_env.require("store", InMemoryConfigStore)
        with pytest.raises(KeyError, match="unknown scope"):
            await store.apply("missing-scope", route_document("a", "/"))

    @pytest.mark.asyncio
    async def test_apply_config_dir(self, loopback_env, tmp_path):
        store = loopback_env.require("store", InMemoryConfigStore)
        gateway = loopback_env.require("gateway", LoopbackGateway)

        (tmp_path / "01-route.json").write_text(route_document("a.example", "/a"))
        (tmp_path / "02-route.json").write_text(route_document("b.example", "/b"))
        (tmp_path / "notes.txt").write_text("not a config document")

        scope = store.create_scope("dir")
        applied = await apply_config_dir(store, scope, tmp_path)
        await store.settle()

        assert [path.name for path in applied] == ["01-route.json", "02-route.json"]
        assert len(store.documents(scope)) == 2
        assert gateway.resolve("b.example", "/b") is not None

    @pytest.mark.asyncio
    async def test_apply_config_dir_missing_directory(self, tmp_path):
        with pytest.raises(NotADirectoryError):
            await apply_config_dir(InMemoryConfigStore(), None, tmp_path / "absent")


class TestAiohttpEndpoint:
    @pytest.mark.asyncio
    async def test_closed_port_raises_call_error(self):
        request = CallRequest(
            host="x.example", path="/", address=f"127.0.0.1:{unused_tcp_port()}", timeout=2.0
        )
        with pytest.raises(EndpointCallError, match="x.example"):
            await AiohttpEndpoint().call(request)


class TestGatewayScenario:
    @pytest.mark.asyncio
    async def test_scenario_converges(self):
        outcome = await run_gateway_scenario(0.05, POLICY)
        assert outcome.is_converged
        assert outcome.value.body == "ok"
