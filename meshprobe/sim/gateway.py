"""
Loopback data-plane gateway.

An ``aiohttp.web`` server that routes requests by ``Host`` header and path
prefix. Routes arrive as JSON documents propagated from a config store::

    {"kind": "Route", "host": "my.domain.example", "path_prefix": "/get",
     "status": 200, "body": "hello"}

A document may hold a single object or a list. Objects of any other kind are
ignored. Unknown host/path combinations answer 404.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field

from aiohttp import web
from loguru import logger

from meshprobe.datastructures.type_aliases import (
    ConfigDocument,
    HostName,
    HttpStatus,
    ResponseBody,
    ScopeName,
    UrlPath,
)

from .control_plane import InMemoryConfigStore

ROUTE_KIND = "Route"


@dataclass(frozen=True, slots=True)
class Route:
    host: HostName
    path_prefix: UrlPath = "/"
    status: HttpStatus = 200
    body: ResponseBody = ""

    def matches(self, host: HostName, path: UrlPath) -> bool:
        return (self.host == "*" or self.host == host) and path.startswith(self.path_prefix)


def parse_routes(document: ConfigDocument) -> list[Route]:
    """Extract ``Route`` objects from a JSON document."""
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise ValueError(f"route document is not valid JSON: {e}") from e

    items = data if isinstance(data, list) else [data]
    routes: list[Route] = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f"route entries must be objects, got {type(item).__name__}")
        if item.get("kind") != ROUTE_KIND:
            continue
        if not item.get("host"):
            raise ValueError("route is missing 'host'")
        routes.append(
            Route(
                host=str(item["host"]),
                path_prefix=str(item.get("path_prefix", "/")),
                status=int(item.get("status", 200)),
                body=str(item.get("body", "")),
            )
        )
    return routes


def validate_route_document(document: ConfigDocument) -> None:
    """Store validator: reject documents that cannot be parsed."""
    parse_routes(document)


@dataclass(slots=True)
class LoopbackGateway:
    """Serves the routes propagated to it on a local TCP port."""

    host: str = "127.0.0.1"
    port: int = 0
    routes: dict[tuple[ScopeName | None, HostName, UrlPath], Route] = field(
        default_factory=dict
    )
    app: web.Application = field(init=False)
    runner: web.AppRunner | None = field(default=None, init=False)
    site: web.TCPSite | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        self.app = web.Application()
        self.app.router.add_route("*", "/{tail:.*}", self._handle)

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    def attach(self, store: InMemoryConfigStore) -> None:
        store.subscribe(self.on_config)

    async def on_config(self, scope: ScopeName | None, document: ConfigDocument) -> None:
        for route in parse_routes(document):
            self.routes[(scope, route.host, route.path_prefix)] = route
            logger.debug(f"Gateway route {route.host}{route.path_prefix} -> {route.status}")

    def resolve(self, host: HostName, path: UrlPath) -> Route | None:
        """Longest matching path prefix wins."""
        candidates = [route for route in self.routes.values() if route.matches(host, path)]
        if not candidates:
            return None
        return max(candidates, key=lambda route: (route.host != "*", len(route.path_prefix)))

    async def _handle(self, request: web.Request) -> web.Response:
        host = (request.host or "").rsplit(":", 1)[0]
        route = self.resolve(host, request.path)
        if route is None:
            return web.Response(status=404, text=f"no route for {host}{request.path}")
        return web.Response(status=route.status, text=route.body)

    async def start(self) -> None:
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, host=self.host, port=self.port)
        await self.site.start()

        if self.port == 0 and self.site._server and self.site._server.sockets:
            self.port = self.site._server.sockets[0].getsockname()[1]

        logger.info(f"Loopback gateway listening on http://{self.address}")

    async def stop(self) -> None:
        if self.site:
            await self.site.stop()
            self.site = None
        if self.runner:
            await self.runner.cleanup()
            self.runner = None
        logger.debug("Loopback gateway stopped")


@dataclass(frozen=True, slots=True)
class GatewayConfig:
    store: InMemoryConfigStore
    host: str = "127.0.0.1"
    port: int = 0


class GatewayFactory:
    """``ComponentFactory`` that starts a gateway wired to a config store."""

    async def new(self, config: GatewayConfig) -> LoopbackGateway:
        gateway = LoopbackGateway(host=config.host, port=config.port)
        gateway.attach(config.store)
        await gateway.start()
        return gateway
