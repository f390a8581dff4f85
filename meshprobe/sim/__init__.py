"""
Loopback simulator of a control plane and its data plane.

``InMemoryConfigStore`` accepts documents and propagates them after a delay;
``LoopbackGateway`` serves whatever routes have propagated so far.
"""

from .control_plane import InMemoryConfigStore
from .gateway import (
    GatewayConfig,
    GatewayFactory,
    LoopbackGateway,
    Route,
    parse_routes,
    validate_route_document,
)

__all__ = [
    "GatewayConfig",
    "GatewayFactory",
    "InMemoryConfigStore",
    "LoopbackGateway",
    "Route",
    "parse_routes",
    "validate_route_document",
]
