"""
Data-plane transport for probes.

Example Usage:
    endpoint = AiohttpEndpoint()
    response = await endpoint.call(
        CallRequest(host="my.domain.example", path="/get", address="127.0.0.1:8080")
    )
    assert response.status == 200
"""

from .http_endpoint import AiohttpEndpoint
from .interfaces import (
    DEFAULT_CALL_TIMEOUT,
    CallRequest,
    CallResponse,
    CallType,
    Endpoint,
)

__all__ = [
    "AiohttpEndpoint",
    "CallRequest",
    "CallResponse",
    "CallType",
    "DEFAULT_CALL_TIMEOUT",
    "Endpoint",
]
