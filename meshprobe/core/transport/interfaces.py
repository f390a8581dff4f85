"""
Data-plane call interfaces.

An ``Endpoint`` performs exactly one synchronous request/response exchange
against a live data-plane address. How the bytes move is the binding's
concern; probes only see ``CallRequest`` in and ``CallResponse`` out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol, runtime_checkable

from meshprobe.datastructures.type_aliases import (
    DurationSeconds,
    HeaderMap,
    HostName,
    HttpStatus,
    ResponseBody,
    UrlPath,
    UrlString,
)

DEFAULT_CALL_TIMEOUT = 5.0  # seconds per call


class CallType(Enum):
    """How the request is carried to the data plane."""

    PLAIN_TEXT = "http"
    TLS = "https"


@dataclass(frozen=True, slots=True)
class CallRequest:
    """One call against a data-plane address.

    ``host`` is sent as the virtual host; ``address`` is where the bytes go
    (``host:port`` or a full URL).
    """

    host: HostName
    path: UrlPath
    address: UrlString
    call_type: CallType = CallType.PLAIN_TEXT
    headers: HeaderMap = field(default_factory=dict)
    timeout: DurationSeconds = DEFAULT_CALL_TIMEOUT

    def url(self) -> UrlString:
        base = self.address
        if "://" not in base:
            base = f"{self.call_type.value}://{base}"
        path = self.path if self.path.startswith("/") else f"/{self.path}"
        return f"{base.rstrip('/')}{path}"


@dataclass(frozen=True, slots=True)
class CallResponse:
    """Status code and body returned by the data plane."""

    status: HttpStatus
    body: ResponseBody = ""
    headers: HeaderMap = field(default_factory=dict)


@runtime_checkable
class Endpoint(Protocol):
    """Performs a single call; raises ``EndpointCallError`` on transport failure."""

    async def call(self, request: CallRequest) -> CallResponse: ...
