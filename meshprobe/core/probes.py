"""Reusable probes for the apply-then-poll pattern."""

from __future__ import annotations

from dataclasses import dataclass

from meshprobe.datastructures.type_aliases import HttpStatus

from .errors import EndpointCallError, FatalProbeFailure, TransientProbeFailure
from .transport.interfaces import CallRequest, CallResponse, Endpoint

MAX_BODY_IN_MESSAGE = 200


def _excerpt(body: str) -> str:
    body = body.strip()
    if len(body) > MAX_BODY_IN_MESSAGE:
        return body[:MAX_BODY_IN_MESSAGE] + "..."
    return body


def expect_response(
    response: CallResponse,
    expected_status: HttpStatus = 200,
    body_contains: str | None = None,
) -> CallResponse:
    """Raise ``TransientProbeFailure`` unless the response matches."""
    if response.status != expected_status:
        raise TransientProbeFailure(
            f"got invalid response code {response.status}: {_excerpt(response.body)}"
        )
    if body_contains is not None and body_contains not in response.body:
        raise TransientProbeFailure(
            f"response body does not contain {body_contains!r}: {_excerpt(response.body)}"
        )
    return response


@dataclass(frozen=True, slots=True)
class EndpointProbe:
    """Calls one data-plane endpoint and checks the response.

    Transport errors and mismatched responses are transient, since the route
    may simply not have propagated yet. Statuses listed in ``fatal_statuses``
    abort polling immediately.
    """

    endpoint: Endpoint
    request: CallRequest
    expected_status: HttpStatus = 200
    body_contains: str | None = None
    fatal_statuses: frozenset[HttpStatus] = frozenset()

    @property
    def description(self) -> str:
        return f"{self.request.call_type.value}://{self.request.host}{self.request.path}"

    async def __call__(self) -> CallResponse:
        try:
            response = await self.endpoint.call(self.request)
        except EndpointCallError as e:
            raise TransientProbeFailure(str(e)) from e

        if response.status in self.fatal_statuses:
            raise FatalProbeFailure(
                f"got fatal response code {response.status}: {_excerpt(response.body)}"
            )
        return expect_response(response, self.expected_status, self.body_contains)
