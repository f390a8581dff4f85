"""aiohttp binding for the ``Endpoint`` interface."""

from __future__ import annotations

import asyncio
import ssl

import aiohttp
from loguru import logger

from ..errors import EndpointCallError
from .interfaces import CallRequest, CallResponse, CallType


class AiohttpEndpoint:
    """Calls a data-plane address over HTTP(S) with a virtual ``Host`` header.

    A session is opened per call unless one is supplied, so the endpoint can be
    used from any event loop. TLS calls skip certificate verification unless
    ``verify_tls`` is set; gateways under test usually present self-signed
    certificates.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession | None = None,
        *,
        verify_tls: bool = False,
    ) -> None:
        self._session = session
        self.verify_tls = verify_tls

    def _ssl_option(self, request: CallRequest) -> ssl.SSLContext | bool:
        if request.call_type is not CallType.TLS or self.verify_tls:
            return True
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    async def call(self, request: CallRequest) -> CallResponse:
        url = request.url()
        headers = {**request.headers, "Host": request.host}
        timeout = aiohttp.ClientTimeout(total=request.timeout)
        logger.debug(f"Calling {url} (Host: {request.host})")

        try:
            if self._session is not None:
                return await self._send(self._session, url, headers, timeout, request)
            async with aiohttp.ClientSession() as session:
                return await self._send(session, url, headers, timeout, request)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise EndpointCallError(f"call to {url} (Host: {request.host}) failed: {e!r}") from e

    async def _send(
        self,
        session: aiohttp.ClientSession,
        url: str,
        headers: dict[str, str],
        timeout: aiohttp.ClientTimeout,
        request: CallRequest,
    ) -> CallResponse:
        async with session.get(
            url,
            headers=headers,
            timeout=timeout,
            ssl=self._ssl_option(request),
            allow_redirects=False,
        ) as response:
            body = await response.text()
            return CallResponse(
                status=response.status,
                body=body,
                headers=dict(response.headers),
            )
