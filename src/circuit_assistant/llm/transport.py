"""HTTP transport for streamed chat completions."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import structlog

from circuit_assistant.config import ApiConfig
from circuit_assistant.errors import TransportError, UpstreamStatusError
from circuit_assistant.llm.models import ChatCompletionRequest

logger = structlog.get_logger()


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


class StreamTransport:
    """Posts a request and exposes the response body as text lines.

    Owns one ``httpx.AsyncClient`` per ``open()`` so a connection is never
    shared between invocations.
    """

    def __init__(
        self,
        api_config: ApiConfig,
        *,
        connect_timeout: float = 30.0,
        read_timeout: float = 60.0,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._config = api_config
        self._timeout = httpx.Timeout(read_timeout, connect=connect_timeout)
        self._http_transport = http_transport

    @property
    def url(self) -> str:
        return f"{self._config.base_url.rstrip('/')}/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }
        if self._config.api_key:
            headers["api-key"] = self._config.api_key
            headers["Authorization"] = f"Bearer {self._config.api_key}"
        return headers

    @asynccontextmanager
    async def open(self, request: ChatCompletionRequest) -> AsyncIterator[AsyncIterator[str]]:
        """Send ``request`` and yield an async iterator over response lines.

        Raises:
            TransportError: connect, write, read or timeout failure, or a
                credential that cannot be sent as a header.
            UpstreamStatusError: the server answered with a non-2xx status.
        """
        async with httpx.AsyncClient(
            timeout=self._timeout, transport=self._http_transport
        ) as client:
            response = await self._send(client, request)
            try:
                if not response.is_success:
                    body = await self._read_error_body(response)
                    logger.error(
                        "llm_http_status_error",
                        status_code=response.status_code,
                        body=body[:500],
                    )
                    raise UpstreamStatusError(response.status_code, body)
                yield self._iter_lines(response)
            finally:
                await response.aclose()

    async def _send(
        self, client: httpx.AsyncClient, request: ChatCompletionRequest
    ) -> httpx.Response:
        try:
            http_request = client.build_request(
                "POST",
                self.url,
                headers=self._headers(),
                json=request.to_payload(),
            )
            return await client.send(http_request, stream=True)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(_describe(e)) from e
        except UnicodeEncodeError as e:
            # Header values must be ASCII; a properties file may hold a latin-1 key
            raise TransportError(f"request headers cannot be encoded: {e.reason}") from e

    async def _read_error_body(self, response: httpx.Response) -> str:
        try:
            await response.aread()
        except httpx.HTTPError as e:
            logger.debug("llm_error_body_unreadable", error=_describe(e))
            return ""
        return "".join(response.text.splitlines()).strip()

    async def _iter_lines(self, response: httpx.Response) -> AsyncIterator[str]:
        try:
            async for line in response.aiter_lines():
                yield line
        except httpx.HTTPError as e:
            raise TransportError(_describe(e)) from e
