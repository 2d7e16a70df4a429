"""Tests for the HTTP stream transport."""

import json

import httpx
import pytest

from circuit_assistant.config import ApiConfig
from circuit_assistant.errors import TransportError, UpstreamStatusError
from circuit_assistant.llm.request import build_request
from circuit_assistant.llm.transport import StreamTransport

from conftest import sse_transport


async def _collect(transport, request):
    async with transport.open(request) as lines:
        return [line async for line in lines]


@pytest.mark.asyncio
async def test_posts_to_chat_completions_with_headers(api_config):
    captured = []
    transport = StreamTransport(api_config, http_transport=sse_transport(["data: [DONE]"], captured=captured))

    lines = await _collect(transport, build_request("q", model=api_config.model))

    assert lines == ["data: [DONE]"]
    sent = captured[0]
    assert sent.method == "POST"
    assert str(sent.url) == "http://llm.test/v1/chat/completions"
    assert sent.headers["content-type"] == "application/json"
    assert sent.headers["api-key"] == "test-key"
    assert sent.headers["authorization"] == "Bearer test-key"
    body = json.loads(sent.content)
    assert body["model"] == "test-model"
    assert body["stream"] is True


def test_trailing_slash_in_base_url():
    config = ApiConfig(OPENAI_BASE_URL="http://llm.test/v1/")
    assert StreamTransport(config).url == "http://llm.test/v1/chat/completions"


@pytest.mark.asyncio
async def test_no_credential_headers_without_key():
    captured = []
    transport = StreamTransport(
        ApiConfig(OPENAI_BASE_URL="http://llm.test/v1"),
        http_transport=sse_transport([], captured=captured),
    )

    await _collect(transport, build_request("q", model="m"))

    assert "api-key" not in captured[0].headers
    assert "authorization" not in captured[0].headers


@pytest.mark.asyncio
async def test_status_error_includes_body(api_config):
    def handler(request):
        return httpx.Response(500, json={"error": {"message": "model overloaded"}})

    transport = StreamTransport(api_config, http_transport=httpx.MockTransport(handler))

    with pytest.raises(UpstreamStatusError) as exc_info:
        await _collect(transport, build_request("q", model="m"))

    assert exc_info.value.status_code == 500
    assert "model overloaded" in exc_info.value.body
    assert str(exc_info.value).startswith("API call failed with response code: 500, error: ")


@pytest.mark.asyncio
async def test_status_error_without_body(api_config):
    transport = StreamTransport(api_config, http_transport=httpx.MockTransport(lambda r: httpx.Response(401)))

    with pytest.raises(UpstreamStatusError) as exc_info:
        await _collect(transport, build_request("q", model="m"))

    assert str(exc_info.value) == "API call failed with response code: 401"


@pytest.mark.asyncio
async def test_connect_failure_raises_transport_error(api_config):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    transport = StreamTransport(api_config, http_transport=httpx.MockTransport(handler))

    with pytest.raises(TransportError, match="connection refused"):
        await _collect(transport, build_request("q", model="m"))


@pytest.mark.asyncio
async def test_read_error_mid_stream_raises_transport_error(api_config):
    async def body():
        yield b"data: first\n"
        raise httpx.ReadError("connection reset")

    transport = StreamTransport(
        api_config,
        http_transport=httpx.MockTransport(lambda r: httpx.Response(200, content=body())),
    )

    received = []
    with pytest.raises(TransportError, match="connection reset"):
        async with transport.open(build_request("q", model="m")) as lines:
            async for line in lines:
                received.append(line)

    assert received == ["data: first"]


@pytest.mark.asyncio
async def test_base_url_without_scheme_raises_transport_error():
    transport = StreamTransport(ApiConfig(OPENAI_BASE_URL="llm.test/v1"))

    with pytest.raises(TransportError):
        await _collect(transport, build_request("q", model="m"))


@pytest.mark.asyncio
async def test_non_ascii_api_key_raises_transport_error():
    captured = []
    transport = StreamTransport(
        ApiConfig(OPENAI_API_KEY="clé", OPENAI_BASE_URL="http://llm.test/v1"),
        http_transport=sse_transport([], captured=captured),
    )

    with pytest.raises(TransportError, match="headers cannot be encoded"):
        await _collect(transport, build_request("q", model="m"))

    assert captured == []
