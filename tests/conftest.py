"""Pytest fixtures for circuit-assistant tests."""

import json
from types import SimpleNamespace

import httpx
import pytest

from circuit_assistant.config import ENV_KEYS, ApiConfig, Settings, reset_api_config

_AMBIENT_KEYS = (
    "LOG_LEVEL",
    "LOG_FILE",
    "LLM_CONNECT_TIMEOUT",
    "LLM_READ_TIMEOUT",
    "LLM_MAX_TOKENS",
)


@pytest.fixture(autouse=True)
def config_dirs(tmp_path, monkeypatch):
    """Run each test in an empty working directory and home, without config env vars."""
    workdir = tmp_path / "work"
    home = tmp_path / "home"
    workdir.mkdir()
    home.mkdir()
    monkeypatch.chdir(workdir)
    monkeypatch.setenv("HOME", str(home))
    for key in ENV_KEYS + _AMBIENT_KEYS:
        monkeypatch.delenv(key, raising=False)

    reset_api_config()
    yield SimpleNamespace(workdir=workdir, home=home)
    reset_api_config()


@pytest.fixture
def api_config() -> ApiConfig:
    return ApiConfig(
        OPENAI_API_KEY="test-key",
        OPENAI_BASE_URL="http://llm.test/v1",
        OPENAI_MODEL="test-model",
    )


@pytest.fixture
def settings() -> Settings:
    return Settings()


def sse_transport(
    lines: list[str],
    status_code: int = 200,
    captured: list[httpx.Request] | None = None,
) -> httpx.MockTransport:
    """MockTransport answering every request with ``lines`` as a server-push body."""

    def handler(request: httpx.Request) -> httpx.Response:
        if captured is not None:
            captured.append(request)
        body = "".join(f"{line}\n" for line in lines).encode("utf-8")
        return httpx.Response(
            status_code,
            content=body,
            headers={"content-type": "text/event-stream"},
        )

    return httpx.MockTransport(handler)


def data_line(reasoning: str | None = None, content: str | None = None, container: str = "delta") -> str:
    """Build one ``data:`` line carrying a chat.completion.chunk."""
    fields = {}
    if reasoning is not None:
        fields["reasoning_content"] = reasoning
    if content is not None:
        fields["content"] = content
    return "data: " + json.dumps({"choices": [{"index": 0, container: fields}]})
