"""Streaming LLM client module."""

from circuit_assistant.llm.client import StreamClient
from circuit_assistant.llm.events import classify
from circuit_assistant.llm.models import ChatCompletionRequest, LLMResponse, StreamEvent
from circuit_assistant.llm.observer import (
    BufferingObserver,
    ContextProvider,
    DispatchingObserver,
    StreamObserver,
)
from circuit_assistant.llm.request import build_request

__all__ = [
    "StreamClient",
    "classify",
    "ChatCompletionRequest",
    "LLMResponse",
    "StreamEvent",
    "BufferingObserver",
    "ContextProvider",
    "DispatchingObserver",
    "StreamObserver",
    "build_request",
]
