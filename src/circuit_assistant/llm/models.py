"""Data models for chat-completion requests, stream events and results."""

from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict


class ChatMessage(BaseModel):
    model_config = ConfigDict(frozen=True)

    role: Literal["system", "user"]
    content: str


class ChatCompletionRequest(BaseModel):
    """Request body for ``POST {base_url}/chat/completions``."""

    model_config = ConfigDict(frozen=True)

    model: str
    max_tokens: int = 2048
    stream: bool = True
    enable_reasoning: bool = True
    messages: tuple[ChatMessage, ...]

    def to_payload(self) -> dict[str, Any]:
        """Render the wire-format JSON body."""
        payload: dict[str, Any] = {
            "model": self.model,
            "maxTokens": self.max_tokens,
            "stream": self.stream,
        }
        if self.enable_reasoning:
            payload["thinking"] = {"type": "enabled"}
        payload["messages"] = [m.model_dump() for m in self.messages]
        return payload


@dataclass(slots=True, frozen=True)
class StreamEvent:
    """A single classified line of the server-push stream."""

    kind: Literal["reasoning", "answer", "done", "skip"]
    text: str | None = None
    reason: str | None = None


class LLMResponse(BaseModel):
    """Complete reasoning and answer text collected from one call."""

    reasoning: str = ""
    answer: str = ""

    @property
    def has_reasoning(self) -> bool:
        return bool(self.reasoning)

    @property
    def has_answer(self) -> bool:
        return bool(self.answer)

    def __str__(self) -> str:
        parts = []
        if self.has_reasoning:
            parts.append(f"[Thinking Process]\n{self.reasoning}\n\n")
        if self.has_answer:
            parts.append(f"[Final Answer]\n{self.answer}")
        return "".join(parts)
