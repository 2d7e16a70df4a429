"""Builds chat-completion request bodies."""

from __future__ import annotations

from circuit_assistant.llm.models import ChatCompletionRequest, ChatMessage
from circuit_assistant.llm.prompts import (
    CIRCUIT_DATA_HEADER,
    SYSTEM_PROMPT,
    USER_QUESTION_PREFIX,
)


def build_user_content(prompt: str, context_document: str | None = None) -> str:
    content = f"{USER_QUESTION_PREFIX}{prompt}\n\n"
    if context_document:
        content += f"{CIRCUIT_DATA_HEADER}{context_document}"
    return content


def build_request(
    prompt: str,
    context_document: str | None = None,
    *,
    model: str,
    max_tokens: int = 2048,
) -> ChatCompletionRequest:
    """Build a streaming request with reasoning enabled.

    Args:
        prompt: The user's question.
        context_document: Serialised circuit, appended verbatim when present.
        model: Model identifier from the active API configuration.
        max_tokens: Upper bound on generated tokens.
    """
    return ChatCompletionRequest(
        model=model,
        max_tokens=max_tokens,
        messages=(
            ChatMessage(role="system", content=SYSTEM_PROMPT),
            ChatMessage(role="user", content=build_user_content(prompt, context_document)),
        ),
    )
