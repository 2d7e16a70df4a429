"""Classification of server-push stream lines."""

from __future__ import annotations

import json

from circuit_assistant.llm.models import StreamEvent

EVENT_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

DONE = StreamEvent(kind="done")


def _skip(reason: str) -> StreamEvent:
    return StreamEvent(kind="skip", reason=reason)


def classify(line: str) -> StreamEvent:
    """Turn one raw response line into a StreamEvent.

    ``choices[0].delta`` is preferred over ``choices[0].message`` so both
    incremental and full-message servers are understood. When a container
    carries both ``reasoning_content`` and ``content``, only the reasoning is
    reported. Anything unrecognisable becomes a ``skip`` event.
    """
    if not line.startswith(EVENT_PREFIX):
        return _skip("no_prefix")

    payload = line[len(EVENT_PREFIX):].strip()
    if payload == DONE_SENTINEL:
        return DONE

    try:
        chunk = json.loads(payload)
    except (ValueError, RecursionError):
        return _skip("invalid_json")
    if not isinstance(chunk, dict):
        return _skip("not_an_object")

    choices = chunk.get("choices")
    if not isinstance(choices, list) or not choices:
        return _skip("no_choices")
    choice = choices[0]
    if not isinstance(choice, dict):
        return _skip("no_choices")

    container = choice.get("delta")
    if not isinstance(container, dict):
        container = choice.get("message")
    if not isinstance(container, dict):
        return _skip("no_container")

    reasoning = container.get("reasoning_content")
    if reasoning is not None:
        if not isinstance(reasoning, str):
            return _skip("bad_reasoning_content")
        return StreamEvent(kind="reasoning", text=reasoning)

    content = container.get("content")
    if content is not None:
        if not isinstance(content, str):
            return _skip("bad_content")
        return StreamEvent(kind="answer", text=content)

    return _skip("empty_container")
