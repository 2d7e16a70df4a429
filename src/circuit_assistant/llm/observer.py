"""Callback contract for streamed LLM responses."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol

# Produces a textual description of the current design, or None when there is none.
ContextProvider = Callable[[Any], str | None]


class StreamObserver(Protocol):
    """Receives fragments and the terminal outcome of one streaming call.

    Fragment callbacks arrive in wire order, followed by exactly one of
    ``on_complete`` or ``on_error``.
    """

    def on_thinking_process(self, fragment: str) -> None: ...

    def on_final_answer(self, fragment: str) -> None: ...

    def on_complete(self, full_reasoning: str, full_answer: str) -> None: ...

    def on_error(self, message: str) -> None: ...


class BufferingObserver:
    """Collects every callback so the outcome can be inspected afterwards."""

    def __init__(self) -> None:
        self.reasoning_parts: list[str] = []
        self.answer_parts: list[str] = []
        self.completed: tuple[str, str] | None = None
        self.error: str | None = None

    def on_thinking_process(self, fragment: str) -> None:
        self.reasoning_parts.append(fragment)

    def on_final_answer(self, fragment: str) -> None:
        self.answer_parts.append(fragment)

    def on_complete(self, full_reasoning: str, full_answer: str) -> None:
        self.completed = (full_reasoning, full_answer)

    def on_error(self, message: str) -> None:
        self.error = message

    @property
    def reasoning(self) -> str:
        return "".join(self.reasoning_parts)

    @property
    def answer(self) -> str:
        return "".join(self.answer_parts)


class DispatchingObserver:
    """Re-posts every callback through ``dispatch``.

    ``dispatch`` must run callables in FIFO order on the target thread, e.g.
    ``loop.call_soon_threadsafe`` or a GUI toolkit's ``invoke_later``.
    """

    def __init__(
        self,
        observer: StreamObserver,
        dispatch: Callable[[Callable[[], None]], Any],
    ) -> None:
        self._observer = observer
        self._dispatch = dispatch

    def on_thinking_process(self, fragment: str) -> None:
        self._dispatch(lambda: self._observer.on_thinking_process(fragment))

    def on_final_answer(self, fragment: str) -> None:
        self._dispatch(lambda: self._observer.on_final_answer(fragment))

    def on_complete(self, full_reasoning: str, full_answer: str) -> None:
        self._dispatch(lambda: self._observer.on_complete(full_reasoning, full_answer))

    def on_error(self, message: str) -> None:
        self._dispatch(lambda: self._observer.on_error(message))
