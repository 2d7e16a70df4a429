"""Streaming client for OpenAI-compatible chat-completion APIs."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future

import httpx
import structlog

from circuit_assistant.config import ApiConfig, Settings, get_api_config, get_settings
from circuit_assistant.errors import TransportError, UpstreamStatusError
from circuit_assistant.llm.events import classify
from circuit_assistant.llm.models import LLMResponse
from circuit_assistant.llm.observer import BufferingObserver, StreamObserver
from circuit_assistant.llm.request import build_request
from circuit_assistant.llm.transport import StreamTransport

logger = structlog.get_logger()


class StreamClient:
    """Streams a chat completion and reports reasoning and answer fragments.

    Reasoning (``reasoning_content``) and answer (``content``) fragments are
    forwarded to a StreamObserver as they arrive and accumulated for the
    final ``on_complete`` call. Malformed lines are skipped; only transport
    and HTTP status failures are reported, through ``on_error``.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        api_config: ApiConfig | None = None,
        http_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        # None = read the active configuration at the start of every call
        self._api_config = api_config
        self._http_transport = http_transport

    def _make_transport(self, config: ApiConfig) -> StreamTransport:
        return StreamTransport(
            config,
            connect_timeout=self._settings.connect_timeout,
            read_timeout=self._settings.read_timeout,
            http_transport=self._http_transport,
        )

    async def run(
        self,
        prompt: str,
        context_document: str | None,
        observer: StreamObserver,
    ) -> bool:
        """Stream one completion into ``observer``.

        Args:
            prompt: The user's question.
            context_document: Serialised circuit passed through verbatim, or None.
            observer: Receives fragments, then on_complete or on_error.

        Returns:
            True when the stream ended normally, False after on_error.
        """
        config = self._api_config if self._api_config is not None else get_api_config()
        request = build_request(
            prompt,
            context_document,
            model=config.model,
            max_tokens=self._settings.max_tokens,
        )
        transport = self._make_transport(config)

        logger.info(
            "llm_stream_start",
            model=config.model,
            url=transport.url,
            has_context=bool(context_document),
        )

        reasoning_parts: list[str] = []
        answer_parts: list[str] = []
        line_count = 0

        try:
            async with transport.open(request) as lines:
                async for line in lines:
                    line_count += 1
                    event = classify(line)

                    if event.kind == "reasoning":
                        reasoning_parts.append(event.text)
                        observer.on_thinking_process(event.text)
                    elif event.kind == "answer":
                        answer_parts.append(event.text)
                        observer.on_final_answer(event.text)
                    elif event.kind == "done":
                        # Some servers keep sending after the sentinel; read until close
                        logger.debug("llm_stream_done_sentinel", line_number=line_count)
                    elif line:
                        logger.debug(
                            "llm_chunk_skipped",
                            line_number=line_count,
                            reason=event.reason,
                            text_preview=line[:50],
                        )
        except UpstreamStatusError as e:
            return self._fail(observer, str(e), status_code=e.status_code)
        except TransportError as e:
            return self._fail(observer, f"Error calling LLM API: {e}")

        reasoning = "".join(reasoning_parts)
        answer = "".join(answer_parts)
        logger.info(
            "llm_stream_complete",
            model=config.model,
            total_lines=line_count,
            reasoning_length=len(reasoning),
            answer_length=len(answer),
        )
        observer.on_complete(reasoning, answer)
        return True

    def _fail(self, observer: StreamObserver, message: str, **context) -> bool:
        logger.error("llm_stream_failed", error=message, **context)
        observer.on_error(message)
        return False

    async def complete(
        self,
        prompt: str,
        context_document: str | None = None,
    ) -> LLMResponse | None:
        """Run a call to completion and return the collected text.

        Returns None if the call failed.
        """
        observer = BufferingObserver()
        if not await self.run(prompt, context_document, observer):
            return None
        return LLMResponse(reasoning=observer.reasoning, answer=observer.answer)

    def submit(
        self,
        prompt: str,
        context_document: str | None,
        observer: StreamObserver,
    ) -> Future[bool]:
        """Run ``run`` on a dedicated worker thread with its own event loop.

        The calling (UI) thread is never blocked. Observer callbacks fire on
        the worker thread; wrap the observer in a DispatchingObserver to
        marshal them elsewhere.
        """
        future: Future[bool] = Future()

        def _worker() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(asyncio.run(self.run(prompt, context_document, observer)))
            except Exception as e:
                logger.exception("llm_worker_failed")
                future.set_exception(e)

        threading.Thread(target=_worker, name="llm-stream", daemon=True).start()
        return future
