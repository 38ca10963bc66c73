"""Chat orchestration use case — retry, model fallback and stream normalization.

The orchestrator is backend-agnostic: it receives a ChatBackend via
dependency injection and is bound to it for its lifetime.
"""

import asyncio
import inspect
import json
import logging
import time
import uuid
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing
from dataclasses import dataclass, field, replace
from typing import TypeVar

from carrot.application.interfaces.chat_backend import ChatBackend
from carrot.domain.entities import (
    ChatRequest,
    ChatResponse,
    StreamChunk,
    StreamEvent,
    TokenUsage,
    ToolCall,
    ToolCallFragment,
    UsageCallback,
)
from carrot.domain.exceptions import AuthenticationError, BackendError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRIES = 3


class ChatOrchestrator:
    """Application service — resilient chat over a single backend.

    Every backend attempt is wrapped in a bounded retry with exponential
    backoff. When the requested model gives up, the request's fallback
    models are tried in order, each with its own retry budget.
    """

    def __init__(
        self,
        backend: ChatBackend,
        *,
        default_model: str | None = None,
        default_retries: int = DEFAULT_RETRIES,
        retry_base_delay: float = 1.0,
        retry_backoff_factor: float = 2.0,
        retry_max_delay: float = 30.0,
        on_usage: UsageCallback | None = None,
    ):
        self._backend = backend
        self._default_model = default_model or backend.default_model
        self._default_retries = default_retries
        self._retry_base_delay = retry_base_delay
        self._retry_backoff_factor = retry_backoff_factor
        self._retry_max_delay = retry_max_delay
        self._on_usage = on_usage

    @property
    def backend(self) -> ChatBackend:
        return self._backend

    @property
    def default_model(self) -> str:
        return self._default_model

    async def chat(self, request: ChatRequest) -> ChatResponse:
        """Execute a non-streaming chat with retry and fallback.

        Returns the first successful response, tagged with the model that
        produced it. When every candidate fails, the primary model's final
        error is raised.
        """
        request = self._snapshot(request)
        model = request.model or self._default_model
        start = time.monotonic()

        async def attempt(candidate: str) -> ChatResponse:
            response = await self._backend.invoke(candidate, request)
            response.model = candidate
            return response

        response = await self._run_with_fallback(
            model, request.fallback_models, self._retries_for(request), attempt
        )

        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Chat [%s] model=%s tokens=%d tool_calls=%d %dms",
            self._backend.backend_name,
            response.model,
            response.usage.total_tokens,
            len(response.tool_calls),
            duration_ms,
        )
        await self._report_usage(request, response.usage, response.model)
        return response

    async def chat_stream(self, request: ChatRequest) -> AsyncIterator[StreamEvent]:
        """Execute a streaming chat.

        Retry and fallback cover opening the stream, up to the first chunk.
        After that, failures propagate to the consumer and no done event
        is emitted.

        Yields:
            content events in backend order, one tool_call event per fully
            assembled call, at most one usage event, then a single done event.
        """
        request = self._snapshot(request)
        model = request.model or self._default_model

        opened = await self._run_with_fallback(
            model,
            request.fallback_models,
            self._retries_for(request),
            lambda candidate: self._open_stream(candidate, request),
        )

        assembler = _ToolCallAssembler()
        usage: TokenUsage | None = None
        finish_reason: str | None = None

        async with aclosing(opened.stream):
            chunk = opened.first_chunk
            while chunk is not None:
                if chunk.content:
                    yield StreamEvent(type="content", content=chunk.content, model=opened.model)

                if chunk.tool_call is not None:
                    for tc in assembler.add(chunk.tool_call):
                        yield StreamEvent(type="tool_call", tool_call=tc, model=opened.model)

                if chunk.usage is not None:
                    if usage is None:
                        yield StreamEvent(type="usage", usage=chunk.usage, model=opened.model)
                    usage = chunk.usage

                if chunk.finish_reason:
                    finish_reason = chunk.finish_reason

                if chunk.done:
                    break
                chunk = await anext(opened.stream, None)

        for tc in assembler.flush():
            yield StreamEvent(type="tool_call", tool_call=tc, model=opened.model)

        final_usage = usage or TokenUsage()
        logger.info(
            "Stream [%s] model=%s tokens=%d finish=%s",
            self._backend.backend_name,
            opened.model,
            final_usage.total_tokens,
            finish_reason,
        )
        await self._report_usage(request, final_usage, opened.model)
        yield StreamEvent(
            type="done",
            usage=final_usage,
            model=opened.model,
            finish_reason=finish_reason or "stop",
        )

    async def _open_stream(self, model: str, request: ChatRequest) -> "_OpenedStream":
        """Start a backend stream and pull its first chunk."""
        stream = self._backend.invoke_stream(model, request)
        first_chunk = await anext(stream, None)
        return _OpenedStream(model=model, stream=stream, first_chunk=first_chunk)

    async def _run_with_fallback(
        self,
        model: str,
        fallback_models: list[str],
        retries: int,
        attempt: Callable[[str], Awaitable[T]],
    ) -> T:
        try:
            return await self._run_with_retry(model, retries, attempt)
        except AuthenticationError:
            raise
        except Exception as primary_error:
            if not fallback_models:
                raise
            logger.warning(
                "Primary model %s failed after retries. Trying fallbacks...", model
            )
            for fallback_model in fallback_models:
                try:
                    result = await self._run_with_retry(fallback_model, retries, attempt)
                except AuthenticationError:
                    raise
                except Exception as fallback_error:
                    logger.warning(
                        "Fallback model %s failed: %s", fallback_model, fallback_error
                    )
                    continue
                logger.info("Fallback model %s succeeded", fallback_model)
                return result
            raise primary_error

    async def _run_with_retry(
        self,
        model: str,
        retries: int,
        attempt: Callable[[str], Awaitable[T]],
    ) -> T:
        attempt_number = 0
        while True:
            attempt_number += 1
            try:
                return await attempt(model)
            except BackendError as e:
                if not e.retryable:
                    logger.warning(
                        "Attempt %d for model %s failed with non-retryable error: %s",
                        attempt_number,
                        model,
                        e,
                    )
                    raise
                if attempt_number > retries:
                    raise
                error: Exception = e
            except Exception as e:
                # Unclassified failures are treated as transient
                if attempt_number > retries:
                    raise
                error = e

            logger.warning(
                "Attempt %d for model %s failed (%s). There are %d retries left.",
                attempt_number,
                model,
                error,
                retries + 1 - attempt_number,
            )
            await asyncio.sleep(self._backoff_delay(attempt_number))

    def _backoff_delay(self, attempt_number: int) -> float:
        delay = self._retry_base_delay * self._retry_backoff_factor ** (attempt_number - 1)
        return min(delay, self._retry_max_delay)

    def _retries_for(self, request: ChatRequest) -> int:
        if request.retries is None:
            return self._default_retries
        return max(request.retries, 0)

    @staticmethod
    def _snapshot(request: ChatRequest) -> ChatRequest:
        return replace(
            request,
            messages=list(request.messages),
            fallback_models=list(request.fallback_models),
            tools=list(request.tools),
        )

    async def _report_usage(
        self, request: ChatRequest, usage: TokenUsage, model: str
    ) -> None:
        callback = request.on_usage or self._on_usage
        if callback is None:
            return
        result = callback(usage, model)
        if inspect.isawaitable(result):
            await result


@dataclass
class _OpenedStream:
    model: str
    stream: AsyncIterator[StreamChunk]
    first_chunk: StreamChunk | None


@dataclass
class _PendingToolCall:
    id: str | None = None
    name: str | None = None
    arguments: list[str] = field(default_factory=list)


class _ToolCallAssembler:
    """Buffers streamed tool-call fragments until each call is complete."""

    def __init__(self) -> None:
        self._pending: dict[int, _PendingToolCall] = {}

    def add(self, fragment: ToolCallFragment) -> list[ToolCall]:
        pending = self._pending.setdefault(fragment.index, _PendingToolCall())
        if fragment.id:
            pending.id = fragment.id
        if fragment.name:
            pending.name = fragment.name
        if fragment.arguments:
            pending.arguments.append(fragment.arguments)

        if not fragment.final:
            return []
        del self._pending[fragment.index]
        return [self._build(pending)]

    def flush(self) -> list[ToolCall]:
        calls = [self._build(self._pending[index]) for index in sorted(self._pending)]
        self._pending.clear()
        return calls

    @staticmethod
    def _build(pending: _PendingToolCall) -> ToolCall:
        raw = "".join(pending.arguments).strip() or "{}"
        try:
            parameters = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(
                "Discarding malformed arguments for streamed tool call '%s'",
                pending.name,
            )
            parameters = {}
        if not isinstance(parameters, dict):
            parameters = {}

        return ToolCall(
            id=pending.id or f"call_{uuid.uuid4().hex[:12]}",
            name=pending.name or "",
            parameters=parameters,
        )
