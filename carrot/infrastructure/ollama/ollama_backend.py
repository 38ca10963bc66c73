"""Ollama backend — implements the ChatBackend interface.

Communicates with a locally hosted Ollama server (http://localhost:11434)
using httpx for both non-streaming and NDJSON streaming chat requests.
Supports tool calling for agentic workflows.
"""

import json
import logging
import uuid
from collections.abc import AsyncIterator
from typing import Any

import httpx

from carrot.application.interfaces.chat_backend import ChatBackend, SchemaConverter
from carrot.application.services.tool_schema import to_json_schema
from carrot.domain.entities import (
    ChatRequest,
    ChatResponse,
    StreamChunk,
    TokenUsage,
    ToolCall,
    ToolCallFragment,
    ToolDefinition,
)
from carrot.domain.exceptions import classify_backend_error

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_MODEL = "llama3"


class OllamaBackend(ChatBackend):
    """Infrastructure adapter — connects to the Ollama /api/chat endpoint.

    Uses httpx with an injectable AsyncClient. Ollama does not assign ids
    to tool calls, so ids are generated here and mapped back to tool names
    when results are sent on the next turn.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        default_model: str = DEFAULT_MODEL,
        *,
        temperature: float = 0.7,
        top_p: float = 0.9,
        max_tokens: int = 2048,
        timeout: float = 120.0,
        schema_converter: SchemaConverter = to_json_schema,
        http_client: httpx.AsyncClient | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._default_model = default_model
        self._temperature = temperature
        self._top_p = top_p
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._schema_converter = schema_converter
        self._http_client = http_client

    @property
    def backend_name(self) -> str:
        return "ollama"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _build_payload(
        self, model: str, request: ChatRequest, *, stream: bool
    ) -> dict:
        """Build the request payload for the Ollama chat API."""
        options: dict[str, Any] = {
            "temperature": (
                request.temperature if request.temperature is not None else self._temperature
            ),
            "top_p": request.top_p if request.top_p is not None else self._top_p,
            "num_predict": request.max_tokens or self._max_tokens,
        }
        if request.stop_sequences:
            options["stop"] = list(request.stop_sequences)

        payload: dict = {
            "model": model,
            "messages": self._serialize_messages(request),
            "stream": stream,
            "options": options,
        }
        if request.tools:
            payload["tools"] = [self._serialize_tool(t) for t in request.tools]

        logger.debug(
            "Ollama request model=%s stream=%s messages=%d tools=%d",
            model,
            stream,
            len(payload["messages"]),
            len(request.tools),
        )
        return payload

    def _serialize_tool(self, definition: ToolDefinition) -> dict:
        return {
            "type": "function",
            "function": {
                "name": definition.name,
                "description": definition.description,
                "parameters": self._schema_converter(definition.parameters),
            },
        }

    @staticmethod
    def _serialize_messages(request: ChatRequest) -> list[dict]:
        """Convert domain Messages to API-compatible dicts."""
        result: list[dict] = []
        if request.system_instruction:
            result.append({"role": "system", "content": request.system_instruction})

        tool_names: dict[str, str] = {}
        for msg in request.messages:
            # Tool response message: one wire message per result
            if msg.role == "tool":
                for tr in msg.tool_results:
                    name = tool_names.get(tr.tool_call_id)
                    if name is None:
                        # The call that produced this result was pruned from history
                        continue
                    result.append(
                        {"role": "tool", "content": tr.content, "tool_name": name}
                    )
                continue

            # Assistant message with tool calls
            if msg.role == "assistant" and msg.tool_calls:
                for tc in msg.tool_calls:
                    tool_names[tc.id] = tc.name
                result.append({
                    "role": "assistant",
                    "content": msg.text,
                    "tool_calls": [
                        {"function": {"name": tc.name, "arguments": tc.parameters}}
                        for tc in msg.tool_calls
                    ],
                })
                continue

            result.append({"role": msg.role, "content": msg.text})
        return result

    async def _get_client(self) -> httpx.AsyncClient:
        """Return the injected client or create a new one."""
        if self._http_client is not None:
            return self._http_client
        return httpx.AsyncClient(timeout=self._timeout)

    async def invoke(self, model: str, request: ChatRequest) -> ChatResponse:
        """Send a non-streaming chat request to Ollama."""
        payload = self._build_payload(model, request, stream=False)
        url = f"{self._base_url}/api/chat"

        client = await self._get_client()
        should_close = self._http_client is None

        try:
            try:
                response = await client.post(url, json=payload)
            except httpx.TransportError as e:
                raise classify_backend_error(self.backend_name, None, str(e)) from e

            if response.status_code != 200:
                self._raise_backend_error(response.status_code, response.content)

            return self._parse_chat_response(model, response.json())

        finally:
            if should_close:
                await client.aclose()

    async def invoke_stream(
        self, model: str, request: ChatRequest
    ) -> AsyncIterator[StreamChunk]:
        """Send a streaming chat request to Ollama.

        Ollama streams one JSON object per line. The final object has
        ``done: true`` and carries the token counts.
        """
        payload = self._build_payload(model, request, stream=True)
        url = f"{self._base_url}/api/chat"

        client = await self._get_client()
        should_close = self._http_client is None
        tool_index = 0

        try:
            try:
                async with client.stream("POST", url, json=payload) as response:
                    if response.status_code != 200:
                        body = await response.aread()
                        self._raise_backend_error(response.status_code, body)

                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue

                        data = json.loads(line)
                        if "error" in data:
                            raise classify_backend_error(
                                self.backend_name, 500, str(data["error"])
                            )

                        message = data.get("message") or {}
                        content = message.get("content") or ""
                        if content:
                            yield StreamChunk(content=content)

                        # Ollama emits each tool call whole, in a single chunk
                        for tc in message.get("tool_calls") or []:
                            function = tc.get("function", {})
                            yield StreamChunk(
                                tool_call=ToolCallFragment(
                                    index=tool_index,
                                    id=tc.get("id") or _new_call_id(),
                                    name=function.get("name", ""),
                                    arguments=json.dumps(function.get("arguments") or {}),
                                    final=True,
                                )
                            )
                            tool_index += 1

                        if data.get("done"):
                            yield StreamChunk(
                                usage=self._parse_usage(data),
                                finish_reason=self._finish_reason(data, tool_index > 0),
                                done=True,
                            )
                            break
            except httpx.TransportError as e:
                raise classify_backend_error(self.backend_name, None, str(e)) from e

        finally:
            if should_close:
                await client.aclose()

    def _parse_chat_response(self, model: str, data: dict) -> ChatResponse:
        """Parse the Ollama JSON response into a domain entity."""
        if "error" in data:
            raise classify_backend_error(self.backend_name, 500, str(data["error"]))

        message = data.get("message") or {}

        tool_calls = []
        for tc in message.get("tool_calls") or []:
            function = tc.get("function", {})
            arguments = function.get("arguments") or {}
            if isinstance(arguments, str):
                try:
                    arguments = json.loads(arguments)
                except json.JSONDecodeError:
                    arguments = {}
            tool_calls.append(
                ToolCall(
                    id=tc.get("id") or _new_call_id(),
                    name=function.get("name", ""),
                    parameters=arguments if isinstance(arguments, dict) else {},
                )
            )

        return ChatResponse(
            content=message.get("content", "") or "",
            model=data.get("model") or model,
            usage=self._parse_usage(data),
            tool_calls=tool_calls,
            finish_reason=self._finish_reason(data, bool(tool_calls)),
            provider=self.backend_name,
        )

    @staticmethod
    def _parse_usage(data: dict) -> TokenUsage:
        return TokenUsage(
            input_tokens=data.get("prompt_eval_count") or 0,
            output_tokens=data.get("eval_count") or 0,
        )

    @staticmethod
    def _finish_reason(data: dict, has_tool_calls: bool) -> str:
        if has_tool_calls:
            return "tool_calls"
        return data.get("done_reason") or "stop"

    def _raise_backend_error(self, status_code: int, body: bytes) -> None:
        """Raise a classified BackendError from raw response bytes."""
        try:
            data = json.loads(body)
            message = data.get("error", body.decode())
        except Exception:
            message = body.decode(errors="replace")

        raise classify_backend_error(self.backend_name, status_code, str(message))


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"
