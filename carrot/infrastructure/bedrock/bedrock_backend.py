"""AWS Bedrock backend — implements the ChatBackend interface.

Uses the bedrock-runtime Converse and ConverseStream APIs through boto3,
which give one message format and native tool use across model families.
boto3 is synchronous, so every SDK call (and every pull from an event
stream) runs in a worker thread.
"""

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from typing import Any

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

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
from carrot.domain.exceptions import BackendError, classify_backend_error

logger = logging.getLogger(__name__)

DEFAULT_REGION = "us-east-1"
DEFAULT_MODEL = "meta.llama3-70b-instruct-v1:0"

# Error events that may appear inside a ConverseStream response.
_STREAM_ERROR_STATUS = {
    "internalServerException": 500,
    "modelStreamErrorException": 500,
    "throttlingException": 429,
    "validationException": 400,
    "serviceUnavailableException": 503,
}

_END_OF_STREAM = object()


class BedrockBackend(ChatBackend):
    """Infrastructure adapter — connects to Amazon Bedrock.

    A boto3 ``bedrock-runtime`` client can be injected; otherwise one is
    created lazily for the configured region. Credentials are resolved by
    boto3's standard provider chain.
    """

    def __init__(
        self,
        region: str = DEFAULT_REGION,
        default_model: str = DEFAULT_MODEL,
        *,
        endpoint_url: str | None = None,
        temperature: float = 0.7,
        top_p: float = 0.9,
        max_tokens: int = 2048,
        schema_converter: SchemaConverter = to_json_schema,
        client: Any | None = None,
    ):
        self._region = region
        self._default_model = default_model
        self._endpoint_url = endpoint_url
        self._temperature = temperature
        self._top_p = top_p
        self._max_tokens = max_tokens
        self._schema_converter = schema_converter
        self._client = client

    @property
    def backend_name(self) -> str:
        return "bedrock"

    @property
    def default_model(self) -> str:
        return self._default_model

    def _get_client(self) -> Any:
        """Return the injected client or create one on first use."""
        if self._client is None:
            import boto3

            self._client = boto3.client(
                "bedrock-runtime",
                region_name=self._region,
                endpoint_url=self._endpoint_url,
            )
        return self._client

    def _build_params(self, model: str, request: ChatRequest) -> dict:
        """Build the keyword arguments for converse / converse_stream."""
        system, messages = self._serialize_messages(request)

        inference: dict[str, Any] = {
            "maxTokens": request.max_tokens or self._max_tokens,
            "temperature": (
                request.temperature if request.temperature is not None else self._temperature
            ),
            "topP": request.top_p if request.top_p is not None else self._top_p,
        }
        if request.stop_sequences:
            inference["stopSequences"] = list(request.stop_sequences)

        params: dict[str, Any] = {
            "modelId": model,
            "messages": messages,
            "inferenceConfig": inference,
        }
        if system:
            params["system"] = system
        if request.tools:
            params["toolConfig"] = {
                "tools": [self._serialize_tool(t) for t in request.tools]
            }

        logger.debug(
            "Bedrock request model=%s messages=%d tools=%d",
            model,
            len(messages),
            len(request.tools),
        )
        return params

    def _serialize_tool(self, definition: ToolDefinition) -> dict:
        return {
            "toolSpec": {
                "name": definition.name,
                "description": definition.description,
                "inputSchema": {"json": self._schema_converter(definition.parameters)},
            }
        }

    @staticmethod
    def _serialize_messages(request: ChatRequest) -> tuple[list[dict], list[dict]]:
        """Split domain Messages into Converse ``system`` and ``messages``.

        Converse only accepts user/assistant turns that alternate, so
        consecutive blocks for the same role are merged and tool results
        travel as user turns.
        """
        system: list[dict] = []
        if request.system_instruction:
            system.append({"text": request.system_instruction})

        messages: list[dict] = []
        known_calls: set[str] = set()

        def add(role: str, blocks: list[dict]) -> None:
            if not blocks:
                return
            if messages and messages[-1]["role"] == role:
                messages[-1]["content"].extend(blocks)
            else:
                messages.append({"role": role, "content": blocks})

        for msg in request.messages:
            if msg.role == "system":
                if msg.text:
                    system.append({"text": msg.text})
                continue

            if msg.role == "tool":
                add("user", [
                    {
                        "toolResult": {
                            "toolUseId": tr.tool_call_id,
                            "content": [{"text": tr.content}],
                            "status": "error" if tr.is_error else "success",
                        }
                    }
                    for tr in msg.tool_results
                    # Results whose call was pruned from history would be rejected
                    if tr.tool_call_id in known_calls
                ])
                continue

            blocks: list[dict] = []
            if msg.text:
                blocks.append({"text": msg.text})
            for tc in msg.tool_calls or []:
                known_calls.add(tc.id)
                blocks.append({
                    "toolUse": {
                        "toolUseId": tc.id,
                        "name": tc.name,
                        "input": tc.parameters,
                    }
                })
            add("assistant" if msg.role == "assistant" else "user", blocks)

        return system, _trim_to_user_start(messages)

    async def invoke(self, model: str, request: ChatRequest) -> ChatResponse:
        """Send a non-streaming Converse request."""
        params = self._build_params(model, request)
        client = self._get_client()

        try:
            data = await asyncio.to_thread(client.converse, **params)
        except (ClientError, BotoCoreError) as e:
            raise self._classify(e) from e

        return self._parse_converse_response(model, data)

    async def invoke_stream(
        self, model: str, request: ChatRequest
    ) -> AsyncIterator[StreamChunk]:
        """Send a ConverseStream request.

        Tool input arrives as JSON fragments across contentBlockDelta
        events; a contentBlockStop for a toolUse block marks the call final.
        Token counts arrive in the trailing metadata event.
        """
        params = self._build_params(model, request)
        client = self._get_client()

        try:
            response = await asyncio.to_thread(client.converse_stream, **params)
        except (ClientError, BotoCoreError) as e:
            raise self._classify(e) from e

        event_stream = response["stream"]
        events = iter(event_stream)
        tool_blocks: set[int] = set()
        finish_reason: str | None = None

        try:
            while True:
                try:
                    event = await asyncio.to_thread(next, events, _END_OF_STREAM)
                except (ClientError, BotoCoreError) as e:
                    raise self._classify(e) from e
                if event is _END_OF_STREAM:
                    break

                for key, status in _STREAM_ERROR_STATUS.items():
                    if key in event:
                        message = event[key].get("message", key)
                        raise classify_backend_error(self.backend_name, status, message)

                if "contentBlockStart" in event:
                    start = event["contentBlockStart"]
                    tool_use = start.get("start", {}).get("toolUse")
                    if tool_use:
                        index = start.get("contentBlockIndex", 0)
                        tool_blocks.add(index)
                        yield StreamChunk(
                            tool_call=ToolCallFragment(
                                index=index,
                                id=tool_use.get("toolUseId"),
                                name=tool_use.get("name"),
                            )
                        )

                elif "contentBlockDelta" in event:
                    block = event["contentBlockDelta"]
                    delta = block.get("delta", {})
                    if "text" in delta:
                        yield StreamChunk(content=delta["text"])
                    elif "toolUse" in delta:
                        yield StreamChunk(
                            tool_call=ToolCallFragment(
                                index=block.get("contentBlockIndex", 0),
                                arguments=delta["toolUse"].get("input", ""),
                            )
                        )

                elif "contentBlockStop" in event:
                    index = event["contentBlockStop"].get("contentBlockIndex", 0)
                    if index in tool_blocks:
                        tool_blocks.discard(index)
                        yield StreamChunk(tool_call=ToolCallFragment(index=index, final=True))

                elif "messageStop" in event:
                    finish_reason = _normalize_stop_reason(event["messageStop"].get("stopReason"))
                    yield StreamChunk(finish_reason=finish_reason)

                elif "metadata" in event:
                    usage = event["metadata"].get("usage")
                    if usage:
                        yield StreamChunk(usage=self._parse_usage(usage))

            yield StreamChunk(finish_reason=finish_reason, done=True)
        finally:
            # Releases the HTTP connection, also when the consumer stops early
            event_stream.close()

    def _parse_converse_response(self, model: str, data: dict) -> ChatResponse:
        """Parse a Converse response into a domain entity."""
        message = data.get("output", {}).get("message", {})

        texts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in message.get("content", []):
            if "text" in block:
                texts.append(block["text"])
            elif "toolUse" in block:
                tool_use = block["toolUse"]
                arguments = tool_use.get("input") or {}
                if isinstance(arguments, str):
                    try:
                        arguments = json.loads(arguments)
                    except json.JSONDecodeError:
                        arguments = {}
                tool_calls.append(
                    ToolCall(
                        id=tool_use.get("toolUseId", ""),
                        name=tool_use.get("name", ""),
                        parameters=arguments if isinstance(arguments, dict) else {},
                    )
                )

        return ChatResponse(
            content="".join(texts),
            model=model,
            usage=self._parse_usage(data.get("usage", {})),
            tool_calls=tool_calls,
            finish_reason=_normalize_stop_reason(data.get("stopReason")),
            provider=self.backend_name,
        )

    @staticmethod
    def _parse_usage(usage: dict) -> TokenUsage:
        return TokenUsage(
            input_tokens=usage.get("inputTokens") or 0,
            output_tokens=usage.get("outputTokens") or 0,
        )

    def _classify(self, error: ClientError | BotoCoreError) -> BackendError:
        """Map an SDK exception onto the backend error taxonomy."""
        if isinstance(error, NoCredentialsError):
            return classify_backend_error(self.backend_name, 401, str(error))
        if isinstance(error, BotoCoreError):
            # No response received: connection errors, timeouts
            return classify_backend_error(self.backend_name, None, str(error))

        details = error.response.get("Error", {})
        status = error.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
        if details.get("Code") == "ThrottlingException":
            status = 429
        return classify_backend_error(
            self.backend_name, status, details.get("Message") or str(error)
        )


def _normalize_stop_reason(reason: str | None) -> str:
    if reason == "tool_use":
        return "tool_calls"
    if reason == "max_tokens":
        return "length"
    return reason or "stop"


def _trim_to_user_start(messages: list[dict]) -> list[dict]:
    """Drop leading turns until the conversation opens with a user turn.

    A pruned history can start mid-exchange. Converse requires the first
    message to be a user turn, and a toolResult must answer a toolUse
    still present, so results of dropped calls are removed as well.
    """
    dropped_calls: set[str] = set()
    while messages:
        first = messages[0]
        if first["role"] == "user":
            content = [
                block
                for block in first["content"]
                if block.get("toolResult", {}).get("toolUseId") not in dropped_calls
            ]
            if content:
                return [{"role": "user", "content": content}, *messages[1:]]
        else:
            dropped_calls.update(
                block["toolUse"]["toolUseId"]
                for block in first["content"]
                if "toolUse" in block
            )
        messages = messages[1:]
    return messages
