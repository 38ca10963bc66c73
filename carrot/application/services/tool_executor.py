"""Tool registry and concurrent tool execution."""

import asyncio
import inspect
import json
import logging
from collections.abc import Iterable
from typing import Any

from pydantic import BaseModel

from carrot.application.services.tool_schema import validate_arguments
from carrot.domain.entities import (
    ToolCall,
    ToolDefinition,
    ToolResult,
    ValidationFailure,
)
from carrot.domain.exceptions import ToolExecutionError, ToolValidationError

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Holds tool definitions by name."""

    def __init__(self, tools: Iterable[ToolDefinition] = ()):
        self._tools: dict[str, ToolDefinition] = {}
        for definition in tools:
            self.register(definition)

    def register(self, definition: ToolDefinition) -> None:
        if not definition.name:
            raise ValueError("Tool name must be non-empty")
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered")
        self._tools[definition.name] = definition

    def get(self, name: str) -> ToolDefinition | None:
        return self._tools.get(name)

    def list(self) -> list[ToolDefinition]:
        return [*self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)


class ToolExecutor:
    """Runs the tool calls of one model turn.

    All calls run concurrently; results come back in the order the calls
    were given. Failures of any kind become error-flagged ToolResults so
    the caller's loop can continue.
    """

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    async def execute_all(self, tool_calls: list[ToolCall]) -> list[ToolResult]:
        if not tool_calls:
            return []
        return list(await asyncio.gather(*(self.execute(tc) for tc in tool_calls)))

    async def execute(self, tool_call: ToolCall) -> ToolResult:
        definition = self._registry.get(tool_call.name)
        if definition is None:
            logger.warning(
                "Model requested unknown tool '%s' (call_id=%s)",
                tool_call.name,
                tool_call.id,
            )
            return ToolResult(
                tool_call_id=tool_call.id,
                content=f'Unknown tool "{tool_call.name}"',
                is_error=True,
            )

        validation = validate_arguments(definition.parameters, tool_call.parameters)
        if isinstance(validation, ValidationFailure):
            error = ToolValidationError(tool_call.name, validation.describe())
            logger.info("%s (call_id=%s)", error, tool_call.id)
            return ToolResult(
                tool_call_id=tool_call.id, content=str(error), is_error=True
            )

        logger.info("Executing tool '%s' (call_id=%s)", tool_call.name, tool_call.id)
        try:
            value = await self._invoke(definition, validation.value)
        except Exception as e:
            logger.exception("Tool '%s' failed", tool_call.name)
            error = ToolExecutionError(tool_call.name, str(e) or type(e).__name__)
            return ToolResult(
                tool_call_id=tool_call.id, content=str(error), is_error=True
            )

        return ToolResult(tool_call_id=tool_call.id, content=_serialize(value))

    @staticmethod
    async def _invoke(definition: ToolDefinition, arguments: BaseModel) -> Any:
        if inspect.iscoroutinefunction(definition.execute):
            return await definition.execute(arguments)
        # Sync tools run in a worker thread
        result = await asyncio.to_thread(definition.execute, arguments)
        if inspect.isawaitable(result):
            return await result
        return result


def _serialize(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    return json.dumps(value, default=str)
