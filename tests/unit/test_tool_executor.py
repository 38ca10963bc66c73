"""Unit tests for ToolRegistry, ToolExecutor and argument validation."""

import asyncio

import pytest
from pydantic import BaseModel, Field

from carrot.application.services.tool_executor import ToolExecutor, ToolRegistry
from carrot.application.services.tool_schema import to_json_schema, validate_arguments
from carrot.domain.entities import (
    ToolCall,
    ToolDefinition,
    ValidationFailure,
    ValidationOk,
    tool,
)


# ── Tools ──


class AddArgs(BaseModel):
    a: int
    b: int


class GreetArgs(BaseModel):
    name: str = Field(min_length=1)


class Reading(BaseModel):
    city: str
    celsius: float


@tool(parameters=AddArgs)
async def add(args: AddArgs) -> int:
    """Add two integers."""
    return args.a + args.b


@tool(parameters=GreetArgs)
def greet(args: GreetArgs) -> str:
    """Greet someone (sync tool)."""
    return f"Hello, {args.name}!"


@tool(parameters=GreetArgs)
async def explode(args: GreetArgs) -> str:
    """Always fails."""
    raise RuntimeError("kaboom")


@tool(parameters=GreetArgs)
async def weather(args: GreetArgs) -> Reading:
    """Returns a pydantic model."""
    return Reading(city=args.name, celsius=21.5)


def _executor(*tools: ToolDefinition) -> ToolExecutor:
    return ToolExecutor(ToolRegistry(tools))


# ── Registry ──


def test_registry_lookup():
    registry = ToolRegistry([add, greet])

    assert "add" in registry
    assert registry.get("add") is add
    assert registry.get("missing") is None
    assert len(registry) == 2
    assert [t.name for t in registry.list()] == ["add", "greet"]


def test_registry_rejects_duplicates():
    registry = ToolRegistry([add])

    with pytest.raises(ValueError):
        registry.register(add)


def test_registry_rejects_empty_name():
    nameless = ToolDefinition(name="", description="", parameters=AddArgs, execute=lambda a: a)

    with pytest.raises(ValueError):
        ToolRegistry([nameless])


# ── Validation ──


def test_validate_arguments_ok():
    result = validate_arguments(AddArgs, {"a": 1, "b": "2"})

    assert isinstance(result, ValidationOk)
    assert result.value == AddArgs(a=1, b=2)


def test_validate_arguments_reports_each_issue():
    result = validate_arguments(AddArgs, {"a": "not a number"})

    assert isinstance(result, ValidationFailure)
    paths = {issue.path for issue in result.issues}
    assert paths == {"a", "b"}
    assert "a:" in result.describe()


def test_to_json_schema_describes_parameters():
    schema = to_json_schema(AddArgs)

    assert schema["type"] == "object"
    assert set(schema["properties"]) == {"a", "b"}
    assert set(schema["required"]) == {"a", "b"}


# ── Execution ──


@pytest.mark.asyncio
async def test_execute_async_tool():
    results = await _executor(add).execute_all(
        [ToolCall(id="c1", name="add", parameters={"a": 2, "b": 3})]
    )

    assert len(results) == 1
    assert results[0].tool_call_id == "c1"
    assert results[0].content == "5"
    assert results[0].is_error is False


@pytest.mark.asyncio
async def test_execute_sync_tool():
    results = await _executor(greet).execute_all(
        [ToolCall(id="c1", name="greet", parameters={"name": "Ada"})]
    )

    assert results[0].content == "Hello, Ada!"
    assert not results[0].is_error


@pytest.mark.asyncio
async def test_pydantic_result_serialized_as_json():
    results = await _executor(weather).execute_all(
        [ToolCall(id="c1", name="weather", parameters={"name": "Oslo"})]
    )

    assert results[0].content == '{"city":"Oslo","celsius":21.5}'


@pytest.mark.asyncio
async def test_unknown_tool_is_error_result():
    results = await _executor(add).execute_all(
        [ToolCall(id="c1", name="nope", parameters={})]
    )

    assert results[0].is_error is True
    assert "nope" in results[0].content


@pytest.mark.asyncio
async def test_validation_failure_skips_execution():
    """Invalid arguments produce an error result without calling the tool."""
    calls = []

    @tool(parameters=AddArgs)
    async def tracked_add(args: AddArgs) -> int:
        calls.append(args)
        return args.a + args.b

    results = await _executor(tracked_add).execute_all(
        [ToolCall(id="c1", name="tracked_add", parameters={"a": 1})]
    )

    assert calls == []
    assert results[0].is_error is True
    assert "b" in results[0].content


@pytest.mark.asyncio
async def test_tool_exception_becomes_error_result():
    results = await _executor(explode).execute_all(
        [ToolCall(id="c1", name="explode", parameters={"name": "x"})]
    )

    assert results[0].is_error is True
    assert "kaboom" in results[0].content
    assert "explode" in results[0].content


@pytest.mark.asyncio
async def test_results_follow_call_order_not_completion_order():
    """A slow first call still comes back first."""

    class SleepArgs(BaseModel):
        delay: float
        label: str

    @tool(parameters=SleepArgs)
    async def sleepy(args: SleepArgs) -> str:
        await asyncio.sleep(args.delay)
        return args.label

    results = await _executor(sleepy).execute_all(
        [
            ToolCall(id="slow", name="sleepy", parameters={"delay": 0.05, "label": "slow"}),
            ToolCall(id="fast", name="sleepy", parameters={"delay": 0.0, "label": "fast"}),
        ]
    )

    assert [r.tool_call_id for r in results] == ["slow", "fast"]
    assert [r.content for r in results] == ["slow", "fast"]


@pytest.mark.asyncio
async def test_calls_run_concurrently():
    """All calls of a turn are in flight at the same time."""
    in_flight = 0
    peak = 0

    class Empty(BaseModel):
        pass

    @tool(parameters=Empty)
    async def probe(args: Empty) -> str:
        nonlocal in_flight, peak
        in_flight += 1
        peak = max(peak, in_flight)
        await asyncio.sleep(0.01)
        in_flight -= 1
        return "ok"

    await _executor(probe).execute_all(
        [ToolCall(id=f"c{i}", name="probe", parameters={}) for i in range(3)]
    )

    assert peak == 3


@pytest.mark.asyncio
async def test_mixed_failures_do_not_stop_other_calls():
    results = await _executor(add, explode).execute_all(
        [
            ToolCall(id="c1", name="explode", parameters={"name": "x"}),
            ToolCall(id="c2", name="add", parameters={"a": 1, "b": 1}),
            ToolCall(id="c3", name="missing", parameters={}),
        ]
    )

    assert [r.is_error for r in results] == [True, False, True]
    assert results[1].content == "2"


@pytest.mark.asyncio
async def test_no_calls_returns_empty():
    assert await _executor(add).execute_all([]) == []
