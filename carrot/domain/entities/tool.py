"""Tool definitions and the parameter-validation result variants."""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel

# Receives the validated parameter model; may be sync or async and may raise.
ToolFunction = Callable[[BaseModel], Any]


@dataclass(frozen=True)
class ToolDefinition:
    """Static description of a capability the model may invoke.

    ``parameters`` is a pydantic model class. It validates incoming
    arguments and, through a schema converter, advertises the tool's
    input shape to the backend.
    """

    name: str
    description: str
    parameters: type[BaseModel]
    execute: ToolFunction


def tool(
    *,
    parameters: type[BaseModel],
    name: str | None = None,
    description: str | None = None,
) -> Callable[[ToolFunction], ToolDefinition]:
    """Decorator turning a function into a ToolDefinition.

    Usage:
        class WeatherArgs(BaseModel):
            city: str

        @tool(parameters=WeatherArgs)
        async def get_weather(args: WeatherArgs) -> dict:
            \"\"\"Current weather for a city.\"\"\"
            ...
    """

    def decorator(func: ToolFunction) -> ToolDefinition:
        return ToolDefinition(
            name=name or func.__name__,
            description=description or (func.__doc__ or "").strip(),
            parameters=parameters,
            execute=func,
        )

    return decorator


@dataclass(frozen=True)
class ValidationIssue:
    """One violated constraint in a tool's arguments."""

    path: str  # Dotted location, e.g. "items.0.quantity"
    message: str


@dataclass(frozen=True)
class ValidationOk:
    value: BaseModel


@dataclass(frozen=True)
class ValidationFailure:
    issues: list[ValidationIssue] = field(default_factory=list)

    def describe(self) -> str:
        return "; ".join(f"{issue.path}: {issue.message}" for issue in self.issues)


ValidationResult = ValidationOk | ValidationFailure
