"""Tool parameter schemas — validation and wire-schema conversion."""

from typing import Any

from pydantic import BaseModel, ValidationError

from carrot.domain.entities import (
    ValidationFailure,
    ValidationIssue,
    ValidationOk,
    ValidationResult,
)


def validate_arguments(
    schema: type[BaseModel], arguments: dict[str, Any]
) -> ValidationResult:
    """Validate raw tool arguments against a parameter model."""
    try:
        value = schema.model_validate(arguments)
    except ValidationError as exc:
        return ValidationFailure(
            issues=[
                ValidationIssue(
                    path=".".join(str(part) for part in err["loc"]) or "<root>",
                    message=err["msg"],
                )
                for err in exc.errors()
            ]
        )
    return ValidationOk(value=value)


def to_json_schema(schema: type[BaseModel]) -> dict[str, Any]:
    """Default schema converter: the model's JSON Schema."""
    return schema.model_json_schema()
