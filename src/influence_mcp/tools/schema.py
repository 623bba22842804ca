"""Argument validation for tool parameter schemas.

Parameter schemas are plain Pydantic models. Optional fields carry defaults,
nullable-but-required fields are declared as ``X | None`` without a default,
and fixed-length vectors use :data:`QueryVector`.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from influence_mcp.config import EMBEDDING_DIMENSION
from influence_mcp.errors import InvalidArguments

QueryVector = Annotated[
    list[float],
    Field(
        min_length=EMBEDDING_DIMENSION,
        max_length=EMBEDDING_DIMENSION,
        description=f"Pre-computed embedding ({EMBEDDING_DIMENSION} floats).",
    ),
]


class ToolArgs(BaseModel):
    """Base class for tool argument models."""

    model_config = ConfigDict(extra="ignore", frozen=True)


class NoArgs(ToolArgs):
    pass


def validate_arguments(
    schema: type[BaseModel],
    raw_args: Any,
    *,
    tool_name: str = "",
) -> BaseModel:
    """Validate ``raw_args`` against ``schema``.

    Raises `InvalidArguments` listing every offending field. Nothing is
    returned on failure, so defaults are never partially applied.
    """

    payload = {} if raw_args is None else raw_args
    if not isinstance(payload, dict):
        raise InvalidArguments(
            tool_name,
            [{"field": "(root)", "reason": "arguments must be a JSON object"}],
        )
    try:
        return schema.model_validate(payload)
    except ValidationError as exc:
        raise InvalidArguments(tool_name, _field_errors(exc)) from None


def describe_schema(schema: type[BaseModel]) -> dict[str, Any]:
    """JSON Schema advertised for discovery."""
    json_schema = schema.model_json_schema()
    json_schema.pop("title", None)
    json_schema.setdefault("properties", {})
    return json_schema


def _field_errors(exc: ValidationError) -> list[dict[str, Any]]:
    errors: list[dict[str, Any]] = []
    for item in exc.errors(include_url=False):
        location = ".".join(str(part) for part in item.get("loc", ())) or "(root)"
        errors.append({"field": location, "reason": item.get("msg", "invalid value")})
    return errors
