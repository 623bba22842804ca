"""Tool registry built on Pydantic v2 models."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from langchain_core.tools import StructuredTool
from pydantic import BaseModel, ConfigDict, Field

from influence_mcp.errors import ToolNotFound
from influence_mcp.tools.schema import describe_schema

if TYPE_CHECKING:
    from influence_mcp.tools.dispatcher import ToolDispatcher

ToolHandler = Callable[[Any], Awaitable[Any]]


class ToolSpec(BaseModel):
    """Declarative tool specification for registration and validation."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    name: str = Field(min_length=1)
    description: str
    args_schema: type[BaseModel]
    handler: ToolHandler

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": describe_schema(self.args_schema),
        }


class ToolRegistry:
    """Stores tool specs in registration order.

    Registration happens once at startup; afterwards the registry is only
    read, so concurrent invocations share it without synchronization.
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolSpec] = {}

    def register(self, spec: ToolSpec) -> None:
        if spec.name in self._tools:
            raise ValueError(f"Tool already registered: {spec.name}")
        self._tools[spec.name] = spec

    def get(self, name: str) -> ToolSpec:
        spec = self._tools.get(name)
        if spec is None:
            raise ToolNotFound(name)
        return spec

    def list(self) -> list[dict[str, Any]]:
        """Discovery payload: name, description and input schema per tool."""
        return [spec.describe() for spec in self._tools.values()]

    def names(self) -> list[str]:
        return list(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def as_langchain_tools(self, dispatcher: "ToolDispatcher") -> list[StructuredTool]:
        tools: list[StructuredTool] = []
        for spec in self._tools.values():
            tools.append(
                StructuredTool.from_function(
                    name=spec.name,
                    description=spec.description,
                    args_schema=spec.args_schema,
                    coroutine=self._build_coroutine(dispatcher, spec),
                )
            )
        return tools

    @staticmethod
    def _build_coroutine(
        dispatcher: "ToolDispatcher", spec: ToolSpec
    ) -> Callable[..., Awaitable[str]]:
        async def _callable(**kwargs: Any) -> str:
            result = await dispatcher.invoke(spec.name, kwargs)
            return "\n".join(block.text for block in result.content)

        return _callable
