"""Error taxonomy shared by the gateway, tools and dispatcher."""

from __future__ import annotations

from typing import Any


class InfluenceMCPError(Exception):
    """Base class for failures whose message is safe to show a caller."""


class ConfigurationMissing(InfluenceMCPError):
    """A credential or location needed by the invoked tool is not configured."""


class UpstreamCallFailure(InfluenceMCPError):
    """The RPC gateway or embedding provider answered with a non-success."""

    def __init__(
        self,
        source: str,
        *,
        status: int | None = None,
        status_text: str = "",
        body: str = "",
    ) -> None:
        self.source = source
        self.status = status
        self.status_text = status_text
        self.body = body
        parts = [f"{source} failed:"]
        if status is not None:
            parts.append(str(status))
        if status_text:
            parts.append(status_text)
        if body:
            parts.append(body)
        super().__init__(" ".join(parts))


class DatabaseError(InfluenceMCPError):
    """The Postgres backend rejected a statement or could not be reached."""


class DecodingError(InfluenceMCPError):
    """An opaque result id could not be parsed."""


class UnknownResultKind(InfluenceMCPError):
    """A decoded result id names a kind the fetch resolver does not know."""


class VectorRequired(InfluenceMCPError):
    """A vector-ranked tool received neither query text nor a vector."""


class FilterRequired(InfluenceMCPError):
    """A search kind cannot run without filters the caller did not supply."""


class InvocationError(Exception):
    """Base class for failures produced at the dispatcher boundary."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        self.message = message
        super().__init__(message)


class ToolNotFound(InvocationError):
    def __init__(self, tool_name: str) -> None:
        super().__init__(tool_name, f"Unknown tool: {tool_name}")


class InvalidArguments(InvocationError):
    """Arguments failed schema validation; `errors` holds field-level detail."""

    def __init__(self, tool_name: str, errors: list[dict[str, Any]]) -> None:
        self.errors = errors
        fields = ", ".join(f"{item['field']}: {item['reason']}" for item in errors)
        super().__init__(tool_name, f"Invalid arguments for {tool_name}: {fields}")


class ToolTimeout(InvocationError):
    def __init__(self, tool_name: str, timeout_seconds: float) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            tool_name, f"Tool {tool_name} exceeded its {timeout_seconds:g}s budget"
        )


class HandlerError(InvocationError):
    """A handler failed; only a caller-safe message is carried."""
