"""
Method router: dispatch MCP methods to handlers.

Routes:
  initialize                 -> capabilities handshake
  notifications/initialized  -> notification (no response)
  ping                       -> empty result
  tools/list                 -> registered tool definitions, registration order
  tools/call                 -> ToolDispatcher.invoke
  resources/list             -> static resources
  resources/read             -> resource contents
"""

from __future__ import annotations

from typing import Any

from influence_mcp.api.protocol import (
    INVALID_PARAMS,
    METHOD_NOT_FOUND,
    ProtocolError,
    initialize_result,
    negotiate_version,
    resource_read_result,
    resources_list_result,
    tools_list_result,
)
from influence_mcp.api.resources import RESOURCES, find_resource
from influence_mcp.config import ServerConfig
from influence_mcp.errors import HandlerError, InvalidArguments, ToolNotFound, ToolTimeout
from influence_mcp.obs.logger import get_logger
from influence_mcp.tools.dispatcher import ToolDispatcher
from influence_mcp.types import ToolResult

log = get_logger("router")

_NOTIFICATIONS = frozenset({
    "initialized",
    "notifications/initialized",
    "notifications/cancelled",
})

_INSTRUCTIONS = (
    "Use `search` to find donors, bills and stakeholder positions, then `fetch` "
    "an id for full detail."
)


class Router:
    def __init__(self, dispatcher: ToolDispatcher, server: ServerConfig) -> None:
        self.dispatcher = dispatcher
        self.server = server

    async def route(self, msg: dict[str, Any]) -> dict[str, Any] | None:
        """Return the result payload, or None for notifications."""
        method = msg.get("method", "")
        params = msg.get("params") or {}

        if method in _NOTIFICATIONS:
            return None
        if method == "initialize":
            return self._handle_initialize(params)
        if method == "ping":
            return {}
        if method == "tools/list":
            return tools_list_result(self.dispatcher.registry.list())
        if method == "tools/call":
            return await self._handle_tools_call(params)
        if method == "resources/list":
            return resources_list_result([resource.describe() for resource in RESOURCES])
        if method == "resources/read":
            return self._handle_resources_read(params)

        raise ProtocolError(METHOD_NOT_FOUND, f"Unknown method: {method}")

    def _handle_initialize(self, params: dict[str, Any]) -> dict[str, Any]:
        client = params.get("clientInfo") or {}
        log.info(
            "client initialize: %s protocol=%s",
            client.get("name", "?"),
            params.get("protocolVersion", "?"),
        )
        return initialize_result(
            server_name=self.server.name,
            server_version=self.server.version,
            protocol_version=negotiate_version(params.get("protocolVersion")),
            instructions=_INSTRUCTIONS,
        )

    async def _handle_tools_call(self, params: dict[str, Any]) -> dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise ProtocolError(INVALID_PARAMS, "Missing tool name")

        try:
            result = await self.dispatcher.invoke(name, params.get("arguments"))
        except ToolNotFound as exc:
            raise ProtocolError(METHOD_NOT_FOUND, exc.message) from None
        except InvalidArguments as exc:
            raise ProtocolError(INVALID_PARAMS, exc.message, {"errors": exc.errors}) from None
        except (ToolTimeout, HandlerError) as exc:
            return ToolResult.text(exc.message, is_error=True).to_dict()
        return result.to_dict()

    def _handle_resources_read(self, params: dict[str, Any]) -> dict[str, Any]:
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise ProtocolError(INVALID_PARAMS, "Missing resource URI")
        resource = find_resource(uri)
        if resource is None:
            raise ProtocolError(INVALID_PARAMS, f"Resource not found: {uri}")
        return resource_read_result([resource.contents()])
