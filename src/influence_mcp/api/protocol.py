"""JSON-RPC 2.0 envelopes and MCP result shapes."""

from __future__ import annotations

from typing import Any

JSONRPC_VERSION = "2.0"
LATEST_PROTOCOL_VERSION = "2025-06-18"
SUPPORTED_PROTOCOL_VERSIONS = ("2025-06-18", "2025-03-26", "2024-11-05")

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
METHOD_NOT_ALLOWED = -32000


class ProtocolError(Exception):
    def __init__(self, code: int, message: str, data: Any = None) -> None:
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)


def validate_message(msg: Any) -> str:
    """Classify a decoded message as ``request`` or ``notification``."""
    if not isinstance(msg, dict):
        raise ProtocolError(INVALID_REQUEST, "Message must be a JSON object")
    if msg.get("jsonrpc") != JSONRPC_VERSION:
        raise ProtocolError(INVALID_REQUEST, "jsonrpc must be '2.0'")
    method = msg.get("method")
    if not isinstance(method, str) or not method:
        raise ProtocolError(INVALID_REQUEST, "Missing method")
    params = msg.get("params", {})
    if params is not None and not isinstance(params, dict):
        raise ProtocolError(INVALID_REQUEST, "params must be an object")
    return "request" if "id" in msg else "notification"


def make_response(request_id: Any, result: dict[str, Any]) -> dict[str, Any]:
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "result": result}


def make_error(request_id: Any, code: int, message: str, data: Any = None) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": JSONRPC_VERSION, "id": request_id, "error": error}


def negotiate_version(requested: Any) -> str:
    if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS:
        return requested
    return LATEST_PROTOCOL_VERSION


def initialize_result(
    *, server_name: str, server_version: str, protocol_version: str, instructions: str = ""
) -> dict[str, Any]:
    result: dict[str, Any] = {
        "protocolVersion": protocol_version,
        "capabilities": {
            "tools": {"listChanged": False},
            "resources": {"listChanged": False},
        },
        "serverInfo": {"name": server_name, "version": server_version},
    }
    if instructions:
        result["instructions"] = instructions
    return result


def tools_list_result(tools: list[dict[str, Any]]) -> dict[str, Any]:
    return {"tools": tools}


def resources_list_result(resources: list[dict[str, Any]]) -> dict[str, Any]:
    return {"resources": resources}


def resource_read_result(contents: list[dict[str, Any]]) -> dict[str, Any]:
    return {"contents": contents}
