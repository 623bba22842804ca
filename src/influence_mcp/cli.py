"""Command line entrypoint: run the server or probe a deployed one."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from typing import Any

import httpx

from influence_mcp.api.protocol import LATEST_PROTOCOL_VERSION


async def check_metadata(client: httpx.AsyncClient, origin: str) -> dict[str, Any]:
    response = await client.get(f"{origin}/.well-known/oauth-protected-resource")
    print("[metadata]", response.status_code, response.headers.get("content-type"))
    print(response.text)
    return response.json()


async def check_mcp(client: httpx.AsyncClient, origin: str) -> list[dict[str, Any]]:
    endpoint = f"{origin}/mcp"
    init = await _rpc(
        client,
        endpoint,
        1,
        "initialize",
        {
            "protocolVersion": LATEST_PROTOCOL_VERSION,
            "capabilities": {},
            "clientInfo": {"name": "influence-mcp-check", "version": "1.0.0"},
        },
    )
    print("[mcp] connected. server capabilities:", json.dumps(init.get("capabilities", {})))
    await client.post(endpoint, json={"jsonrpc": "2.0", "method": "notifications/initialized"})

    listed = await _rpc(client, endpoint, 2, "tools/list", {})
    tools = listed.get("tools", [])
    print(f"[mcp] tools ({len(tools)}):")
    for tool in tools:
        print(f"  - {tool['name']}: {tool.get('description', '')}")
    return tools


async def _rpc(
    client: httpx.AsyncClient, endpoint: str, request_id: int, method: str, params: dict[str, Any]
) -> dict[str, Any]:
    response = await client.post(
        endpoint,
        json={"jsonrpc": "2.0", "id": request_id, "method": method, "params": params},
        headers={"Accept": "application/json, text/event-stream"},
    )
    response.raise_for_status()
    payload = response.json()
    if "error" in payload:
        raise RuntimeError(f"{method} failed: {payload['error'].get('message')}")
    return payload.get("result", {})


async def run_check(origin: str, *, transport: httpx.AsyncBaseTransport | None = None) -> int:
    """Probe metadata and the MCP endpoint; one failing step does not skip the other."""
    origin = origin.rstrip("/")
    failures = 0
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        try:
            await check_metadata(client, origin)
        except (httpx.HTTPError, ValueError) as exc:
            failures += 1
            print("[metadata] error:", exc, file=sys.stderr)
        try:
            await check_mcp(client, origin)
        except (httpx.HTTPError, ValueError, RuntimeError) as exc:
            failures += 1
            print("[mcp] error:", exc, file=sys.stderr)
    return 1 if failures else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="influence-mcp")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP MCP server")
    serve.add_argument("--host", default="127.0.0.1")
    serve.add_argument("--port", type=int, default=8000)

    check = sub.add_parser("check", help="Probe a deployment: metadata and tool listing")
    check.add_argument("origin", help="e.g. https://your-app.example.com")
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    if args.command == "check":
        return asyncio.run(run_check(args.origin))

    import uvicorn

    uvicorn.run(
        "influence_mcp.api.main:create_app",
        factory=True,
        host=args.host,
        port=args.port,
        log_level="info",
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
