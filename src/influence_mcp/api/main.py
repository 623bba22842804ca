"""FastAPI entrypoint for the MCP endpoint, metadata and trace views."""

from __future__ import annotations

import json
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from influence_mcp.api.protocol import (
    INTERNAL_ERROR,
    METHOD_NOT_ALLOWED,
    PARSE_ERROR,
    ProtocolError,
    make_error,
    make_response,
    validate_message,
)
from influence_mcp.api.router import Router
from influence_mcp.backends.database import DatabasePool
from influence_mcp.backends.embeddings import Embedder, build_embedder
from influence_mcp.backends.gateway import RpcGatewayClient
from influence_mcp.config import Settings
from influence_mcp.obs.logger import configure_logging, get_logger
from influence_mcp.obs.tracing import TraceStore
from influence_mcp.tools.builtin import build_registry
from influence_mcp.tools.context import ToolContext
from influence_mcp.tools.dispatcher import ToolDispatcher

log = get_logger("api")

_METADATA_CORS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
}


def create_app(
    settings: Settings | None = None,
    *,
    gateway: RpcGatewayClient | None = None,
    embedder: Embedder | None = None,
    database: DatabasePool | None = None,
) -> FastAPI:
    """Wire the tool registry, dispatcher and HTTP routes.

    Collaborators can be injected for tests; otherwise they are built from
    ``settings`` (or the environment). Registration runs once here, so a
    duplicate tool name fails at startup.
    """

    settings = settings or Settings.from_env()
    configure_logging(settings.server.log_level, settings.server.log_file)

    context = ToolContext(
        settings=settings,
        gateway=gateway or RpcGatewayClient(settings.gateway),
        embedder=embedder or build_embedder(settings.embedding),
        database=database or DatabasePool(settings.database),
    )
    registry = build_registry(context)
    trace_store = TraceStore()
    dispatcher = ToolDispatcher(
        registry,
        timeout_seconds=settings.server.tool_timeout_seconds,
        observer=trace_store.record,
    )
    router = Router(dispatcher, settings.server)

    @asynccontextmanager
    async def lifespan(_: FastAPI):
        log.info(
            "starting %s v%s with %d tools (domain tools %s)",
            settings.server.name,
            settings.server.version,
            len(registry),
            "on" if settings.server.expose_domain_tools else "off",
        )
        yield
        await context.aclose()
        log.info("server stopped")

    app = FastAPI(title="Influence MCP", version=settings.server.version, lifespan=lifespan)
    app.state.context = context
    app.state.registry = registry
    app.state.dispatcher = dispatcher
    app.state.trace_store = trace_store

    @app.post("/mcp")
    async def mcp(request: Request) -> Response:
        try:
            msg = json.loads(await request.body())
        except (ValueError, UnicodeDecodeError) as exc:
            return JSONResponse(make_error(None, PARSE_ERROR, f"Parse error: {exc}"))

        request_id = msg.get("id") if isinstance(msg, dict) else None
        try:
            msg_type = validate_message(msg)
            result = await router.route(msg)
        except ProtocolError as exc:
            log.warning("protocol error: %s (code=%s)", exc.message, exc.code)
            return JSONResponse(make_error(request_id, exc.code, exc.message, exc.data))
        except Exception:
            log.exception("unhandled error for %s", msg.get("method"))
            return JSONResponse(make_error(request_id, INTERNAL_ERROR, "Internal error"))

        if msg_type == "notification":
            return Response(status_code=202)
        return JSONResponse(make_response(request_id, result or {}))

    @app.api_route("/mcp", methods=["GET", "DELETE"])
    def mcp_unsupported() -> Response:
        # No server-initiated stream and no sessions to terminate.
        return JSONResponse(
            make_error(None, METHOD_NOT_ALLOWED, "Method not allowed"),
            status_code=405,
            headers={"Allow": "POST"},
        )

    @app.get("/.well-known/oauth-protected-resource")
    def protected_resource_metadata(request: Request) -> JSONResponse:
        origin = f"{request.url.scheme}://{request.url.netloc}"
        return JSONResponse(
            {"resource": origin, "authorization_servers": []},
            headers=_METADATA_CORS,
        )

    @app.options("/.well-known/oauth-protected-resource")
    def protected_resource_preflight() -> Response:
        return Response(
            status_code=204,
            headers={
                **_METADATA_CORS,
                "Access-Control-Allow-Headers": "Authorization, Content-Type",
                "Access-Control-Max-Age": "86400",
            },
        )

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "tools": registry.names(),
            "domain_tools": settings.server.expose_domain_tools,
            "gateway_configured": bool(settings.gateway.base_url and settings.gateway.api_key),
            "embedding_configured": bool(
                settings.embedding.api_key or settings.embedding.provider == "hashing"
            ),
            "database_configured": settings.database.configured,
        }

    @app.get("/traces")
    def traces(limit: int = 20) -> dict[str, Any]:
        records = [asdict(record) for record in trace_store.list_recent(limit=limit)]
        return {"items": records}

    @app.get("/metrics")
    def metrics() -> dict[str, Any]:
        return trace_store.summary()

    return app
