"""Shared resources handed to every tool handler."""

from __future__ import annotations

from dataclasses import dataclass

from influence_mcp.backends.database import DatabasePool
from influence_mcp.backends.embeddings import Embedder
from influence_mcp.backends.gateway import RpcGatewayClient
from influence_mcp.config import Settings
from influence_mcp.errors import VectorRequired


@dataclass(slots=True)
class ToolContext:
    settings: Settings
    gateway: RpcGatewayClient
    embedder: Embedder
    database: DatabasePool

    async def query_vector(
        self,
        query_text: str | None,
        vector: list[float] | None,
        *,
        required: bool,
    ) -> list[float] | None:
        """Return exactly one vector: the supplied one, or one embedded from text."""
        if vector is not None:
            return list(vector)
        if query_text and query_text.strip():
            return await self.embedder.embed(query_text)
        if required:
            raise VectorRequired("Either query_text or p_query_vec is required")
        return None

    async def aclose(self) -> None:
        await self.gateway.aclose()
        aclose = getattr(self.embedder, "aclose", None)
        if aclose is not None:
            await aclose()
        await self.database.close()
