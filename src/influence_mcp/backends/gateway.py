"""HTTP client for the PostgREST-style gateway: ``/rest/v1/rpc/<fn>`` calls and table reads."""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any

import httpx

from influence_mcp.config import GatewayConfig
from influence_mcp.errors import ConfigurationMissing, UpstreamCallFailure
from influence_mcp.obs.logger import get_logger

log = get_logger("gateway")


@dataclass(slots=True, frozen=True)
class RpcCallSpec:
    """One outbound RPC: function name plus its parameter mapping."""

    function_name: str
    parameters: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "parameters", MappingProxyType(dict(self.parameters)))


class RpcGatewayClient:
    """Invokes named database functions or reads tables and returns decoded JSON.

    The client never retries; a non-success response becomes an
    `UpstreamCallFailure` carrying status and a truncated body with any
    credential material redacted.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def call(self, function_name: str, parameters: Mapping[str, Any] | None = None) -> Any:
        return await self.call_spec(RpcCallSpec(function_name, parameters or {}))

    async def call_spec(self, spec: RpcCallSpec) -> Any:
        log.debug("rpc %s params=%s", spec.function_name, sorted(spec.parameters))
        return await self._request(
            "POST",
            f"rpc/{spec.function_name}",
            f"RPC {spec.function_name}",
            json=dict(spec.parameters),
        )

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: Mapping[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> Any:
        """Read rows from a table or view.

        ``filters`` maps a column to a PostgREST operator expression such as
        ``eq.5`` or ``ilike.*smith*``; ``order`` is ``column.asc|desc``.
        """
        params: dict[str, str] = {"select": columns}
        params.update(filters or {})
        if order is not None:
            params["order"] = order
        if limit is not None:
            params["limit"] = str(limit)
        log.debug("select %s filters=%s", table, sorted(filters or {}))
        return await self._request("GET", table, f"Table {table}", params=params)

    async def _request(
        self,
        method: str,
        path: str,
        label: str,
        *,
        json: Any = None,
        params: Mapping[str, str] | None = None,
    ) -> Any:
        base_url, api_key = self._require_config()
        headers = {
            "Content-Type": "application/json",
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Prefer": "count=exact",
        }

        try:
            response = await self._get_client().request(
                method, f"{base_url}/rest/v1/{path}", json=json, params=params, headers=headers
            )
        except httpx.HTTPError as exc:
            raise UpstreamCallFailure(
                label, body=self._redact(f"{exc.__class__.__name__}: {exc}")
            ) from None

        if not response.is_success:
            log.warning("%s failed with status %s", label, response.status_code)
            raise UpstreamCallFailure(
                label,
                status=response.status_code,
                status_text=response.reason_phrase,
                body=self._excerpt(response.text),
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            raise UpstreamCallFailure(
                label, status=response.status_code, body="Invalid JSON response"
            ) from None

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.timeout_seconds,
                transport=self._transport,
            )
        return self._client

    def _require_config(self) -> tuple[str, str]:
        if not self.config.base_url or not self.config.api_key:
            raise ConfigurationMissing(
                "RPC gateway configuration missing: set CAMPAIGN_FINANCE_SUPABASE_URL "
                "(or SUPABASE_SECONDARY_URL) and a service or anon key"
            )
        return self.config.base_url.rstrip("/"), self.config.api_key

    def _excerpt(self, text: str) -> str:
        limit = self.config.body_excerpt_chars
        excerpt = text if len(text) <= limit else text[:limit] + "..."
        return self._redact(excerpt)

    def _redact(self, text: str) -> str:
        if self.config.api_key:
            text = text.replace(self.config.api_key, "***")
        return text


async def gather_calls(
    gateway: RpcGatewayClient, specs: list[RpcCallSpec]
) -> list[Any | BaseException]:
    """Issue several RPCs concurrently, returning results or exceptions in order."""
    return await asyncio.gather(
        *(gateway.call_spec(spec) for spec in specs), return_exceptions=True
    )
