"""Resolve an opaque result id back into full record detail."""

from __future__ import annotations

from typing import Any, assert_never

from pydantic import Field

from influence_mcp.backends.gateway import RpcCallSpec, gather_calls
from influence_mcp.errors import DecodingError, InfluenceMCPError, UnknownResultKind
from influence_mcp.obs.logger import get_logger
from influence_mcp.search.hits import BillHit
from influence_mcp.search.result_id import decode_result_id
from influence_mcp.tools.context import ToolContext
from influence_mcp.tools.schema import ToolArgs
from influence_mcp.types import ResultKind

log = get_logger("fetch")


class FetchArgs(ToolArgs):
    id: str = Field(min_length=1, description="An id returned by the search tool.")


class ResultFetcher:
    def __init__(self, context: ToolContext) -> None:
        self.context = context

    async def fetch(self, result_id: str) -> dict[str, Any]:
        decoded = decode_result_id(result_id)
        try:
            kind = ResultKind(decoded.kind)
        except ValueError:
            raise UnknownResultKind(f"Unknown result kind: {decoded.kind}") from None

        payload = decoded.payload
        if not isinstance(payload, dict) or not isinstance(payload.get("record"), dict):
            raise DecodingError("Invalid result id: payload carries no record")
        record: dict[str, Any] = payload["record"]

        response: dict[str, Any] = {
            "id": result_id,
            "type": kind.value,
            "source": payload.get("source"),
            "query": payload.get("query"),
            "filters": payload.get("filters", {}),
            "record": record,
        }

        match kind:
            case ResultKind.DONOR | ResultKind.RTS:
                # Search-time rows for these kinds are already complete.
                pass
            case ResultKind.BILL:
                detail, errors = await self._bill_detail(record)
                response["detail"] = detail
                if errors:
                    response["errors"] = errors
            case _:
                assert_never(kind)

        return response

    async def _bill_detail(self, record: dict[str, Any]) -> tuple[dict[str, Any], list[str]]:
        bill_id = BillHit.from_row(record).bill_id
        if bill_id is None:
            raise DecodingError("Invalid result id: bill record has no bill_id")

        params = {"p_bill_id": bill_id}
        text, votes, rollup = await gather_calls(
            self.context.gateway,
            [
                RpcCallSpec("get_bill_text", params),
                RpcCallSpec("get_bill_votes", params),
                RpcCallSpec("get_bill_vote_rollup", params),
            ],
        )
        if isinstance(text, BaseException):
            raise text

        detail: dict[str, Any] = {"text": text}
        errors: list[str] = []
        for key, value in (("votes", votes), ("vote_rollup", rollup)):
            if isinstance(value, BaseException):
                if not isinstance(value, Exception):
                    raise value
                log.warning("bill %s %s lookup failed: %s", bill_id, key, value)
                message = str(value) if isinstance(value, InfluenceMCPError) else "internal error"
                errors.append(f"{key}: {message}")
            else:
                detail[key] = value
        return detail, errors
