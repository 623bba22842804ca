"""Composite search across donors, bills and stakeholder positions."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Literal, assert_never

from pydantic import AliasChoices, Field

from influence_mcp.errors import FilterRequired, InfluenceMCPError, VectorRequired
from influence_mcp.obs.logger import get_logger
from influence_mcp.search.hits import BillHit, DonorHit, RtsHit
from influence_mcp.search.result_id import encode_result_id
from influence_mcp.tools.context import ToolContext
from influence_mcp.tools.schema import ToolArgs
from influence_mcp.types import ResultKind, SearchOutcome, SearchResult

log = get_logger("search")

# Kinds whose backing RPC cannot rank without a query vector.
VECTOR_REQUIRED_KINDS = frozenset({ResultKind.BILL, ResultKind.RTS})


class SearchFilters(ToolArgs):
    types: list[Literal["donor", "bill", "rts"]] | None = Field(
        default=None, description="Kinds to search. Defaults to all kinds."
    )
    session_id: int | None = Field(default=None, description="Legislative session id.")
    legislator_id: int | None = Field(
        default=None, description="Legislator whose votes rank bills; bills need this and session_id."
    )
    recipient_entity_ids: list[int] | None = Field(
        default=None, description="Recipient committee/candidate entity ids for donors."
    )
    bill_id: int | None = Field(default=None, description="Restrict positions to one bill.")
    days_before: int = Field(default=0, ge=0)
    days_after: int = Field(default=0, ge=0)
    from_date: str | None = Field(default=None, description="YYYY-MM-DD, used without session_id.")
    to_date: str | None = Field(default=None, description="YYYY-MM-DD, exclusive.")
    group_numbers: list[int] | None = None
    min_amount: float = Field(default=0, ge=0)
    mode: Literal["summary", "full"] = "summary"
    limit: int = Field(default=20, ge=1, le=200, description="Maximum hits per kind.")


class SearchArgs(ToolArgs):
    query_text: str | None = Field(
        default=None,
        validation_alias=AliasChoices("query_text", "queryText", "query"),
        description="Natural language query; embedded once and shared by every kind.",
    )
    filters: SearchFilters | None = None


class CompositeSearch:
    """Fans one query out to every requested kind and merges the hits.

    Partial failure is the normal outcome: each kind succeeds or fails on its
    own and failures are reported in ``errors`` next to the surviving hits.
    """

    def __init__(self, context: ToolContext) -> None:
        self.context = context
        self._runners: dict[
            ResultKind, Callable[[list[float] | None, SearchFilters], Awaitable[tuple[str, list[dict[str, Any]]]]]
        ] = {
            ResultKind.DONOR: self._search_donors,
            ResultKind.BILL: self._search_bills,
            ResultKind.RTS: self._search_rts,
        }

    async def search(self, query_text: str | None, filters: SearchFilters | None = None) -> SearchOutcome:
        filters = filters or SearchFilters()
        kinds = _requested_kinds(filters)
        has_query = bool(query_text and query_text.strip())
        outcome = SearchOutcome()

        vector: list[float] | None = None
        if has_query:
            try:
                vector = await self.context.embedder.embed(query_text or "")
            except Exception as exc:
                outcome.errors.append(f"embedding: {_message(exc)}")

        gathered = await asyncio.gather(
            *(self._search_kind(kind, vector, has_query, query_text, filters) for kind in kinds),
            return_exceptions=True,
        )
        for kind, result in zip(kinds, gathered, strict=True):
            if isinstance(result, Exception):
                outcome.errors.append(f"{kind.value}: {_message(result)}")
            elif isinstance(result, BaseException):
                raise result
            else:
                outcome.results.extend(result)

        log.info(
            "search kinds=%s results=%d errors=%d",
            [kind.value for kind in kinds],
            len(outcome.results),
            len(outcome.errors),
        )
        return outcome

    async def _search_kind(
        self,
        kind: ResultKind,
        vector: list[float] | None,
        has_query: bool,
        query_text: str | None,
        filters: SearchFilters,
    ) -> list[SearchResult]:
        if kind is ResultKind.BILL and (filters.legislator_id is None or filters.session_id is None):
            raise FilterRequired("requires legislator_id and session_id")
        if vector is None and kind in VECTOR_REQUIRED_KINDS:
            if not has_query:
                raise VectorRequired("skipped, requires query_text")
            # The embedding failure is already reported once for all kinds.
            return []

        source, rows = await self._runners[kind](vector, filters)
        context = {
            "query": query_text,
            "filters": filters.model_dump(mode="json", exclude_none=True),
            "source": source,
        }
        return [_project(kind, row, source, context) for row in rows]

    async def _search_donors(
        self, vector: list[float] | None, filters: SearchFilters
    ) -> tuple[str, list[dict[str, Any]]]:
        source = "search_donor_totals_window"
        data = await self.context.gateway.call(
            source,
            {
                "p_query_vec": vector,
                "p_recipient_entity_ids": filters.recipient_entity_ids,
                "p_session_id": filters.session_id,
                "p_days_before": filters.days_before,
                "p_days_after": filters.days_after,
                "p_from": filters.from_date,
                "p_to": filters.to_date,
                "p_group_numbers": filters.group_numbers,
                "p_min_amount": filters.min_amount,
                "p_limit": filters.limit,
            },
        )
        return source, rows_of(data)

    async def _search_bills(
        self, vector: list[float] | None, filters: SearchFilters
    ) -> tuple[str, list[dict[str, Any]]]:
        source = "search_bills_for_legislator"
        data = await self.context.gateway.call(
            source,
            {
                "p_query_vec": vector,
                "p_legislator_id": filters.legislator_id,
                "p_session_id": filters.session_id,
                "p_mode": filters.mode,
                "p_limit": filters.limit,
            },
        )
        return source, rows_of(data)

    async def _search_rts(
        self, vector: list[float] | None, filters: SearchFilters
    ) -> tuple[str, list[dict[str, Any]]]:
        source = "search_rts_by_vector"
        data = await self.context.gateway.call(
            source,
            {
                "p_query_vec": vector,
                "p_bill_id": filters.bill_id,
                "p_session_id": filters.session_id,
                "p_limit": filters.limit,
            },
        )
        return source, rows_of(data)


def rows_of(data: Any) -> list[dict[str, Any]]:
    """Normalize an RPC payload (array, single object or null) to a row list."""
    if data is None:
        return []
    if isinstance(data, dict):
        return [data]
    if isinstance(data, list):
        return [row for row in data if isinstance(row, dict)]
    raise InfluenceMCPError(f"Unexpected RPC payload of type {type(data).__name__}")


def _requested_kinds(filters: SearchFilters) -> list[ResultKind]:
    if not filters.types:
        return list(ResultKind)
    kinds: list[ResultKind] = []
    for value in filters.types:
        kind = ResultKind(value)
        if kind not in kinds:
            kinds.append(kind)
    return kinds


def _project(
    kind: ResultKind, row: dict[str, Any], source: str, context: dict[str, Any]
) -> SearchResult:
    match kind:
        case ResultKind.DONOR:
            hit = DonorHit.from_row(row)
            title, summary = hit.title, hit.summary
        case ResultKind.BILL:
            bill = BillHit.from_row(row)
            title, summary = bill.title, bill.summary
        case ResultKind.RTS:
            position = RtsHit.from_row(row)
            title, summary = position.title, position.summary
        case _:
            assert_never(kind)

    return SearchResult(
        id=encode_result_id(kind.value, {"record": row, **context}),
        type=kind,
        title=title,
        summary=summary,
        source=source,
    )


def _message(exc: BaseException) -> str:
    if isinstance(exc, InfluenceMCPError):
        return str(exc)
    log.error("search sub-call raised %s", exc.__class__.__name__, exc_info=exc)
    return f"internal error ({exc.__class__.__name__})"
