"""Assemble the registry for a deployment configuration."""

from __future__ import annotations

from typing import Any

from influence_mcp.search.aggregator import CompositeSearch, SearchArgs
from influence_mcp.search.fetch import FetchArgs, ResultFetcher
from influence_mcp.tools.context import ToolContext
from influence_mcp.tools.domain import register_domain_tools
from influence_mcp.tools.registry import ToolRegistry, ToolSpec

SEARCH_DESCRIPTION = (
    "Search donors, bills and Request-to-Speak stakeholder positions with one query. "
    "Returns lightweight hits {id, type, title, summary, source} plus an `errors` list "
    "for kinds that failed; pass an id to `fetch` for full detail. "
    "Bills and positions are ranked by the embedded query_text and are skipped without it; "
    "bills also need filters.legislator_id and filters.session_id."
)

FETCH_DESCRIPTION = (
    "Fetch full detail for one id returned by `search`. Bill ids also load the bill "
    "text, roll-call votes and vote rollup."
)


def register_search_tools(registry: ToolRegistry, context: ToolContext) -> None:
    """Register `search` and `fetch`, the default tool surface."""

    searcher = CompositeSearch(context)
    fetcher = ResultFetcher(context)

    async def _search(input_data: SearchArgs) -> dict[str, Any]:
        outcome = await searcher.search(input_data.query_text, input_data.filters)
        return outcome.to_dict()

    async def _fetch(input_data: FetchArgs) -> dict[str, Any]:
        return await fetcher.fetch(input_data.id)

    registry.register(
        ToolSpec(
            name="search",
            description=SEARCH_DESCRIPTION,
            args_schema=SearchArgs,
            handler=_search,
        )
    )
    registry.register(
        ToolSpec(
            name="fetch",
            description=FETCH_DESCRIPTION,
            args_schema=FetchArgs,
            handler=_fetch,
        )
    )


def build_registry(context: ToolContext) -> ToolRegistry:
    """Build the registry; domain tools are added only when the flag is set."""

    registry = ToolRegistry()
    register_search_tools(registry, context)
    if context.settings.server.expose_domain_tools:
        register_domain_tools(registry, context)
    return registry
