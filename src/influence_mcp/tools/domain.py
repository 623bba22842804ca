"""Direct RPC- and table-backed domain tools.

These are registered only when ``MCP_EXPOSE_DOMAIN_TOOLS`` is enabled; the
default deployment exposes just `search` and `fetch`.

Tools:
- `sql`: ad-hoc SQL over the shared Postgres pool (read-only by default).
- RPC passthroughs: session windows, donor/recipient resolution, donor
  totals, vector-ranked bills and stakeholder positions, bill text and votes.
- Table reads: sessions, bill sponsors and documents, entity details,
  transaction groups.
- `resolve_legislator_by_name`: best-effort lookup that reports failures as
  plain error text instead of raising.
"""

from __future__ import annotations

import asyncio
import re
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, Field

from influence_mcp.errors import InfluenceMCPError
from influence_mcp.obs.logger import get_logger
from influence_mcp.search.aggregator import rows_of
from influence_mcp.tools.context import ToolContext
from influence_mcp.tools.registry import ToolRegistry, ToolSpec
from influence_mcp.tools.schema import NoArgs, QueryVector, ToolArgs
from influence_mcp.types import ToolResult

log = get_logger("tools.domain")

_READ_ONLY_SQL = re.compile(r"^\s*(select|with)\b", flags=re.IGNORECASE)

_SPONSOR_COLUMNS = "*,legislators!bill_sponsors_legislator_id_fkey(legislator_id,full_name,party,body,district)"
_ENTITY_COLUMNS = "*,cf_entity_records!cf_entities_entity_id_fkey(*)"


class SqlInput(ToolArgs):
    query: str = Field(min_length=1, description="SQL statement. Use SELECT unless writes are explicitly allowed.")
    params: list[Any] | None = Field(default=None, description="Optional positional parameters for $1, $2, ...")
    allow_write: bool = Field(
        default=False,
        validation_alias=AliasChoices("allow_write", "allowWrite"),
        description="Set true only if writes are permitted by env (SQL_TOOL_ALLOW_WRITE).",
    )


class SessionWindowInput(ToolArgs):
    p_session_id: int
    p_days_before: int = Field(ge=0)
    p_days_after: int = Field(ge=0)


class FindDonorsInput(ToolArgs):
    p_name: str = Field(min_length=1)
    p_limit: int | None = Field(default=None, ge=1, le=500)


class LegislatorInput(ToolArgs):
    p_legislator_id: int


class DonorTotalsInput(ToolArgs):
    query_text: str | None = Field(default=None, description="Natural language theme to rank by similarity.")
    p_query_vec: QueryVector | None = None
    p_recipient_entity_ids: list[int] | None = None
    p_session_id: int | None = None
    p_days_before: int = Field(default=0, ge=0)
    p_days_after: int = Field(default=0, ge=0)
    p_from: str | None = Field(default=None, description="YYYY-MM-DD, used if session_id is null")
    p_to: str | None = Field(default=None, description="YYYY-MM-DD, exclusive, used if session_id is null")
    p_group_numbers: list[int] | None = None
    p_min_amount: float = 0
    p_limit: int = Field(default=200, ge=1, le=1000)


class LegislatorBillsInput(ToolArgs):
    query_text: str | None = Field(default=None, description="Natural language theme to embed.")
    p_query_vec: QueryVector | None = None
    p_legislator_id: int
    p_session_id: int
    p_mode: Literal["summary", "full"] = "summary"
    p_limit: int = Field(default=50, ge=1, le=200)


class BillInput(ToolArgs):
    p_bill_id: int


class RtsSearchInput(ToolArgs):
    query_text: str | None = None
    p_query_vec: QueryVector | None = None
    p_bill_id: int | None = None
    p_session_id: int | None = None
    p_limit: int = Field(default=50, ge=1, le=200)


class ResolveLegislatorInput(ToolArgs):
    name: str = Field(min_length=1, description="Legislator name to search for.")
    limit: int = Field(default=10, ge=1, le=50)


class SessionInfoInput(ToolArgs):
    session_id: int | None = Field(default=None, description="Specific session id; omit to list recent sessions.")
    limit: int = Field(default=20, ge=1, le=200)


class EntityInput(ToolArgs):
    entity_id: int


def register_domain_tools(registry: ToolRegistry, context: ToolContext) -> None:
    gateway = context.gateway

    async def _sql(input_data: SqlInput) -> dict[str, Any]:
        readonly = bool(_READ_ONLY_SQL.match(input_data.query))
        if not readonly and not (input_data.allow_write and context.settings.database.allow_write):
            raise InfluenceMCPError(
                "SQL tool is read-only. Only SELECT is allowed unless "
                "SQL_TOOL_ALLOW_WRITE=true and allowWrite=true."
            )
        if not readonly:
            log.warning("sql tool executing a write statement")
        rows = await context.database.fetch(input_data.query, input_data.params, readonly=readonly)
        columns = list(rows[0].keys()) if rows else []
        return {"rowCount": len(rows), "columns": columns, "rows": rows}

    def _passthrough(function_name: str):
        async def _handler(input_data: BaseModel) -> Any:
            return await gateway.call(function_name, input_data.model_dump(exclude_none=True))

        return _handler

    async def _donor_totals(input_data: DonorTotalsInput) -> Any:
        vector = await context.query_vector(
            input_data.query_text, input_data.p_query_vec, required=False
        )
        payload = input_data.model_dump(exclude={"query_text"})
        payload["p_query_vec"] = vector
        return await gateway.call("search_donor_totals_window", payload)

    async def _legislator_bills(input_data: LegislatorBillsInput) -> Any:
        vector = await context.query_vector(
            input_data.query_text, input_data.p_query_vec, required=True
        )
        payload = input_data.model_dump(exclude={"query_text"})
        payload["p_query_vec"] = vector
        return await gateway.call("search_bills_for_legislator", payload)

    async def _rts_search(input_data: RtsSearchInput) -> Any:
        vector = await context.query_vector(
            input_data.query_text, input_data.p_query_vec, required=True
        )
        payload = input_data.model_dump(exclude={"query_text"})
        payload["p_query_vec"] = vector
        return await gateway.call("search_rts_by_vector", payload)

    async def _resolve_legislator(input_data: ResolveLegislatorInput) -> ToolResult | list[dict[str, Any]]:
        try:
            legislators = rows_of(
                await gateway.select(
                    "legislators",
                    columns="legislator_id,full_name,chamber",
                    filters={"full_name": f"ilike.*{input_data.name.strip()}*"},
                    limit=input_data.limit,
                )
            )
        except InfluenceMCPError as exc:
            return ToolResult.text(f"Error searching legislators: {exc}")

        if not legislators:
            return ToolResult.text("No legislators found matching that name")

        entity_lookups = await asyncio.gather(
            *(
                gateway.call(
                    "recipient_entity_ids_for_legislator",
                    {"p_legislator_id": row.get("legislator_id")},
                )
                for row in legislators
            ),
            return_exceptions=True,
        )

        results: list[dict[str, Any]] = []
        for row, entities in zip(legislators, entity_lookups, strict=True):
            if isinstance(entities, BaseException):
                if not isinstance(entities, Exception):
                    raise entities
                log.info("entity ids unavailable for legislator %s: %s", row.get("legislator_id"), entities)
                entity_ids: list[Any] = []
            else:
                entity_ids = [
                    item.get("entity_id") if isinstance(item, dict) else item
                    for item in (entities or [])
                ]
            results.append(
                {
                    "legislator_id": row.get("legislator_id"),
                    "full_name": row.get("full_name"),
                    "chamber": row.get("chamber"),
                    "entity_ids": entity_ids,
                }
            )
        return results

    async def _session_info(input_data: SessionInfoInput) -> Any:
        if input_data.session_id is not None:
            return await gateway.select(
                "sessions", filters={"session_id": f"eq.{input_data.session_id}"}
            )
        return await gateway.select("sessions", order="session_id.desc", limit=input_data.limit)

    async def _bill_sponsors(input_data: BillInput) -> Any:
        return await gateway.select(
            "bill_sponsors",
            columns=_SPONSOR_COLUMNS,
            filters={"bill_id": f"eq.{input_data.p_bill_id}"},
            order="display_order.asc",
        )

    async def _bill_documents(input_data: BillInput) -> Any:
        return await gateway.select(
            "bill_documents",
            filters={"bill_id": f"eq.{input_data.p_bill_id}"},
            order="created_at.desc",
        )

    async def _transaction_groups(input_data: NoArgs) -> Any:
        return await gateway.select("cf_transaction_groups", order="group_number.asc")

    async def _entity_details(input_data: EntityInput) -> dict[str, Any]:
        rows = rows_of(
            await gateway.select(
                "cf_entities",
                columns=_ENTITY_COLUMNS,
                filters={"entity_id": f"eq.{input_data.entity_id}"},
                limit=1,
            )
        )
        if not rows:
            raise InfluenceMCPError(f"Entity {input_data.entity_id} not found")
        return rows[0]

    specs = [
        ToolSpec(
            name="sql",
            description=(
                "Execute a SQL query against the Postgres database. Default is read-only "
                "(SELECT/WITH). Use for ad-hoc lookups strictly when other tools don't fit."
            ),
            args_schema=SqlInput,
            handler=_sql,
        ),
        ToolSpec(
            name="session_window",
            description="Compute a date window around a legislative session.",
            args_schema=SessionWindowInput,
            handler=_passthrough("session_window"),
        ),
        ToolSpec(
            name="find_donors_by_name",
            description="Fuzzy resolve canonical donors by name.",
            args_schema=FindDonorsInput,
            handler=_passthrough("find_donors_by_name"),
        ),
        ToolSpec(
            name="recipient_entity_ids_for_legislator",
            description="Map a legislator to recipient committee/entity ids.",
            args_schema=LegislatorInput,
            handler=_passthrough("recipient_entity_ids_for_legislator"),
        ),
        ToolSpec(
            name="search_donor_totals_window",
            description=(
                "Donor totals/themes with rich filters. Provide query_text for automatic "
                "embedding, or pass p_query_vec."
            ),
            args_schema=DonorTotalsInput,
            handler=_donor_totals,
        ),
        ToolSpec(
            name="search_bills_for_legislator",
            description=(
                "Find bills a legislator voted on, ranked by vectors. Provide query_text for "
                "automatic embedding or pass p_query_vec."
            ),
            args_schema=LegislatorBillsInput,
            handler=_legislator_bills,
        ),
        ToolSpec(
            name="get_bill_text",
            description="Fetch a bill's stored summary/title and full text snapshot.",
            args_schema=BillInput,
            handler=_passthrough("get_bill_text"),
        ),
        ToolSpec(
            name="get_bill_votes",
            description="Detailed roll-call rows for a bill.",
            args_schema=BillInput,
            handler=_passthrough("get_bill_votes"),
        ),
        ToolSpec(
            name="get_bill_vote_rollup",
            description="Quick tally of vote positions for a bill.",
            args_schema=BillInput,
            handler=_passthrough("get_bill_vote_rollup"),
        ),
        ToolSpec(
            name="search_rts_by_vector",
            description=(
                "Vector search stakeholder positions. Provide query_text for automatic "
                "embedding or pass p_query_vec."
            ),
            args_schema=RtsSearchInput,
            handler=_rts_search,
        ),
        ToolSpec(
            name="resolve_legislator_by_name",
            description=(
                "Resolve a legislator name to legislator_id and recipient entity_ids. "
                "Best effort: lookup failures are reported as plain error text."
            ),
            args_schema=ResolveLegislatorInput,
            handler=_resolve_legislator,
        ),
        ToolSpec(
            name="get_session_info",
            description="Legislative session details; lists the most recent sessions when no id is given.",
            args_schema=SessionInfoInput,
            handler=_session_info,
        ),
        ToolSpec(
            name="get_bill_sponsors",
            description="Sponsors of a bill in display order, with legislator party, body and district.",
            args_schema=BillInput,
            handler=_bill_sponsors,
        ),
        ToolSpec(
            name="get_bill_documents",
            description="Documents attached to a bill and their processing status, newest first.",
            args_schema=BillInput,
            handler=_bill_documents,
        ),
        ToolSpec(
            name="get_entity_details",
            description="A campaign finance entity with its entity records.",
            args_schema=EntityInput,
            handler=_entity_details,
        ),
        ToolSpec(
            name="get_transaction_groups",
            description="Transaction group categories usable as p_group_numbers filters.",
            args_schema=NoArgs,
            handler=_transaction_groups,
        ),
    ]
    for spec in specs:
        registry.register(spec)
