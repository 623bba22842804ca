import json
from unittest.mock import AsyncMock

import pytest

from conftest import FakeEmbedder, FakeGateway, make_context, make_settings
from influence_mcp.backends.embeddings import OpenAIEmbedder
from influence_mcp.config import DatabaseConfig, EmbeddingConfig, Settings
from influence_mcp.errors import DatabaseError, HandlerError, UpstreamCallFailure
from influence_mcp.tools.builtin import build_registry
from influence_mcp.tools.dispatcher import ToolDispatcher


def _dispatcher(gateway: FakeGateway, *, database=None, settings: Settings | None = None, embedder=None) -> ToolDispatcher:
    context = make_context(
        gateway,
        embedder or FakeEmbedder(),
        settings=settings or make_settings(expose_domain_tools=True),
        database=database,
    )
    return ToolDispatcher(build_registry(context), timeout_seconds=5.0)


def _payload(result) -> object:
    return json.loads(result.content[0].text)


async def test_passthrough_forwards_validated_arguments() -> None:
    gateway = FakeGateway({"session_window": [{"from_date": "2024-01-01", "to_date": "2024-06-30"}]})
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke(
        "session_window", {"p_session_id": 57, "p_days_before": 100, "p_days_after": 100}
    )

    assert _payload(result) == [{"from_date": "2024-01-01", "to_date": "2024-06-30"}]
    assert gateway.calls == [
        ("session_window", {"p_session_id": 57, "p_days_before": 100, "p_days_after": 100})
    ]


async def test_optional_limit_is_omitted_when_not_given() -> None:
    gateway = FakeGateway({"find_donors_by_name": []})
    dispatcher = _dispatcher(gateway)

    await dispatcher.invoke("find_donors_by_name", {"p_name": "Smith"})

    assert gateway.called("find_donors_by_name") == [{"p_name": "Smith"}]


async def test_donor_totals_embeds_query_text() -> None:
    gateway = FakeGateway({"search_donor_totals_window": []})
    embedder = FakeEmbedder()
    dispatcher = _dispatcher(gateway, embedder=embedder)

    await dispatcher.invoke(
        "search_donor_totals_window", {"query_text": "charter schools", "p_session_id": 57}
    )

    (params,) = gateway.called("search_donor_totals_window")
    assert embedder.texts == ["charter schools"]
    assert "query_text" not in params
    assert len(params["p_query_vec"]) == 1536
    assert params["p_limit"] == 200


async def test_donor_totals_runs_without_any_vector() -> None:
    gateway = FakeGateway({"search_donor_totals_window": []})
    dispatcher = _dispatcher(gateway)

    await dispatcher.invoke("search_donor_totals_window", {"p_recipient_entity_ids": [1, 2]})

    (params,) = gateway.called("search_donor_totals_window")
    assert params["p_query_vec"] is None
    assert params["p_recipient_entity_ids"] == [1, 2]


async def test_supplied_vector_is_used_without_embedding() -> None:
    gateway = FakeGateway({"search_rts_by_vector": []})
    embedder = FakeEmbedder()
    dispatcher = _dispatcher(gateway, embedder=embedder)

    await dispatcher.invoke(
        "search_rts_by_vector", {"query_text": "ignored", "p_query_vec": [0.2] * 1536}
    )

    assert embedder.texts == []
    assert gateway.called("search_rts_by_vector")[0]["p_query_vec"] == [0.2] * 1536


@pytest.mark.parametrize(
    ("tool", "args"),
    [
        ("search_bills_for_legislator", {"p_legislator_id": 1, "p_session_id": 57}),
        ("search_rts_by_vector", {"p_bill_id": 3}),
    ],
)
async def test_vector_tools_require_text_or_vector(tool: str, args: dict) -> None:
    gateway = FakeGateway({})
    dispatcher = _dispatcher(gateway)

    with pytest.raises(HandlerError, match="Either query_text or p_query_vec is required"):
        await dispatcher.invoke(tool, args)
    assert gateway.calls == []


async def test_embedding_without_key_reports_configuration() -> None:
    gateway = FakeGateway({})
    dispatcher = _dispatcher(gateway, embedder=OpenAIEmbedder(EmbeddingConfig()))

    with pytest.raises(HandlerError, match="OPENAI_API_KEY not set"):
        await dispatcher.invoke(
            "search_bills_for_legislator",
            {"query_text": "water", "p_legislator_id": 1, "p_session_id": 57},
        )


async def test_upstream_failure_becomes_handler_error() -> None:
    gateway = FakeGateway(
        {"get_bill_text": UpstreamCallFailure("RPC get_bill_text", status=404, status_text="Not Found")}
    )
    dispatcher = _dispatcher(gateway)

    with pytest.raises(HandlerError, match="RPC get_bill_text failed: 404 Not Found"):
        await dispatcher.invoke("get_bill_text", {"p_bill_id": 1})


async def test_sql_select_runs_read_only() -> None:
    database = AsyncMock()
    database.fetch.return_value = [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}]
    dispatcher = _dispatcher(FakeGateway({}), database=database)

    result = await dispatcher.invoke("sql", {"query": "  WITH x AS (select 1) select * from x"})

    assert _payload(result) == {
        "rowCount": 2,
        "columns": ["id", "name"],
        "rows": [{"id": 1, "name": "a"}, {"id": 2, "name": "b"}],
    }
    database.fetch.assert_awaited_once_with(
        "  WITH x AS (select 1) select * from x", None, readonly=True
    )


async def test_sql_write_is_refused_without_both_switches() -> None:
    database = AsyncMock()
    dispatcher = _dispatcher(FakeGateway({}), database=database)

    with pytest.raises(HandlerError, match="SQL tool is read-only"):
        await dispatcher.invoke("sql", {"query": "delete from bills", "allowWrite": True})
    database.fetch.assert_not_awaited()


async def test_sql_write_runs_when_enabled() -> None:
    database = AsyncMock()
    database.fetch.return_value = [{"id": 5}]
    settings = make_settings(expose_domain_tools=True)
    settings = settings.model_copy(update={"database": DatabaseConfig(allow_write=True)})
    dispatcher = _dispatcher(FakeGateway({}), database=database, settings=settings)

    result = await dispatcher.invoke(
        "sql", {"query": "delete from bills where id = 5 returning id", "allow_write": True}
    )

    assert _payload(result) == {"rowCount": 1, "columns": ["id"], "rows": [{"id": 5}]}
    database.fetch.assert_awaited_once_with(
        "delete from bills where id = 5 returning id", None, readonly=False
    )


async def test_sql_write_without_returning_reports_no_rows() -> None:
    database = AsyncMock()
    database.fetch.return_value = []
    settings = make_settings(expose_domain_tools=True)
    settings = settings.model_copy(update={"database": DatabaseConfig(allow_write=True)})
    dispatcher = _dispatcher(FakeGateway({}), database=database, settings=settings)

    result = await dispatcher.invoke("sql", {"query": "update bills set x = 1", "allowWrite": True})

    assert _payload(result) == {"rowCount": 0, "columns": [], "rows": []}


async def test_sql_errors_carry_database_message() -> None:
    database = AsyncMock()
    database.fetch.side_effect = DatabaseError('SQL error: relation "nope" does not exist')
    dispatcher = _dispatcher(FakeGateway({}), database=database)

    with pytest.raises(HandlerError, match='relation "nope" does not exist'):
        await dispatcher.invoke("sql", {"query": "select * from nope"})


async def test_sql_reports_unreachable_database() -> None:
    database = AsyncMock()
    database.fetch.side_effect = DatabaseError("Database unavailable: ConnectionRefusedError")
    dispatcher = _dispatcher(FakeGateway({}), database=database)

    with pytest.raises(HandlerError) as exc_info:
        await dispatcher.invoke("sql", {"query": "select 1"})
    assert str(exc_info.value) == "Database unavailable: ConnectionRefusedError"


async def test_resolve_legislator_attaches_entity_ids() -> None:
    def _entities(params: dict) -> list[dict]:
        if params["p_legislator_id"] == 2:
            raise UpstreamCallFailure("RPC recipient_entity_ids_for_legislator", status=500)
        return [{"entity_id": 100}, {"entity_id": 101}]

    gateway = FakeGateway(
        {
            "table:legislators": [
                {"legislator_id": 1, "full_name": "Jane Doe", "chamber": "House"},
                {"legislator_id": 2, "full_name": "Jane Roe", "chamber": "Senate"},
            ],
            "recipient_entity_ids_for_legislator": _entities,
        }
    )
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke("resolve_legislator_by_name", {"name": "Jane"})

    assert result.is_error is False
    assert _payload(result) == [
        {"legislator_id": 1, "full_name": "Jane Doe", "chamber": "House", "entity_ids": [100, 101]},
        {"legislator_id": 2, "full_name": "Jane Roe", "chamber": "Senate", "entity_ids": []},
    ]
    assert gateway.called("table:legislators") == [
        {
            "select": "legislator_id,full_name,chamber",
            "full_name": "ilike.*Jane*",
            "limit": 10,
        }
    ]


async def test_resolve_legislator_reports_failures_as_text() -> None:
    gateway = FakeGateway(
        {"table:legislators": UpstreamCallFailure("Table legislators", status=502)}
    )
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke("resolve_legislator_by_name", {"name": "Jane"})

    assert result.content[0].text == (
        "Error searching legislators: Table legislators failed: 502"
    )


async def test_resolve_legislator_with_no_match() -> None:
    dispatcher = _dispatcher(FakeGateway({"table:legislators": []}))

    result = await dispatcher.invoke("resolve_legislator_by_name", {"name": "Nobody"})

    assert result.content[0].text == "No legislators found matching that name"


async def test_session_info_lists_recent_sessions() -> None:
    gateway = FakeGateway({"table:sessions": [{"session_id": 127}, {"session_id": 126}]})
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke("get_session_info", {"limit": 2})

    assert _payload(result) == [{"session_id": 127}, {"session_id": 126}]
    assert gateway.called("table:sessions") == [
        {"select": "*", "order": "session_id.desc", "limit": 2}
    ]


async def test_session_info_filters_by_id() -> None:
    gateway = FakeGateway({"table:sessions": [{"session_id": 57}]})
    dispatcher = _dispatcher(gateway)

    await dispatcher.invoke("get_session_info", {"session_id": 57})

    assert gateway.called("table:sessions") == [{"select": "*", "session_id": "eq.57"}]


async def test_bill_sponsors_embed_legislator_fields_in_display_order() -> None:
    gateway = FakeGateway({"table:bill_sponsors": []})
    dispatcher = _dispatcher(gateway)

    await dispatcher.invoke("get_bill_sponsors", {"p_bill_id": 9001})

    (params,) = gateway.called("table:bill_sponsors")
    assert params["bill_id"] == "eq.9001"
    assert params["order"] == "display_order.asc"
    assert "legislators!bill_sponsors_legislator_id_fkey" in params["select"]


async def test_bill_documents_newest_first() -> None:
    gateway = FakeGateway({"table:bill_documents": [{"document_id": 3}]})
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke("get_bill_documents", {"p_bill_id": 9001})

    assert _payload(result) == [{"document_id": 3}]
    assert gateway.called("table:bill_documents") == [
        {"select": "*", "bill_id": "eq.9001", "order": "created_at.desc"}
    ]


async def test_transaction_groups_take_no_arguments() -> None:
    gateway = FakeGateway({"table:cf_transaction_groups": [{"group_number": 1}]})
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke("get_transaction_groups", None)

    assert _payload(result) == [{"group_number": 1}]
    assert gateway.called("table:cf_transaction_groups") == [
        {"select": "*", "order": "group_number.asc"}
    ]


async def test_entity_details_returns_single_row() -> None:
    entity = {"entity_id": 501, "cf_entity_records": [{"record_id": 1}]}
    gateway = FakeGateway({"table:cf_entities": [entity]})
    dispatcher = _dispatcher(gateway)

    result = await dispatcher.invoke("get_entity_details", {"entity_id": 501})

    assert _payload(result) == entity
    (params,) = gateway.called("table:cf_entities")
    assert params["entity_id"] == "eq.501"
    assert params["limit"] == 1


async def test_missing_entity_is_a_handler_error() -> None:
    dispatcher = _dispatcher(FakeGateway({"table:cf_entities": []}))

    with pytest.raises(HandlerError, match="Entity 42 not found"):
        await dispatcher.invoke("get_entity_details", {"entity_id": 42})
