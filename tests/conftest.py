import asyncio
from typing import Any

import pytest

from influence_mcp.backends.database import DatabasePool
from influence_mcp.backends.embeddings import Embedder
from influence_mcp.config import DatabaseConfig, GatewayConfig, ServerConfig, Settings
from influence_mcp.errors import UpstreamCallFailure
from influence_mcp.tools.context import ToolContext

DIM = 1536


class FakeGateway:
    """Records RPC calls and table reads and answers from a per-name table.

    Table reads are keyed as ``table:<name>``. A value may be a payload, an
    exception instance (raised), or a callable taking the parameters.
    """

    def __init__(self, responses: dict[str, Any] | None = None, *, delay: float = 0.0) -> None:
        self.responses = dict(responses or {})
        self.delay = delay
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def call(self, function_name: str, parameters: dict[str, Any] | None = None) -> Any:
        params = dict(parameters or {})
        self.calls.append((function_name, params))
        if self.delay:
            await asyncio.sleep(self.delay)
        if function_name not in self.responses:
            raise UpstreamCallFailure(f"RPC {function_name}", status=404, status_text="Not Found")
        response = self.responses[function_name]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(params)
        return response

    async def call_spec(self, spec: Any) -> Any:
        return await self.call(spec.function_name, dict(spec.parameters))

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        filters: dict[str, str] | None = None,
        order: str | None = None,
        limit: int | None = None,
    ) -> Any:
        params: dict[str, Any] = {"select": columns, **(filters or {})}
        if order is not None:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        return await self.call(f"table:{table}", params)

    async def aclose(self) -> None:
        return None

    def called(self, function_name: str) -> list[dict[str, Any]]:
        return [params for name, params in self.calls if name == function_name]


class FakeEmbedder(Embedder):
    def __init__(self, *, fail: Exception | None = None) -> None:
        self.dimension = DIM
        self.fail = fail
        self.texts: list[str] = []

    async def embed(self, text: str) -> list[float]:
        self.texts.append(text)
        if self.fail is not None:
            raise self.fail
        return [0.01] * DIM


DONOR_ROWS = [
    {
        "transaction_entity_id": 501,
        "entity_name": "Arizona Education Association",
        "total_to_recipient": 4500.0,
        "donation_count": 3,
        "best_match": 0.82,
        "top_employer": "AEA",
        "top_occupation": "Teacher",
    },
    {
        "transaction_entity_id": 502,
        "entity_name": "School Choice PAC",
        "total_to_recipient": 1200.0,
        "donation_count": 1,
        "best_match": 0.77,
        "top_employer": None,
        "top_occupation": None,
    },
]

BILL_ROWS = [
    {
        "bill_id": 9001,
        "bill_number": "HB2001",
        "summary_title": "School funding formula",
        "score": 0.91,
        "vote": "Y",
        "vote_date": "2024-03-02",
    }
]

RTS_ROWS = [
    {
        "position_id": 77,
        "bill_id": 9001,
        "bill_number": "HB2001",
        "entity_name": "Teachers Union",
        "position": "For",
        "comment": "Supports increased classroom funding.",
        "score": 0.8,
    }
]


def default_responses() -> dict[str, Any]:
    return {
        "search_donor_totals_window": DONOR_ROWS,
        "search_bills_for_legislator": BILL_ROWS,
        "search_rts_by_vector": RTS_ROWS,
        "get_bill_text": {"bill_id": 9001, "bill_summary": "Funding", "bill_text": "Be it enacted"},
        "get_bill_votes": [{"legislator_id": 1, "vote": "Y"}],
        "get_bill_vote_rollup": [{"vote": "Y", "count": 31}],
    }


def make_settings(*, expose_domain_tools: bool = False, timeout: float = 5.0) -> Settings:
    return Settings(
        gateway=GatewayConfig(base_url="https://db.example.test", api_key="secret-key"),
        database=DatabaseConfig(),
        server=ServerConfig(expose_domain_tools=expose_domain_tools, tool_timeout_seconds=timeout),
    )


def make_context(
    gateway: FakeGateway | None = None,
    embedder: Embedder | None = None,
    *,
    settings: Settings | None = None,
    database: Any = None,
) -> ToolContext:
    settings = settings or make_settings()
    return ToolContext(
        settings=settings,
        gateway=gateway or FakeGateway(default_responses()),  # type: ignore[arg-type]
        embedder=embedder or FakeEmbedder(),
        database=database or DatabasePool(settings.database),
    )


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway(default_responses())


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def context(gateway: FakeGateway, embedder: FakeEmbedder) -> ToolContext:
    return make_context(gateway, embedder)
