import json

import httpx
import pytest

from influence_mcp.backends.gateway import RpcCallSpec, RpcGatewayClient, gather_calls
from influence_mcp.config import GatewayConfig
from influence_mcp.errors import ConfigurationMissing, UpstreamCallFailure

CONFIG = GatewayConfig(base_url="https://db.example.test/", api_key="sk-secret")


def _client(handler, config: GatewayConfig = CONFIG) -> RpcGatewayClient:
    return RpcGatewayClient(config, transport=httpx.MockTransport(handler))


async def test_call_posts_parameters_to_named_function() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"from_date": "2024-01-01"}])

    gateway = _client(handler)
    result = await gateway.call("session_window", {"p_session_id": 57, "p_days_before": 10})
    await gateway.aclose()

    assert result == [{"from_date": "2024-01-01"}]
    (request,) = seen
    assert request.method == "POST"
    assert str(request.url) == "https://db.example.test/rest/v1/rpc/session_window"
    assert request.headers["apikey"] == "sk-secret"
    assert request.headers["authorization"] == "Bearer sk-secret"
    assert request.headers["prefer"] == "count=exact"
    assert json.loads(request.content) == {"p_session_id": 57, "p_days_before": 10}


async def test_empty_body_decodes_to_none() -> None:
    gateway = _client(lambda request: httpx.Response(204))
    assert await gateway.call("noop") is None


async def test_select_reads_table_with_postgrest_filters() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[{"legislator_id": 1, "full_name": "Jane Smith"}])

    gateway = _client(handler)
    rows = await gateway.select(
        "legislators",
        columns="legislator_id,full_name,chamber",
        filters={"full_name": "ilike.*Smith*"},
        limit=10,
    )

    assert rows == [{"legislator_id": 1, "full_name": "Jane Smith"}]
    (request,) = seen
    assert request.method == "GET"
    assert request.url.path == "/rest/v1/legislators"
    assert request.url.params["select"] == "legislator_id,full_name,chamber"
    assert request.url.params["full_name"] == "ilike.*Smith*"
    assert request.url.params["limit"] == "10"
    assert "order" not in request.url.params
    assert request.headers["apikey"] == "sk-secret"
    assert request.content == b""


async def test_select_failure_names_the_table() -> None:
    gateway = _client(lambda request: httpx.Response(404, text="relation does not exist"))

    with pytest.raises(UpstreamCallFailure, match="Table bill_documents failed: 404 Not Found"):
        await gateway.select("bill_documents", order="created_at.desc")


async def test_success_with_non_json_body_is_an_upstream_failure() -> None:
    gateway = _client(lambda request: httpx.Response(200, text="<html>gateway timeout</html>"))

    with pytest.raises(UpstreamCallFailure, match="Invalid JSON response") as exc_info:
        await gateway.call("get_bill_text", {"p_bill_id": 1})
    assert exc_info.value.status == 200


async def test_error_status_carries_status_and_truncated_redacted_body() -> None:
    body = "permission denied for key sk-secret " + "x" * 1000

    gateway = _client(lambda request: httpx.Response(403, text=body))

    with pytest.raises(UpstreamCallFailure) as exc_info:
        await gateway.call("get_bill_text", {"p_bill_id": 1})

    exc = exc_info.value
    assert exc.status == 403
    assert exc.status_text == "Forbidden"
    assert "sk-secret" not in str(exc)
    assert exc.body.endswith("...")
    assert len(exc.body) <= 503
    assert str(exc).startswith("RPC get_bill_text failed: 403 Forbidden")


async def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    gateway = _client(handler)

    with pytest.raises(UpstreamCallFailure, match="RPC session_window failed: ConnectError"):
        await gateway.call("session_window", {})


async def test_missing_configuration_fails_without_network_call() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json=[])

    gateway = _client(handler, GatewayConfig(base_url="https://db.example.test"))

    with pytest.raises(ConfigurationMissing):
        await gateway.call("session_window", {})
    assert seen == []


async def test_gather_calls_returns_results_and_failures_in_order() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.endswith("get_bill_votes"):
            return httpx.Response(500, text="boom")
        return httpx.Response(200, json={"fn": request.url.path.rsplit("/", 1)[-1]})

    gateway = _client(handler)
    params = {"p_bill_id": 3}
    text, votes, rollup = await gather_calls(
        gateway,
        [
            RpcCallSpec("get_bill_text", params),
            RpcCallSpec("get_bill_votes", params),
            RpcCallSpec("get_bill_vote_rollup", params),
        ],
    )

    assert text == {"fn": "get_bill_text"}
    assert isinstance(votes, UpstreamCallFailure)
    assert votes.status == 500
    assert rollup == {"fn": "get_bill_vote_rollup"}


def test_call_spec_parameters_are_read_only() -> None:
    spec = RpcCallSpec("f", {"a": 1})
    with pytest.raises(TypeError):
        spec.parameters["a"] = 2  # type: ignore[index]
