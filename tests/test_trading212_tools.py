import asyncio
import json
from unittest.mock import Mock

import pytest
from prometheus_client import REGISTRY

from conftest import make_response
from stock_helper.adapters.trading212_client import Trading212Client
from stock_helper.core.errors import UpstreamError
from stock_helper.core.result import Success
from stock_helper.mcp.runtime import ResourceDispatcher, ToolDispatcher, split_uri
from stock_helper.mcp.tools import trading212


def _tools(client) -> ToolDispatcher:
    return ToolDispatcher("trading212", trading212.build_operations(client))


def _resources(client) -> ResourceDispatcher:
    return ResourceDispatcher("trading212", trading212.SCHEME, trading212.build_resources(client))


def _call(dispatcher, name, arguments=None):
    return asyncio.run(dispatcher.call_tool(name, arguments or {}))


def _read(dispatcher, uri):
    return asyncio.run(dispatcher.read(uri))


@pytest.fixture
def fake_client():
    return Mock(spec=Trading212Client)


class TestDiscovery:
    def test_tool_catalog(self, fake_client):
        tools = _tools(fake_client).list_tools()

        assert [t.name for t in tools] == [
            "get_portfolio",
            "get_account_cash",
            "get_orders_history",
            "get_account_metadata",
        ]
        history = tools[2]
        assert history.description == "Get historical orders with optional filtering by ticker and pagination"
        assert set(history.inputSchema["properties"]) == {"limit", "ticker", "cursor"}
        assert history.inputSchema["properties"]["ticker"]["type"] == "string"
        assert "required" not in history.inputSchema
        assert tools[0].inputSchema == {"type": "object", "properties": {}}

    def test_catalog_is_stable_and_needs_no_upstream(self, fake_client):
        dispatcher = _tools(fake_client)

        first = [t.model_dump_json() for t in dispatcher.list_tools()]
        second = [t.model_dump_json() for t in dispatcher.list_tools()]

        assert first == second
        assert fake_client.mock_calls == []

    def test_returned_catalog_cannot_mutate_registry(self, fake_client):
        dispatcher = _tools(fake_client)
        dispatcher.list_tools()[2].inputSchema["properties"].clear()

        assert dispatcher.list_tools()[2].inputSchema["properties"]

    def test_resource_catalog(self, fake_client):
        resources = _resources(fake_client).list_resources()

        assert [str(r.uri) for r in resources] == [
            "trading212://portfolio",
            "trading212://account/cash",
            "trading212://account/metadata",
            "trading212://orders/history",
        ]
        assert all(r.mimeType == "application/json" for r in resources)


class TestToolCalls:
    def test_success_is_pretty_json(self, fake_client):
        fake_client.get_portfolio.return_value = Success({"cash": 1.5, "positions": []})

        result = _call(_tools(fake_client), "get_portfolio")

        assert not result.isError
        assert len(result.content) == 1
        assert result.content[0].type == "text"
        assert result.content[0].text == json.dumps({"cash": 1.5, "positions": []}, indent=2)

    def test_upstream_401_is_reported_as_content(self, t212_client, http_session):
        http_session.get.return_value = make_response(401, {"message": "invalid token"}, reason="Unauthorized")

        result = _call(_tools(t212_client), "get_account_cash")

        assert not result.isError
        assert "Error fetching account cash: API Error: invalid token" in result.content[0].text

    def test_history_arguments_reach_upstream(self, t212_client, http_session):
        http_session.get.return_value = make_response(200, {"items": []})

        _call(_tools(t212_client), "get_orders_history", {"ticker": "AAPL", "limit": 5})

        _, kwargs = http_session.get.call_args
        assert kwargs["params"] == {"ticker": "AAPL", "limit": 5}

    def test_history_ignores_wrong_types_and_unknown_keys(self, fake_client):
        fake_client.get_orders_history.return_value = Success([])

        result = _call(
            _tools(fake_client),
            "get_orders_history",
            {"limit": "5", "ticker": 7, "cursor": True, "extra": "x"},
        )

        assert not result.isError
        fake_client.get_orders_history.assert_called_once_with(cursor=None, limit=None, ticker=None)

    def test_unknown_tool(self, fake_client):
        result = _call(_tools(fake_client), "sell_everything")

        assert result.isError
        assert json.loads(result.content[0].text) == {"error": "Unknown tool: sell_everything"}

    def test_unknown_tool_names_share_one_metric_label(self, fake_client):
        dispatcher = ToolDispatcher("trading212-labels", trading212.build_operations(fake_client))

        for i in range(3):
            _call(dispatcher, f"junk_{i}")

        sample = REGISTRY.get_sample_value
        labels = {"server": "trading212-labels", "outcome": "unknown"}
        assert sample("stock_helper_tool_calls_total", {**labels, "name": "unknown"}) == 3
        assert sample("stock_helper_tool_calls_total", {**labels, "name": "junk_0"}) is None

    def test_unexpected_exception_is_contained(self, fake_client):
        fake_client.get_account_metadata.side_effect = RuntimeError("kaboom")

        result = _call(_tools(fake_client), "get_account_metadata")

        assert result.isError
        assert "Error executing tool: kaboom" in result.content[0].text

    def test_non_object_arguments(self, fake_client):
        result = asyncio.run(_tools(fake_client).call_tool("get_orders_history", ["AAPL"]))

        assert result.isError
        assert "must be an object" in result.content[0].text

    def test_overlapping_calls(self, fake_client):
        fake_client.get_portfolio.return_value = Success({"total": 1})
        fake_client.get_account_cash.return_value = Success({"free": 2})
        dispatcher = _tools(fake_client)

        async def both():
            return await asyncio.gather(
                dispatcher.call_tool("get_portfolio", {}),
                dispatcher.call_tool("get_account_cash", {}),
            )

        portfolio, cash = asyncio.run(both())

        assert json.loads(portfolio.content[0].text) == {"total": 1}
        assert json.loads(cash.content[0].text) == {"free": 2}


class TestResources:
    def test_account_metadata(self, t212_client, http_session):
        http_session.get.return_value = make_response(200, {"currencyCode": "USD", "id": 42})

        text = _read(_resources(t212_client), "trading212://account/metadata")

        assert text == json.dumps({"currencyCode": "USD", "id": 42}, indent=2)

    def test_resource_and_tool_payloads_match(self, fake_client):
        fake_client.get_account_cash.return_value = Success({"free": 3})

        text = _read(_resources(fake_client), "trading212://account/cash")
        result = _call(_tools(fake_client), "get_account_cash")

        assert text == result.content[0].text

    def test_history_query_parameters_are_parsed(self, fake_client):
        fake_client.get_orders_history.return_value = Success([])

        _read(_resources(fake_client), "trading212://orders/history?ticker=AAPL&limit=5&cursor=10")

        fake_client.get_orders_history.assert_called_once_with(cursor=10, limit=5, ticker="AAPL")

    def test_bad_integer_query(self, fake_client):
        text = _read(_resources(fake_client), "trading212://orders/history?limit=lots")

        assert "limit must be an integer" in json.loads(text)["error"]
        fake_client.get_orders_history.assert_not_called()

    def test_unknown_path(self, fake_client):
        text = _read(_resources(fake_client), "trading212://account/secrets")

        assert json.loads(text) == {"error": "Unknown resource: trading212://account/secrets"}

    def test_unsupported_scheme(self, fake_client):
        text = _read(_resources(fake_client), "https://account/cash")

        assert json.loads(text) == {"error": "Unsupported URI scheme: https"}

    def test_upstream_error(self, fake_client):
        fake_client.get_portfolio.return_value = UpstreamError("API Error: invalid token", "401", 401)

        text = _read(_resources(fake_client), "trading212://portfolio")

        assert json.loads(text) == {"error": "API Error: invalid token"}


def test_split_uri():
    assert split_uri("trading212://orders/history?limit=5") == ("trading212", "orders/history", {"limit": "5"})
    assert split_uri("trading212://portfolio/") == ("trading212", "portfolio", {})
