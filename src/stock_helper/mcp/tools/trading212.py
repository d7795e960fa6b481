from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, field_validator

from stock_helper.adapters.trading212_client import Trading212Client
from stock_helper.core.errors import ValidationError
from stock_helper.mcp.catalog import (
    Operation,
    OperationDescriptor,
    ResourceDescriptor,
    ResourceEntry,
)

SCHEME = "trading212"


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class OrdersHistoryArgs(BaseModel):
    limit: Optional[int] = None
    ticker: Optional[str] = None
    cursor: Optional[int] = None

    # wrong-typed values are dropped, not rejected
    @field_validator("limit", "cursor", mode="before")
    @classmethod
    def _numbers_only(cls, v: Any) -> Optional[int]:
        return int(v) if _is_number(v) else None

    @field_validator("ticker", mode="before")
    @classmethod
    def _strings_only(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) else None


GET_PORTFOLIO = OperationDescriptor(
    name="get_portfolio",
    description="Get complete portfolio overview including cash, invested amount, total value, and all positions",
    error_label="fetching portfolio",
)

GET_ACCOUNT_CASH = OperationDescriptor(
    name="get_account_cash",
    description="Get account cash information including free cash, total cash, and blocked amounts",
    error_label="fetching account cash",
)

GET_ORDERS_HISTORY = OperationDescriptor(
    name="get_orders_history",
    description="Get historical orders with optional filtering by ticker and pagination",
    input_schema={
        "type": "object",
        "properties": {
            "limit": {
                "type": "number",
                "description": "Maximum number of orders to return (default: 50)",
            },
            "ticker": {
                "type": "string",
                "description": "Filter orders by specific ticker symbol (e.g., AAPL)",
            },
            "cursor": {
                "type": "number",
                "description": "Pagination cursor for fetching more results",
            },
        },
    },
    arguments=OrdersHistoryArgs,
    error_label="fetching orders history",
)

GET_ACCOUNT_METADATA = OperationDescriptor(
    name="get_account_metadata",
    description="Get account metadata including currency and account ID",
    error_label="fetching account metadata",
)

TOOLS = (GET_PORTFOLIO, GET_ACCOUNT_CASH, GET_ORDERS_HISTORY, GET_ACCOUNT_METADATA)

PORTFOLIO_RESOURCE = ResourceDescriptor(
    uri=f"{SCHEME}://portfolio",
    name="portfolio",
    description="Portfolio overview with all open positions",
)
ACCOUNT_CASH_RESOURCE = ResourceDescriptor(
    uri=f"{SCHEME}://account/cash",
    name="account_cash",
    description="Free, total and blocked cash of the account",
)
ACCOUNT_METADATA_RESOURCE = ResourceDescriptor(
    uri=f"{SCHEME}://account/metadata",
    name="account_metadata",
    description="Account currency code and id",
)
ORDERS_HISTORY_RESOURCE = ResourceDescriptor(
    uri=f"{SCHEME}://orders/history",
    name="orders_history",
    description="Historical orders; accepts ?ticker=, ?limit= and ?cursor= query parameters",
)

RESOURCES = (PORTFOLIO_RESOURCE, ACCOUNT_CASH_RESOURCE, ACCOUNT_METADATA_RESOURCE, ORDERS_HISTORY_RESOURCE)


def _int_param(query: Dict[str, str], key: str) -> Optional[int]:
    raw = query.get(key)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError as e:
        raise ValidationError(f"{key} must be an integer, got {raw!r}") from e


def parse_history_query(query: Dict[str, str]) -> OrdersHistoryArgs:
    return OrdersHistoryArgs(
        ticker=query.get("ticker") or None,
        limit=_int_param(query, "limit"),
        cursor=_int_param(query, "cursor"),
    )


def build_operations(client: Trading212Client) -> List[Operation]:
    async def get_portfolio(_: BaseModel) -> Any:
        return await asyncio.to_thread(client.get_portfolio)

    async def get_account_cash(_: BaseModel) -> Any:
        return await asyncio.to_thread(client.get_account_cash)

    async def get_orders_history(args: OrdersHistoryArgs) -> Any:
        return await asyncio.to_thread(
            client.get_orders_history, cursor=args.cursor, limit=args.limit, ticker=args.ticker
        )

    async def get_account_metadata(_: BaseModel) -> Any:
        return await asyncio.to_thread(client.get_account_metadata)

    return [
        Operation(GET_PORTFOLIO, get_portfolio),
        Operation(GET_ACCOUNT_CASH, get_account_cash),
        Operation(GET_ORDERS_HISTORY, get_orders_history),
        Operation(GET_ACCOUNT_METADATA, get_account_metadata),
    ]


def build_resources(client: Trading212Client) -> List[ResourceEntry]:
    async def portfolio(_: Dict[str, str]) -> Any:
        return await asyncio.to_thread(client.get_portfolio)

    async def account_cash(_: Dict[str, str]) -> Any:
        return await asyncio.to_thread(client.get_account_cash)

    async def account_metadata(_: Dict[str, str]) -> Any:
        return await asyncio.to_thread(client.get_account_metadata)

    async def orders_history(query: Dict[str, str]) -> Any:
        args = parse_history_query(query)
        return await asyncio.to_thread(
            client.get_orders_history, cursor=args.cursor, limit=args.limit, ticker=args.ticker
        )

    return [
        ResourceEntry(PORTFOLIO_RESOURCE, "portfolio", portfolio),
        ResourceEntry(ACCOUNT_CASH_RESOURCE, "account/cash", account_cash),
        ResourceEntry(ACCOUNT_METADATA_RESOURCE, "account/metadata", account_metadata),
        ResourceEntry(ORDERS_HISTORY_RESOURCE, "orders/history", orders_history),
    ]
