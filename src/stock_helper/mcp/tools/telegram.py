from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, field_validator

from stock_helper.adapters.telegram_client import TelegramGateway
from stock_helper.mcp.catalog import Operation, OperationDescriptor

DEFAULT_FETCH_LIMIT = 50
MAX_FETCH_LIMIT = 100
DEFAULT_SEARCH_LIMIT = 20


def _require_text(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} must be a non-empty string")
    return value.strip()


def _require_count(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number")
    if value < 1:
        raise ValueError(f"{name} must be at least 1")
    return int(value)


class FetchMessagesArgs(BaseModel):
    channel: str
    limit: int = DEFAULT_FETCH_LIMIT

    @field_validator("channel", mode="before")
    @classmethod
    def _channel(cls, v: Any) -> str:
        return _require_text(v, "channel")

    @field_validator("limit", mode="before")
    @classmethod
    def _limit(cls, v: Any) -> int:
        if v is None:
            return DEFAULT_FETCH_LIMIT
        return min(_require_count(v, "limit"), MAX_FETCH_LIMIT)


class SearchMessagesArgs(BaseModel):
    channel: str
    query: str
    limit: int = DEFAULT_SEARCH_LIMIT

    @field_validator("channel", "query", mode="before")
    @classmethod
    def _text(cls, v: Any, info) -> str:
        return _require_text(v, info.field_name)

    @field_validator("limit", mode="before")
    @classmethod
    def _limit(cls, v: Any) -> int:
        if v is None:
            return DEFAULT_SEARCH_LIMIT
        return _require_count(v, "limit")


GET_MESSAGES = OperationDescriptor(
    name="get_telegram_messages",
    description=(
        "Fetch recent messages from a Telegram channel or chat. "
        "Useful for getting stock tips, tax discussions, or trading insights."
    ),
    input_schema={
        "type": "object",
        "properties": {
            "channel": {
                "type": "string",
                "description": "Channel username (e.g., 'channelname') or ID",
            },
            "limit": {
                "type": "number",
                "description": "Number of messages to fetch (default: 50, max: 100)",
                "default": DEFAULT_FETCH_LIMIT,
            },
        },
        "required": ["channel"],
    },
    arguments=FetchMessagesArgs,
    error_label="fetching messages",
)

SEARCH_MESSAGES = OperationDescriptor(
    name="search_telegram_messages",
    description="Search for specific keywords in a Telegram channel's message history",
    input_schema={
        "type": "object",
        "properties": {
            "channel": {
                "type": "string",
                "description": "Channel username or ID",
            },
            "query": {
                "type": "string",
                "description": "Search query/keywords",
            },
            "limit": {
                "type": "number",
                "description": "Max number of results (default: 20)",
                "default": DEFAULT_SEARCH_LIMIT,
            },
        },
        "required": ["channel", "query"],
    },
    arguments=SearchMessagesArgs,
    error_label="searching messages",
)

TOOLS = (GET_MESSAGES, SEARCH_MESSAGES)


def build_operations(gateway: TelegramGateway) -> List[Operation]:
    async def get_messages(args: FetchMessagesArgs) -> Any:
        return await gateway.fetch_messages(args.channel, limit=args.limit)

    async def search_messages(args: SearchMessagesArgs) -> Any:
        return await gateway.search_messages(args.channel, args.query, limit=args.limit)

    return [
        Operation(GET_MESSAGES, get_messages),
        Operation(SEARCH_MESSAGES, search_messages),
    ]
