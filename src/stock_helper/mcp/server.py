"""
MCP servers for the Trading 212 and Telegram adapters (stdio transport).

stdout is reserved for protocol frames; logging is configured by the CLI
before this module (and Telethon) is imported.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional

from mcp.server import Server
from mcp.server.lowlevel.helper_types import ReadResourceContents
from mcp.server.stdio import stdio_server
from mcp.types import CallToolResult, Resource, Tool
from pydantic import AnyUrl

from stock_helper.core.config import Settings
from stock_helper.core.log import install_fault_handlers
from stock_helper.mcp.runtime import ResourceDispatcher, ToolDispatcher

logger = logging.getLogger(__name__)

SERVER_VERSION = "1.0.0"
TRADING212_SERVER_NAME = "trading212-mcp-server"
TELEGRAM_SERVER_NAME = "telegram-stock-helper"


class AdapterServer:
    """An MCP ``Server`` bound to its dispatchers, plus shutdown hooks."""

    def __init__(
        self,
        name: str,
        tools: ToolDispatcher,
        resources: Optional[ResourceDispatcher] = None,
        on_close: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> None:
        self.tools = tools
        self.resources = resources
        self.on_close = on_close
        self.app: Server = Server(name, version=SERVER_VERSION)
        self._register()

    def _register(self) -> None:
        app = self.app
        tools = self.tools

        @app.list_tools()
        async def list_tools() -> List[Tool]:
            return tools.list_tools()

        # argument checks live in the dispatcher, not in the SDK's jsonschema pass
        @app.call_tool(validate_input=False)
        async def call_tool(name: str, arguments: Any) -> CallToolResult:
            return await tools.call_tool(name, arguments)

        resources = self.resources
        if resources is None:
            return

        @app.list_resources()
        async def list_resources() -> List[Resource]:
            return resources.list_resources()

        @app.read_resource()
        async def read_resource(uri: AnyUrl) -> Iterable[ReadResourceContents]:
            text = await resources.read(str(uri))
            return [ReadResourceContents(content=text, mime_type=resources.mime_type)]

    async def serve_stdio(self) -> None:
        install_fault_handlers(asyncio.get_running_loop())
        try:
            async with stdio_server() as (read_stream, write_stream):
                await self.app.run(read_stream, write_stream, self.app.create_initialization_options())
        finally:
            if self.on_close is not None:
                await self.on_close()


def build_trading212_server(settings: Settings) -> AdapterServer:
    from stock_helper.adapters.trading212_client import Trading212Client
    from stock_helper.mcp.tools import trading212

    client = Trading212Client(
        settings.trading212_api_key,
        settings.trading212_api_secret,
        base_url=settings.trading212_base_url,
        timeout=settings.http_timeout,
    )
    tools = ToolDispatcher("trading212", trading212.build_operations(client))
    resources = ResourceDispatcher("trading212", trading212.SCHEME, trading212.build_resources(client))

    async def close() -> None:
        client.session.close()

    return AdapterServer(TRADING212_SERVER_NAME, tools, resources, on_close=close)


def build_telegram_server(settings: Settings) -> AdapterServer:
    from stock_helper.adapters.telegram_client import TelegramGateway, TelegramSessionManager
    from stock_helper.mcp.tools import telegram

    sessions = TelegramSessionManager(
        settings.telegram_api_id_value(), settings.telegram_api_hash, settings.telegram_session
    )
    gateway = TelegramGateway(sessions, search_batch=settings.telegram_search_batch_value())
    tools = ToolDispatcher("telegram", telegram.build_operations(gateway), flag_upstream_errors=True)
    return AdapterServer(TELEGRAM_SERVER_NAME, tools, on_close=sessions.close)
