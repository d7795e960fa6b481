from __future__ import annotations

import logging
from typing import Any, Dict, List, Sequence, Tuple
from urllib.parse import parse_qs, urlparse

from mcp.types import CallToolResult, Resource, TextContent, Tool

from stock_helper.core.errors import UnknownOperationError, UpstreamError
from stock_helper.core.metrics import record_call
from stock_helper.core.result import CallResult, Failure, Success, render_text, to_json
from stock_helper.mcp.catalog import JSON_MIME, Operation, ResourceEntry

logger = logging.getLogger(__name__)


def _unwrap(value: Any) -> Any:
    return value.payload if isinstance(value, Success) else value


class ToolDispatcher:
    """Single entry point for tool calls of one adapter.

    Turns (name, raw arguments) into exactly one CallResult; no exception
    leaves ``dispatch`` or ``call_tool``.

    ``flag_upstream_errors`` decides whether an upstream error value is
    reported with ``isError`` set or as ordinary content.
    """

    def __init__(self, server_name: str, operations: Sequence[Operation], flag_upstream_errors: bool = False) -> None:
        self.server_name = server_name
        self.flag_upstream_errors = flag_upstream_errors
        self._operations: Dict[str, Operation] = {}
        for op in operations:
            if op.name in self._operations:
                raise ValueError(f"Duplicate tool name: {op.name}")
            self._operations[op.name] = op
        self._tools: Tuple[Tool, ...] = tuple(op.descriptor.to_tool() for op in operations)

    def list_tools(self) -> List[Tool]:
        return [tool.model_copy(deep=True) for tool in self._tools]

    async def dispatch(self, name: str, arguments: Any) -> CallResult:
        op = self._operations.get(name)
        if op is None:
            record_call(self.server_name, "unknown", "unknown")
            return Failure(f"Unknown tool: {name}", is_error=True)

        try:
            args = op.descriptor.parse(arguments)
            value = await op.handler(args)
        except Exception as e:
            logger.warning("Tool %s failed: %s", name, e, exc_info=True)
            record_call(self.server_name, name, "exception")
            return Failure(f"Error executing tool: {e}", is_error=True)

        if isinstance(value, UpstreamError):
            record_call(self.server_name, name, "upstream_error")
            label = op.descriptor.error_label or f"calling {name}"
            return Failure(f"Error {label}: {value.message}", is_error=self.flag_upstream_errors)

        record_call(self.server_name, name, "ok")
        return Success(_unwrap(value))

    async def call_tool(self, name: str, arguments: Any) -> CallToolResult:
        result = await self.dispatch(name, arguments)
        try:
            text = render_text(result)
        except Exception as e:
            logger.exception("Could not serialize result of %s", name)
            result = Failure(f"Error executing tool: {e}", is_error=True)
            text = render_text(result)
        is_error = isinstance(result, Failure) and result.is_error
        return CallToolResult(content=[TextContent(type="text", text=text)], isError=is_error)


def split_uri(uri: str) -> Tuple[str, str, Dict[str, str]]:
    """trading212://orders/history?limit=5 -> ("trading212", "orders/history", {"limit": "5"})"""
    parsed = urlparse(uri)
    path = f"{parsed.netloc}{parsed.path}".strip("/")
    query = {k: v[0] for k, v in parse_qs(parsed.query).items()}
    return parsed.scheme, path, query


class ResourceDispatcher:
    """Resource reads under one URI scheme; failures come back as {"error": ...} text."""

    mime_type = JSON_MIME

    def __init__(self, server_name: str, scheme: str, entries: Sequence[ResourceEntry]) -> None:
        self.server_name = server_name
        self.scheme = scheme
        self._by_path: Dict[str, ResourceEntry] = {e.path: e for e in entries}
        self._resources: Tuple[Resource, ...] = tuple(e.descriptor.to_resource() for e in entries)

    def list_resources(self) -> List[Resource]:
        return [r.model_copy(deep=True) for r in self._resources]

    def _resolve(self, uri: str) -> Tuple[ResourceEntry, Dict[str, str]]:
        scheme, path, query = split_uri(uri)
        if scheme != self.scheme:
            raise UnknownOperationError(f"Unsupported URI scheme: {scheme or '<none>'}")
        entry = self._by_path.get(path)
        if entry is None:
            raise UnknownOperationError(f"Unknown resource: {uri}")
        return entry, query

    async def dispatch(self, uri: str) -> CallResult:
        try:
            entry, query = self._resolve(uri)
        except Exception as e:
            record_call(self.server_name, "unknown", "unknown")
            return Failure(str(e))
        try:
            value = await entry.handler(query)
        except Exception as e:
            logger.warning("Resource read %s failed: %s", uri, e)
            record_call(self.server_name, entry.path, "exception")
            return Failure(str(e))
        if isinstance(value, UpstreamError):
            record_call(self.server_name, entry.path, "upstream_error")
            return Failure(value.message)
        record_call(self.server_name, entry.path, "ok")
        return Success(_unwrap(value))

    async def read(self, uri: str) -> str:
        result = await self.dispatch(uri)
        try:
            return render_text(result)
        except Exception as e:
            logger.exception("Could not serialize resource %s", uri)
            return to_json({"error": str(e)})
