from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Type

import pydantic
from mcp.types import Resource, Tool
from pydantic import BaseModel

from stock_helper.core.errors import ValidationError

JSON_MIME = "application/json"


class NoArguments(BaseModel):
    pass


def _format_validation_error(err: pydantic.ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ())) or "arguments"
        msg = item.get("msg", "invalid value")
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts)


@dataclass(frozen=True)
class OperationDescriptor:
    """Static description of one callable tool.

    ``input_schema`` is what discovery shows; ``arguments`` is the pydantic
    model that turns the raw argument bag into a typed, defaulted struct.
    """

    name: str
    description: str
    input_schema: Mapping[str, Any] = field(default_factory=lambda: {"type": "object", "properties": {}})
    arguments: Type[BaseModel] = NoArguments
    error_label: Optional[str] = None

    def to_tool(self) -> Tool:
        return Tool(name=self.name, description=self.description, inputSchema=copy.deepcopy(dict(self.input_schema)))

    def parse(self, raw: Any) -> BaseModel:
        if raw is None:
            raw = {}
        if not isinstance(raw, Mapping):
            raise ValidationError(f"arguments for {self.name} must be an object")
        try:
            return self.arguments.model_validate(dict(raw))
        except pydantic.ValidationError as e:
            raise ValidationError(f"invalid arguments for {self.name}: {_format_validation_error(e)}") from e


@dataclass(frozen=True)
class ResourceDescriptor:
    """Addressable read-only resource, e.g. trading212://account/cash."""

    uri: str
    name: str
    description: str
    mime_type: str = JSON_MIME

    def to_resource(self) -> Resource:
        return Resource(uri=self.uri, name=self.name, description=self.description, mimeType=self.mime_type)


ToolHandler = Callable[[BaseModel], Awaitable[Any]]
ResourceHandler = Callable[[Dict[str, str]], Awaitable[Any]]


@dataclass(frozen=True)
class Operation:
    descriptor: OperationDescriptor
    handler: ToolHandler

    @property
    def name(self) -> str:
        return self.descriptor.name


@dataclass(frozen=True)
class ResourceEntry:
    descriptor: ResourceDescriptor
    path: str
    handler: ResourceHandler
