from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


class StockHelperError(Exception):
    """Base exception for the adapters."""


class ConfigurationError(StockHelperError):
    """Missing or invalid credentials; the adapter must not start serving."""


class ValidationError(StockHelperError):
    """Call arguments do not satisfy the operation's parameter schema."""


class UnknownOperationError(StockHelperError):
    """Tool name or resource path not present in the registry."""


@dataclass(frozen=True)
class UpstreamError:
    """Non-success answer from a wrapped service.

    Returned as a value by the API clients, never raised.
    """

    message: str
    code: Optional[str] = None
    status: Optional[int] = None
