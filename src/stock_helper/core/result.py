from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class Success:
    payload: Any


@dataclass(frozen=True)
class Failure:
    message: str
    is_error: bool = True


CallResult = Union[Success, Failure]


def to_json(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


def render_text(result: CallResult) -> str:
    """Render a call result as the single JSON text item sent to the client."""
    if isinstance(result, Success):
        return to_json(result.payload)
    return to_json({"error": result.message})
