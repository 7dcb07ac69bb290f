"""Tagged result for structured generation output."""

from dataclasses import dataclass
from typing import Any, Union

from ..utils.text import parse_json_response


@dataclass(frozen=True)
class Parsed:
    """Generation output that parsed as JSON."""

    data: Any


@dataclass(frozen=True)
class Unparsed:
    """Generation output that did not parse; the raw text is kept verbatim."""

    raw: str
    reason: str = ""


ParseResult = Union[Parsed, Unparsed]


def parse_generation(text: str | None) -> ParseResult:
    if not text or not text.strip():
        return Unparsed(raw=text or "", reason="empty response")
    try:
        return Parsed(parse_json_response(text))
    except ValueError as e:
        return Unparsed(raw=text, reason=str(e)[:200])


def flatten_text(data: Any) -> str:
    """Collect every string leaf of a JSON value, in document order."""
    if isinstance(data, str):
        return data
    if isinstance(data, dict):
        parts = [flatten_text(v) for v in data.values()]
    elif isinstance(data, list):
        parts = [flatten_text(v) for v in data]
    elif data is None or isinstance(data, bool):
        return ""
    else:
        return str(data)
    return "\n".join(p for p in parts if p)
