"""Text helpers for handling generative-service output."""

import json
import re

_FENCE_RE = re.compile(r'```(?:json)?\s*\n(.*?)\n```', re.DOTALL)
_CODE_FENCE_RE = re.compile(r'```(\w*)\n(.*?)```', re.DOTALL)


def _close_truncated_json(text: str) -> str:
    """Close a JSON document that was cut off mid-stream.

    Walks back to the last complete value and appends the closing brackets
    still open at that point.
    """
    if not text or text[0] not in ('{', '['):
        return text

    last_end = len(text)
    for ch in ('}', ']', '"'):
        while True:
            pos = text.rfind(ch, 0, last_end)
            if pos <= 0:
                break
            candidate = text[:pos + 1].rstrip().rstrip(',')
            stack = []
            in_str = False
            esc = False
            for c in candidate:
                if esc:
                    esc = False
                    continue
                if c == '\\' and in_str:
                    esc = True
                    continue
                if c == '"':
                    in_str = not in_str
                    continue
                if in_str:
                    continue
                if c in ('{', '['):
                    stack.append('}' if c == '{' else ']')
                elif c in ('}', ']') and stack:
                    stack.pop()
            closing = ''.join(reversed(stack))
            try:
                json.loads(candidate + closing)
                return candidate + closing
            except json.JSONDecodeError:
                last_end = pos
        last_end = len(text)

    return text


def parse_json_response(text: str) -> dict | list:
    """Extract JSON from a model response that may contain markdown fences.

    Raises:
        ValueError: if no JSON document can be recovered.
    """
    m = _FENCE_RE.search(text)
    if m:
        try:
            return json.loads(m.group(1))
        except json.JSONDecodeError:
            pass
    cleaned = text.strip()
    if cleaned.startswith('{') or cleaned.startswith('['):
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError:
            pass
    for open_ch, close_ch in [('{', '}'), ('[', ']')]:
        start = cleaned.find(open_ch)
        if start == -1:
            continue
        end = cleaned.rfind(close_ch)
        if end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                pass
    for open_ch in ('{', '['):
        start = cleaned.find(open_ch)
        if start != -1:
            try:
                return json.loads(_close_truncated_json(cleaned[start:]))
            except json.JSONDecodeError:
                pass
    raise ValueError(f"Could not parse JSON from response: {text[:200]}...")


def extract_code_block(text: str) -> tuple[str, str] | None:
    """Return ``(language, code)`` of the first fenced code block, if any."""
    m = _CODE_FENCE_RE.search(text)
    if not m:
        return None
    return m.group(1), m.group(2).strip()


def truncate_text(text: str, max_chars: int, from_end: bool = False) -> str:
    """Truncate text at sentence boundaries.

    Args:
        text: The text to truncate.
        max_chars: Maximum number of characters.
        from_end: If True, keep the end of the text instead of the beginning.
    """
    if len(text) <= max_chars:
        return text
    if max_chars <= 0:
        return ""

    if from_end:
        chunk = text[-(max_chars + 200):]
        for sep in ['. ', '! ', '? ', '\n']:
            idx = chunk.find(sep)
            if idx != -1 and idx < 200:
                return chunk[idx + len(sep):]
        return "..." + text[-max_chars:]

    chunk = text[:max_chars + 200]
    best = max_chars
    for sep in ['. ', '! ', '? ', '\n']:
        idx = chunk.rfind(sep, 0, max_chars)
        if idx != -1 and idx >= max_chars - 200:
            best = min(best, idx + len(sep))
    return text[:best] + "..."
