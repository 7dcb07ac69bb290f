"""Tool-call transport shared by the standards and research services.

Both services expose ``POST /call`` taking ``{"name", "arguments"}`` and answer
with ``{"content": [{"type": "text", "text": "<json>"}], "isError": bool}``.
"""

import json
from typing import Any, Optional

import httpx

from ..errors import MalformedResponse, RejectedFailure


def build_http_client(base_url: str, timeout: float, token: Optional[str] = None) -> httpx.Client:
    headers = {"Content-Type": "application/json"}
    if token:
        headers["Authorization"] = f"Bearer {token}"
    return httpx.Client(base_url=base_url, headers=headers, timeout=timeout)


class ToolCaller:
    def __init__(self, client: httpx.Client):
        self._client = client

    def call(self, name: str, arguments: dict[str, Any]) -> Any:
        """Invoke a tool and decode the JSON carried in its first text block.

        Raises:
            httpx.HTTPError: transport failures and non-2xx answers, left for
                the retry executor to classify.
            RejectedFailure: the tool itself reported an error.
            MalformedResponse: the answer is not shaped like a tool result.
            json.JSONDecodeError: the text block is not JSON.
        """
        response = self._client.post("/call", json={"name": name, "arguments": arguments})
        response.raise_for_status()
        body = response.json()
        if not isinstance(body, dict):
            raise MalformedResponse(f"Tool {name} answered with {type(body).__name__}", raw=body)
        blocks = body.get("content") or []
        if not isinstance(blocks, list):
            raise MalformedResponse(f"Tool {name} content is not a list", raw=body)
        first = blocks[0] if blocks else {}
        if not isinstance(first, dict):
            raise MalformedResponse(f"Tool {name} content block is not an object", raw=body)
        text = first.get("text") or ""
        if body.get("isError"):
            raise RejectedFailure(f"Tool {name} failed: {str(text)[:200]}", raw=body)
        if not isinstance(text, str) or not text:
            raise MalformedResponse(f"Tool {name} returned no text content", raw=body)
        return json.loads(text)

    def close(self) -> None:
        self._client.close()
