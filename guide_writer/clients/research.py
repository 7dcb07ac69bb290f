"""Knowledge-base search over the research service."""

from typing import Any, Optional

from ..config import ServicesConfig
from ..errors import MalformedResponse
from .base import SearchHit
from .tools import ToolCaller, build_http_client

_TOOLS = {"hybrid": "hybrid_search", "vector": "vector_search"}


class ResearchClient:
    def __init__(self, config: ServicesConfig, caller: ToolCaller | None = None):
        self._caller = caller or ToolCaller(
            build_http_client(config.research_url, config.timeout_seconds, config.api_token)
        )

    def search(
        self,
        query: str,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 5,
        mode: str = "hybrid",
    ) -> list[SearchHit]:
        if mode not in _TOOLS:
            raise ValueError(f"Unknown search mode: {mode}")
        arguments: dict[str, Any] = {"query": query, "limit": limit}
        if filters:
            arguments["filters"] = filters
        data = self._caller.call(_TOOLS[mode], arguments)
        results = data.get("results", []) if isinstance(data, dict) else data
        if not isinstance(results, list):
            raise MalformedResponse(f"Search results are not a list: {type(results).__name__}", raw=data)
        hits = []
        for r in results:
            if not isinstance(r, dict):
                raise MalformedResponse(f"Search hit is not an object: {str(r)[:100]}", raw=data)
            metadata = r.get("metadata")
            metadata = dict(metadata) if isinstance(metadata, dict) else {}
            if r.get("source") and "source" not in metadata:
                metadata["source"] = r["source"]
            try:
                score = float(r.get("score") or r.get("relevance") or 0.0)
            except (TypeError, ValueError):
                raise MalformedResponse(f"Search hit has a non-numeric score: {r.get('score')!r}", raw=data)
            hits.append(
                SearchHit(
                    text=str(r.get("text") or r.get("content") or ""),
                    score=score,
                    metadata=metadata,
                )
            )
        return hits

    def close(self) -> None:
        self._caller.close()
