"""Collaborator interfaces consumed by the pipeline.

The orchestrator only depends on these protocols; production adapters live in
the sibling modules and tests substitute in-process fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol


@dataclass(frozen=True)
class GenerationRequest:
    system: str
    prompt: str
    purpose: str
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass(frozen=True)
class SearchHit:
    text: str
    score: float = 0.0
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def source(self) -> str:
        return str(self.metadata.get("source", ""))


class GenerationService(Protocol):
    def complete(self, request: GenerationRequest) -> str: ...


class RetrievalService(Protocol):
    def search(
        self,
        query: str,
        filters: Optional[dict[str, Any]] = None,
        limit: int = 5,
        mode: str = "hybrid",
    ) -> list[SearchHit]: ...


class StandardsService(Protocol):
    def get_syllabus_section(self, domain_id: str) -> dict: ...

    def validate_compliance(self, content: str) -> dict: ...


class PersistenceService(Protocol):
    def create_job(self, record: dict) -> dict: ...

    def get_job(self, job_id: str) -> Optional[dict]: ...

    def update_job(self, job_id: str, fields: dict) -> dict: ...

    def create_chapter(self, record: dict) -> dict: ...

    def create_log(self, record: dict) -> dict: ...

    def create_book(self, record: dict) -> dict: ...
