"""Content models: objectives, research evidence, draft sections."""

from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .parsed import ParseResult, Parsed, Unparsed, flatten_text

DEFAULT_LEVEL = "K2"


@dataclass(frozen=True)
class LearningObjective:
    id: str
    description: str
    level: str = DEFAULT_LEVEL

    def to_dict(self) -> dict:
        return {"id": self.id, "description": self.description, "level": self.level}


@dataclass(frozen=True)
class EvidenceChunk:
    text: str
    score: float = 0.0
    source: str = ""


@dataclass
class FactSheet:
    summary: str = ""
    evidence: dict[str, list[EvidenceChunk]] = field(default_factory=dict)
    sources: list[str] = field(default_factory=list)
    syllabus_section: Optional[dict] = None
    degraded: list[str] = field(default_factory=list)

    def evidence_for(self, objective_id: str) -> list[EvidenceChunk]:
        return self.evidence.get(objective_id, [])

    @property
    def is_empty(self) -> bool:
        return not any(self.evidence.values()) and self.syllabus_section is None


@dataclass(frozen=True)
class CodeSnippet:
    id: str
    description: str
    language: str = "text"
    code: str = ""
    explanation: str = ""
    validated: bool = False
    corrections: int = 0
    errors: tuple[str, ...] = ()

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "language": self.language,
            "code": self.code,
            "explanation": self.explanation,
            "validated": self.validated,
            "corrections": self.corrections,
            "errors": list(self.errors),
        }


@dataclass(frozen=True)
class Section:
    """One generated part of a chapter draft."""

    kind: str  # opener | body | closer
    heading: str
    result: ParseResult
    objective_id: Optional[str] = None

    @property
    def text(self) -> str:
        if isinstance(self.result, Parsed):
            return flatten_text(self.result.data)
        if isinstance(self.result, Unparsed):
            return self.result.raw
        raise TypeError(f"Unknown parse result {type(self.result).__name__}")

    def to_dict(self) -> dict:
        data: dict[str, Any] = {"kind": self.kind, "heading": self.heading}
        if self.objective_id:
            data["objective_id"] = self.objective_id
        if isinstance(self.result, Parsed):
            data["content"] = self.result.data
            data["parsed"] = True
        else:
            data["content"] = {"raw_text": self.result.raw}
            data["parsed"] = False
        return data


@dataclass(frozen=True)
class DraftContent:
    opener: Section
    body: tuple[Section, ...]
    closer: Section
    code_requests: tuple[str, ...] = ()
    code_snippets: tuple[CodeSnippet, ...] = ()

    @property
    def sections(self) -> list[Section]:
        return [self.opener, *self.body, self.closer]

    @property
    def body_objective_ids(self) -> list[Optional[str]]:
        return [s.objective_id for s in self.body]

    def render(self) -> str:
        parts = [f"## {s.heading}\n{s.text}" for s in self.sections]
        for snippet in self.code_snippets:
            parts.append(f"```{snippet.language}\n{snippet.code}\n```")
        return "\n\n".join(parts)

    def assessment_questions(self) -> list[dict]:
        """Questions produced by the closer; raw closer text yields none."""
        if isinstance(self.closer.result, Unparsed):
            return []
        data = self.closer.result.data
        if not isinstance(data, dict):
            return []
        questions = data.get("assessment_questions") or data.get("mcqs") or []
        return [q for q in questions if isinstance(q, dict)]

    def synthesis(self) -> str:
        if isinstance(self.closer.result, Unparsed):
            return self.closer.result.raw
        data = self.closer.result.data
        if isinstance(data, dict):
            return str(data.get("synthesis", ""))
        return flatten_text(data)

    def with_snippets(self, snippets: list[CodeSnippet]) -> "DraftContent":
        return replace(self, code_snippets=tuple(snippets))

    def to_dict(self) -> dict:
        return {
            "opener": self.opener.to_dict(),
            "body": [s.to_dict() for s in self.body],
            "closer": self.closer.to_dict(),
            "code_requests": list(self.code_requests),
            "code_snippets": [s.to_dict() for s in self.code_snippets],
        }
