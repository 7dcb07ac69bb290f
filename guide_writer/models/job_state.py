"""Mutable job and chapter state, plus the immutable review records."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from .content import DraftContent, FactSheet, LearningObjective


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ChapterStatus(str, Enum):
    QUEUED = "queued"
    RESEARCHING = "researching"
    DRAFTING = "drafting"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    FAILED = "failed"


class Verdict(str, Enum):
    APPROVED = "approved"
    NEEDS_REVISION = "needs_revision"


@dataclass(frozen=True)
class CoverageReport:
    per_objective: dict[str, bool] = field(default_factory=dict)
    percent: int = 100
    all_covered: bool = True

    @property
    def missing(self) -> list[str]:
        return [oid for oid, covered in self.per_objective.items() if not covered]


@dataclass(frozen=True)
class ReviewVerdict:
    score: float
    verdict: Verdict
    coverage_gaps: tuple[str, ...] = ()
    out_of_scope: tuple[str, ...] = ()
    feedback: tuple[str, ...] = ()
    strengths: tuple[str, ...] = ()
    exam_questions: tuple[dict, ...] = ()
    coverage: Optional[CoverageReport] = None
    compliance: Optional[dict] = None

    @property
    def approved(self) -> bool:
        return self.verdict == Verdict.APPROVED


@dataclass(frozen=True)
class RevisionAttempt:
    number: int
    draft: DraftContent
    verdict: ReviewVerdict

    @property
    def score(self) -> float:
        return self.verdict.score


@dataclass
class LogEntry:
    job_id: str
    workflow_name: str
    status: str
    chapter_id: Optional[str] = None
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    input_summary: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)

    def to_payload(self) -> dict:
        payload: dict[str, Any] = {
            "job_id": self.job_id,
            "workflow_name": self.workflow_name,
            "chapter_id": self.chapter_id,
            "status": self.status,
        }
        if self.duration_ms is not None:
            payload["duration_ms"] = self.duration_ms
        if self.error_message:
            payload["error_message"] = self.error_message
        if self.input_summary:
            payload["input_summary"] = self.input_summary
        return payload


@dataclass
class Chapter:
    id: str
    job_id: str
    index: int
    title: str
    objectives: list[LearningObjective] = field(default_factory=list)
    domain_id: str = ""
    status: ChapterStatus = ChapterStatus.QUEUED
    draft: Optional[DraftContent] = None
    revision_history: list[RevisionAttempt] = field(default_factory=list)
    fact_sheet: Optional[FactSheet] = None
    summary: str = ""
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def attempts(self) -> int:
        return len(self.revision_history)

    @property
    def latest_verdict(self) -> Optional[ReviewVerdict]:
        if not self.revision_history:
            return None
        return self.revision_history[-1].verdict

    @property
    def best_attempt(self) -> Optional[RevisionAttempt]:
        """Highest-scoring attempt; the earliest one wins a tie."""
        best = None
        for attempt in self.revision_history:
            if best is None or attempt.score > best.score:
                best = attempt
        return best

    @property
    def final_attempt(self) -> Optional[RevisionAttempt]:
        if self.status == ChapterStatus.APPROVED:
            return self.revision_history[-1]
        return self.best_attempt

    @property
    def score(self) -> Optional[float]:
        attempt = self.final_attempt
        return attempt.score if attempt else None

    def record_attempt(self, attempt: RevisionAttempt) -> None:
        if attempt.number != self.attempts + 1:
            raise ValueError(
                f"Attempt {attempt.number} out of order for chapter {self.id} "
                f"({self.attempts} recorded)"
            )
        self.revision_history.append(attempt)


@dataclass
class Job:
    id: str
    spec: Any  # JobSpec
    status: JobStatus = JobStatus.PENDING
    chapters: list[Chapter] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    logs: list[LogEntry] = field(default_factory=list)
    error: Optional[str] = None
