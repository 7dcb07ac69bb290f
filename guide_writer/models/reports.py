"""Request and result models at the orchestrator boundary."""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class JobSpec(BaseModel):
    """What the caller asks for."""
    syllabus_id: str = Field(..., min_length=1)
    target_audience: str = Field(..., min_length=1)
    syllabus_name: str = ""
    generation_strategy: str = Field(default="By Domain")
    book_title: Optional[str] = None
    book_subtitle: str = ""


class ChapterScore(BaseModel):
    chapter_id: str
    title: str
    status: str
    score: Optional[float] = None
    attempts: int = 0
    verdict: Optional[str] = None


class CompiledChapter(BaseModel):
    chapter_id: str
    number: int
    title: str
    domain_id: str = ""
    status: str
    opener: Optional[dict[str, Any]] = None
    body: list[dict[str, Any]] = Field(default_factory=list)
    closer: Optional[dict[str, Any]] = None
    code_snippets: list[dict[str, Any]] = Field(default_factory=list)
    exam_questions: list[dict[str, Any]] = Field(default_factory=list)
    score: Optional[float] = None
    verdict: Optional[str] = None


class BookStats(BaseModel):
    total_chapters: int
    total_exam_questions: int
    total_code_snippets: int
    average_score: Optional[int] = None
    chapter_scores: list[ChapterScore] = Field(default_factory=list)


class CompiledBook(BaseModel):
    title: str
    subtitle: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    chapters: list[CompiledChapter]
    exam_questions: list[dict[str, Any]] = Field(default_factory=list)
    stats: BookStats


class JobResult(BaseModel):
    """Final report of one job run; partial success stays visible per chapter."""
    job_id: str
    status: str
    book: Optional[CompiledBook] = None
    chapter_scores: list[ChapterScore] = Field(default_factory=list)
    error: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    logs: list[dict[str, Any]] = Field(default_factory=list)

    def summary(self) -> str:
        lines = [
            f"Job {self.job_id}: {self.status}",
            f"{'='*50}",
        ]
        if self.error:
            lines.append(f"Error: {self.error}")
        if self.book and self.book.stats.average_score is not None:
            lines.append(f"Average score: {self.book.stats.average_score}")
        for s in self.chapter_scores:
            score = "-" if s.score is None else f"{s.score:g}"
            lines.append(f"  [{s.status}] {s.title}: {score} ({s.attempts} attempts)")
        return "\n".join(lines)
