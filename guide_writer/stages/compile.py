"""Compile stage: assemble finished chapters into the book."""

import math
from typing import Optional

from .base import BaseStage
from ..engine.context import JobContext
from ..engine.transitions import TERMINAL_CHAPTER_STATES
from ..errors import ValidationError
from ..models.content import DraftContent
from ..models.job_state import Chapter, utcnow
from ..models.reports import (
    BookStats,
    ChapterScore,
    CompiledBook,
    CompiledChapter,
    JobSpec,
)


def chapter_score(chapter: Chapter) -> ChapterScore:
    verdict = chapter.latest_verdict
    return ChapterScore(
        chapter_id=chapter.id,
        title=chapter.title,
        status=chapter.status.value,
        score=chapter.score,
        attempts=chapter.attempts,
        verdict=verdict.verdict.value if verdict else None,
    )


def _final_draft(chapter: Chapter) -> Optional[DraftContent]:
    attempt = chapter.final_attempt
    return attempt.draft if attempt else chapter.draft


def compile_chapter(chapter: Chapter) -> CompiledChapter:
    draft = _final_draft(chapter)
    attempt = chapter.final_attempt
    questions: list[dict] = []
    if attempt and attempt.verdict.exam_questions:
        questions = [dict(q) for q in attempt.verdict.exam_questions]
    elif draft:
        questions = [dict(q) for q in draft.assessment_questions()]
    return CompiledChapter(
        chapter_id=chapter.id,
        number=chapter.index + 1,
        title=chapter.title,
        domain_id=chapter.domain_id,
        status=chapter.status.value,
        opener=draft.opener.to_dict() if draft else None,
        body=[s.to_dict() for s in draft.body] if draft else [],
        closer=draft.closer.to_dict() if draft else None,
        code_snippets=[s.to_dict() for s in draft.code_snippets] if draft else [],
        exam_questions=questions,
        score=chapter.score,
        verdict=chapter.latest_verdict.verdict.value if chapter.latest_verdict else None,
    )


def average_score(scores: list[Optional[float]]) -> Optional[int]:
    """Rounded mean of the positive scores, or None when there are none."""
    usable = [s for s in scores if s is not None and s > 0]
    if not usable:
        return None
    return math.floor(sum(usable) / len(usable) + 0.5)


def compile_book(spec: JobSpec, chapters: list[Chapter]) -> CompiledBook:
    """Assemble every chapter, approved or failed, in outline order.

    Raises:
        ValidationError: No chapters, or a chapter that has not finished.
    """
    if not chapters:
        raise ValidationError("No chapters to compile", missing=["chapters"])
    unfinished = [c.id for c in chapters if c.status not in TERMINAL_CHAPTER_STATES]
    if unfinished:
        raise ValidationError(
            f"Chapters not finished: {', '.join(unfinished)}", missing=unfinished
        )

    ordered = sorted(chapters, key=lambda c: c.index)
    compiled = [compile_chapter(c) for c in ordered]

    exam_questions = []
    for chapter in compiled:
        for q in chapter.exam_questions:
            exam_questions.append({**q, "chapter_id": chapter.chapter_id, "chapter_title": chapter.title})
    total_snippets = sum(len(c.code_snippets) for c in compiled)

    stats = BookStats(
        total_chapters=len(compiled),
        total_exam_questions=len(exam_questions),
        total_code_snippets=total_snippets,
        average_score=average_score([c.score for c in compiled]),
        chapter_scores=[chapter_score(c) for c in ordered],
    )
    name = spec.syllabus_name or spec.syllabus_id
    return CompiledBook(
        title=spec.book_title or f"{name} Study Guide",
        subtitle=spec.book_subtitle,
        metadata={
            "syllabus_id": spec.syllabus_id,
            "syllabus_name": spec.syllabus_name,
            "target_audience": spec.target_audience,
            "generation_strategy": spec.generation_strategy,
            "generated_at": utcnow().isoformat(),
            "approved_chapters": sum(1 for c in compiled if c.status == "approved"),
        },
        chapters=compiled,
        exam_questions=exam_questions,
        stats=stats,
    )


class CompileStage(BaseStage):
    name = "compile"

    def run(self, ctx: JobContext, chapters: list[Chapter]) -> CompiledBook:
        book = compile_book(ctx.job.spec, chapters)
        ctx.log.info(
            f"Compiled '{book.title}': {book.stats.total_chapters} chapters, "
            f"{book.stats.total_exam_questions} questions, average {book.stats.average_score}"
        )
        return book
