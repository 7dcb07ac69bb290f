"""Draft-review-revise loop for a single chapter."""

from dataclasses import dataclass
from typing import Optional

from .context import JobContext
from .transitions import (
    TERMINAL_REVISION_STATES,
    RevisionState,
    after_draft,
    after_review,
    fail_chapter,
    transition_chapter,
)
from ..errors import (
    ExhaustedRevisions,
    PipelineError,
    QualityRejection,
    RejectedFailure,
    TransientFailure,
    ValidationError,
)
from ..models.content import DraftContent, FactSheet
from ..models.job_state import Chapter, ChapterStatus, RevisionAttempt
from ..stages.code import CodeStage
from ..stages.draft import DraftStage, RevisionNotes
from ..stages.review import ReviewStage, require_approval

# Failures that end a chapter but not the job.
CHAPTER_FAILURES = (TransientFailure, RejectedFailure, ValidationError)


@dataclass
class RevisionOutcome:
    state: Optional[RevisionState]
    attempts: int
    best: Optional[RevisionAttempt] = None
    error: Optional[PipelineError] = None

    @property
    def approved(self) -> bool:
        return self.state == RevisionState.APPROVED


class RevisionController:
    """Run draft, code and review until a draft is approved or attempts run out.

    The chapter's ``revision_history`` never grows beyond ``max_attempts``.
    Each rejected attempt hands its feedback and draft text to the next one.
    """

    def __init__(
        self,
        draft: DraftStage,
        review: ReviewStage,
        code: Optional[CodeStage] = None,
        max_attempts: int = 3,
    ):
        self.draft = draft
        self.review = review
        self.code = code
        self.max_attempts = max_attempts

    def run(
        self,
        ctx: JobContext,
        chapter: Chapter,
        fact_sheet: FactSheet,
        history: str = "",
    ) -> RevisionOutcome:
        state = RevisionState.DRAFTING
        notes: Optional[RevisionNotes] = None
        draft: Optional[DraftContent] = None
        transition_chapter(chapter, ChapterStatus.DRAFTING)

        try:
            while state not in TERMINAL_REVISION_STATES:
                if state == RevisionState.DRAFTING:
                    draft = self._draft(ctx, chapter, fact_sheet, history, notes)
                    chapter.draft = draft
                    transition_chapter(chapter, ChapterStatus.REVIEWING)
                    state = after_draft(state)
                    continue

                number = chapter.attempts + 1
                with ctx.stage("review", chapter.id, input_summary=f"attempt {number}"):
                    verdict = self.review.run(ctx, chapter, draft, attempt=number)
                chapter.record_attempt(RevisionAttempt(number, draft, verdict))
                state = after_review(state, verdict, chapter.attempts, self.max_attempts)
                ctx.progress(f"{chapter.title}: review {number}", ctx.finished_chapters,
                             len(ctx.job.chapters), number)
                try:
                    require_approval(verdict)
                except QualityRejection as rejection:
                    ctx.log.info(
                        f"{chapter.id} attempt {number} rejected at {rejection.score:g}"
                    )
                    if state == RevisionState.DRAFTING:
                        notes = RevisionNotes(
                            attempt=number,
                            feedback=tuple(rejection.feedback),
                            previous_draft=draft.render(),
                        )
                        transition_chapter(chapter, ChapterStatus.DRAFTING)
        except CHAPTER_FAILURES as e:
            ctx.log.error(f"Chapter {chapter.id} failed: {e}")
            best = chapter.best_attempt
            chapter.draft = best.draft if best else draft
            fail_chapter(chapter, str(e), e.kind)
            return RevisionOutcome(state=None, attempts=chapter.attempts, best=best, error=e)

        best = chapter.best_attempt
        if state == RevisionState.APPROVED:
            transition_chapter(chapter, ChapterStatus.APPROVED)
            return RevisionOutcome(state=state, attempts=chapter.attempts, best=best)

        exhausted = ExhaustedRevisions(chapter.attempts, best.score if best else 0.0)
        ctx.log.warning(f"Chapter {chapter.id}: {exhausted}")
        chapter.draft = best.draft if best else draft
        fail_chapter(chapter, str(exhausted), exhausted.kind)
        return RevisionOutcome(state=state, attempts=chapter.attempts, best=best, error=exhausted)

    def _draft(
        self,
        ctx: JobContext,
        chapter: Chapter,
        fact_sheet: FactSheet,
        history: str,
        notes: Optional[RevisionNotes],
    ) -> DraftContent:
        summary = f"attempt {chapter.attempts + 1}, {len(chapter.objectives)} objectives"
        with ctx.stage("draft", chapter.id, input_summary=summary):
            draft = self.draft.run(ctx, chapter, fact_sheet, history, notes)
        if not (self.code and draft.code_requests):
            return draft
        try:
            with ctx.stage("code", chapter.id, input_summary=f"{len(draft.code_requests)} requests"):
                return self.code.run(ctx, chapter, draft)
        except TransientFailure as e:
            ctx.log.warning(f"Code generation unavailable for {chapter.id}, reviewing without snippets: {e}")
            return draft
