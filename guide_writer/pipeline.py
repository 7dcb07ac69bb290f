"""Job orchestrator: outline, per-chapter research and revision loop, compile."""

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Union

import pydantic
from loguru import logger

from .clients import (
    GenerationClient,
    PersistenceClient,
    ResearchClient,
    StandardsClient,
)
from .clients.base import (
    GenerationService,
    PersistenceService,
    RetrievalService,
    StandardsService,
)
from .config import Config
from .engine.context import JobContext
from .engine.retry import RetryExecutor
from .engine.revision import RevisionController
from .engine.transitions import fail_chapter, transition_chapter, transition_job
from .errors import JobCancelled, PipelineError, ValidationError
from .models.job_state import Chapter, ChapterStatus, Job, JobStatus
from .models.reports import CompiledBook, JobResult, JobSpec
from .stages import (
    CodeStage,
    CompileStage,
    DraftStage,
    OutlineStage,
    ResearchStage,
    ReviewStage,
    chapter_summary,
)
from .stages.compile import chapter_score, compile_chapter
from .utils.progress import ProgressCallback, noop_progress


class JobOrchestrator:
    """Runs generation jobs against a fixed set of collaborators.

    One orchestrator can run many jobs one after another; all per-job state
    lives in the ``JobContext`` created by ``run_job``.
    """

    def __init__(
        self,
        config: Config,
        generation: GenerationService,
        retrieval: RetrievalService,
        standards: StandardsService,
        persistence: PersistenceService,
        progress: ProgressCallback = noop_progress,
        sleep: Optional[Callable[[float], None]] = None,
    ):
        self.config = config
        self.generation = generation
        self.retrieval = retrieval
        self.standards = standards
        self.persistence = persistence
        self.progress = progress
        self.retry = RetryExecutor(
            config.retry.max_attempts, config.retry.backoff_ms, sleep or time.sleep
        )

        self.outline = OutlineStage()
        self.research = ResearchStage()
        self.compiler = CompileStage()
        self.revision = RevisionController(
            draft=DraftStage(),
            review=ReviewStage(),
            code=CodeStage() if config.pipeline.enable_code else None,
            max_attempts=config.revision.max_attempts,
        )
        self._cancel = threading.Event()

    @classmethod
    def from_config(cls, config: Config, progress: ProgressCallback = noop_progress) -> "JobOrchestrator":
        """Wire the HTTP-backed collaborators described by ``config``."""
        return cls(
            config,
            generation=GenerationClient(config.generation),
            retrieval=ResearchClient(config.services),
            standards=StandardsClient(config.services),
            persistence=PersistenceClient(config.services),
            progress=progress,
        )

    def close(self) -> None:
        for service in (self.generation, self.retrieval, self.standards, self.persistence):
            close = getattr(service, "close", None)
            if close is not None:
                close()

    def cancel(self) -> None:
        """Ask the running job to stop at its next stage boundary."""
        self._cancel.set()

    def run_job(self, spec: Union[JobSpec, dict[str, Any]]) -> JobResult:
        job_id = str(uuid.uuid4())
        try:
            if not isinstance(spec, JobSpec):
                spec = JobSpec.model_validate(spec)
        except pydantic.ValidationError as e:
            missing = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            error = ValidationError(f"Invalid job request: {', '.join(missing)}", missing=missing)
            logger.error(str(error))
            job = Job(id=job_id, spec=spec, error=f"{error.kind}: {error}")
            transition_job(job, JobStatus.FAILED)
            return self._result(job, None)

        self._cancel.clear()
        job = Job(id=job_id, spec=spec)
        ctx = JobContext(
            job=job,
            config=self.config,
            generation=self.generation,
            retrieval=self.retrieval,
            standards=self.standards,
            persistence=self.persistence,
            retry=self.retry,
            cancel_event=self._cancel,
            progress=self.progress,
        )
        ctx.log.info(f"Job started: {spec.syllabus_id} for {spec.target_audience}")
        ctx.persist("job", lambda: self.persistence.create_job({
            "id": job.id,
            "syllabus_id": spec.syllabus_id,
            "syllabus_name": spec.syllabus_name,
            "target_audience": spec.target_audience,
            "generation_strategy": spec.generation_strategy,
            "status": job.status.value,
        }))

        book: Optional[CompiledBook] = None
        try:
            transition_job(job, JobStatus.RUNNING)
            ctx.persist("job status", lambda: self.persistence.update_job(job.id, {"status": job.status.value}))

            self.progress("Planning outline...", 0, 0, 0)
            with ctx.stage("outline", input_summary=spec.syllabus_id):
                job.chapters = self.outline.run(ctx)
            ctx.persist(
                "chapter count",
                lambda: self.persistence.update_job(job.id, {"total_chapters": len(job.chapters)}),
            )

            self._run_chapters(ctx)

            self.progress("Compiling book...", ctx.finished_chapters, len(job.chapters), 0)
            with ctx.stage("compile", input_summary=f"{len(job.chapters)} chapters"):
                book = self.compiler.run(ctx, job.chapters)
            ctx.persist("book", lambda: self.persistence.create_book({
                "job_id": job.id,
                "title": book.title,
                "subtitle": book.subtitle,
                "book_json": book.model_dump(mode="json"),
                "stats": book.stats.model_dump(mode="json"),
            }))
            transition_job(job, JobStatus.COMPLETED)
        except JobCancelled as e:
            ctx.log.warning(str(e))
            for chapter in job.chapters:
                fail_chapter(chapter, str(e), e.kind)
            self._fail(job, e)
        except PipelineError as e:
            ctx.log.error(f"Job failed: {e}")
            self._fail(job, e)

        ctx.persist("job status", lambda: self.persistence.update_job(job.id, {
            "status": job.status.value,
            "completed_chapters": ctx.finished_chapters,
            "completed_at": job.completed_at.isoformat() if job.completed_at else None,
            "error_message": job.error,
        }))
        ctx.log.info(f"Job {job.status.value}")
        return self._result(job, book)

    def _fail(self, job: Job, error: PipelineError) -> None:
        job.error = f"{error.kind}: {error}"
        if job.status in (JobStatus.PENDING, JobStatus.RUNNING):
            transition_job(job, JobStatus.FAILED)

    def _run_chapters(self, ctx: JobContext) -> None:
        chapters = ctx.job.chapters
        workers = min(self.config.pipeline.max_parallel_chapters, len(chapters))
        if workers <= 1:
            for chapter in chapters:
                self._run_chapter(ctx, chapter)
            return

        errors: list[BaseException] = []
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._run_chapter, ctx, c) for c in chapters]
            for future in futures:
                error = future.exception()
                if error is not None:
                    errors.append(error)
        for error in errors:
            if not isinstance(error, JobCancelled):
                raise error
        if errors:
            raise errors[0]

    def _run_chapter(self, ctx: JobContext, chapter: Chapter) -> None:
        total = len(ctx.job.chapters)
        ctx.progress(f"Researching {chapter.title}...", ctx.finished_chapters, total, 0)
        try:
            if not chapter.objectives:
                raise ValidationError(
                    f"Chapter {chapter.id} has no learning objectives", missing=["objectives"]
                )
            transition_chapter(chapter, ChapterStatus.RESEARCHING)
            with ctx.stage("research", chapter.id, input_summary=chapter.title):
                chapter.fact_sheet = self.research.run(ctx, chapter)
            self.revision.run(ctx, chapter, chapter.fact_sheet, ctx.history.snapshot())
        except ValidationError as e:
            ctx.log.error(f"Chapter {chapter.id} failed: {e}")
            fail_chapter(chapter, str(e), e.kind)

        attempt = chapter.final_attempt
        draft = attempt.draft if attempt else chapter.draft
        if draft is not None:
            chapter.summary = chapter_summary(chapter, draft)
            ctx.history.append(chapter.title, chapter.summary)

        ctx.persist(f"chapter {chapter.id}", lambda: self.persistence.create_chapter({
            "job_id": ctx.job.id,
            "chapter_id": chapter.id,
            "chapter_number": chapter.index + 1,
            "title": chapter.title,
            "domain_id": chapter.domain_id,
            "status": chapter.status.value,
            "score": chapter.score,
            "attempts": chapter.attempts,
            "error_message": chapter.error,
            "summary": chapter.summary,
            "exam_questions": compile_chapter(chapter).exam_questions,
            "json_content": draft.to_dict() if draft else None,
        }))
        finished = ctx.chapter_finished()
        ctx.persist(
            "progress",
            lambda: self.persistence.update_job(ctx.job.id, {"completed_chapters": finished}),
        )
        score = "-" if chapter.score is None else f"{chapter.score:g}"
        ctx.progress(f"{chapter.title}: {chapter.status.value} ({score})", finished, total, chapter.attempts)

    def _result(self, job: Job, book: Optional[CompiledBook]) -> JobResult:
        return JobResult(
            job_id=job.id,
            status=job.status.value,
            book=book,
            chapter_scores=[chapter_score(c) for c in job.chapters],
            error=job.error,
            started_at=job.created_at,
            completed_at=job.completed_at,
            logs=[
                {**entry.to_payload(), "created_at": entry.created_at.isoformat()}
                for entry in job.logs
            ],
        )
