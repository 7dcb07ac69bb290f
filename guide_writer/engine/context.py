"""Per-job execution context passed through every stage call."""

import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Optional

from loguru import logger

from ..clients.base import (
    GenerationService,
    PersistenceService,
    RetrievalService,
    StandardsService,
)
from ..config import Config
from ..errors import JobCancelled, PipelineError
from ..models.job_state import Job, LogEntry
from ..utils.progress import ProgressCallback, noop_progress
from .accumulator import AccumulatorStore
from .retry import RetryExecutor


class HistoryDigest:
    """Summaries of finished chapters, readable by chapters still running."""

    def __init__(self):
        self._lock = threading.Lock()
        self._entries: list[str] = []

    def append(self, title: str, summary: str) -> None:
        if not summary:
            return
        with self._lock:
            self._entries.append(f"--- Chapter: {title} ---\n{summary}")

    def snapshot(self) -> str:
        with self._lock:
            return "\n\n".join(self._entries)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@dataclass
class JobContext:
    job: Job
    config: Config
    generation: GenerationService
    retrieval: RetrievalService
    standards: StandardsService
    persistence: PersistenceService
    retry: RetryExecutor
    cancel_event: threading.Event = field(default_factory=threading.Event)
    progress: ProgressCallback = noop_progress
    deadline: Optional[float] = None

    def __post_init__(self):
        self.accumulators = AccumulatorStore(self.job.id)
        self.history = HistoryDigest()
        self.log = logger.bind(job_id=self.job.id[:8])
        self._counter_lock = threading.Lock()
        self.finished_chapters = 0
        if self.deadline is None:
            self.deadline = time.monotonic() + self.config.pipeline.job_timeout_seconds

    def check_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise JobCancelled(f"Job {self.job.id} was cancelled")
        if time.monotonic() > self.deadline:
            raise JobCancelled(
                f"Job {self.job.id} exceeded {self.config.pipeline.job_timeout_seconds:g}s"
            )

    def chapter_finished(self) -> int:
        with self._counter_lock:
            self.finished_chapters += 1
            return self.finished_chapters

    def emit(self, entry: LogEntry) -> None:
        self.job.logs.append(entry)
        self.persist(
            f"log {entry.workflow_name}",
            lambda: self.persistence.create_log(entry.to_payload()),
        )

    def persist(self, label: str, call: Callable[[], Any]) -> Any:
        """Best-effort write to the persistence API; failures are only logged."""
        try:
            return self.retry.invoke(call, label=f"persist:{label}")
        except PipelineError as e:
            self.log.warning(f"Could not persist {label}: {e}")
            return None

    @contextmanager
    def stage(
        self,
        workflow: str,
        chapter_id: Optional[str] = None,
        input_summary: Optional[str] = None,
    ) -> Iterator[None]:
        """Stage boundary: check for cancellation, then time and log the stage."""
        self.check_cancelled()
        self.emit(LogEntry(
            job_id=self.job.id,
            workflow_name=workflow,
            chapter_id=chapter_id,
            status="started",
            input_summary=input_summary,
        ))
        start = time.monotonic()
        try:
            yield
        except Exception as e:
            self.emit(LogEntry(
                job_id=self.job.id,
                workflow_name=workflow,
                chapter_id=chapter_id,
                status="failed",
                duration_ms=int((time.monotonic() - start) * 1000),
                error_message=str(e)[:500],
                input_summary=input_summary,
            ))
            raise
        self.emit(LogEntry(
            job_id=self.job.id,
            workflow_name=workflow,
            chapter_id=chapter_id,
            status="completed",
            duration_ms=int((time.monotonic() - start) * 1000),
            input_summary=input_summary,
        ))
