"""State machines for jobs, chapters and the revision loop.

Transitions are plain functions over explicit tables so each move can be
tested on its own.
"""

from enum import Enum
from typing import Optional

from ..errors import InvalidTransition
from ..models.job_state import (
    Chapter,
    ChapterStatus,
    Job,
    JobStatus,
    ReviewVerdict,
    utcnow,
)

JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.PENDING: frozenset({JobStatus.RUNNING, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.FAILED: frozenset(),
}

CHAPTER_TRANSITIONS: dict[ChapterStatus, frozenset[ChapterStatus]] = {
    ChapterStatus.QUEUED: frozenset({ChapterStatus.RESEARCHING, ChapterStatus.FAILED}),
    ChapterStatus.RESEARCHING: frozenset({ChapterStatus.DRAFTING, ChapterStatus.FAILED}),
    ChapterStatus.DRAFTING: frozenset({ChapterStatus.REVIEWING, ChapterStatus.FAILED}),
    ChapterStatus.REVIEWING: frozenset({
        ChapterStatus.DRAFTING, ChapterStatus.APPROVED, ChapterStatus.FAILED,
    }),
    ChapterStatus.APPROVED: frozenset(),
    ChapterStatus.FAILED: frozenset(),
}

TERMINAL_CHAPTER_STATES = frozenset({ChapterStatus.APPROVED, ChapterStatus.FAILED})


def transition_job(job: Job, target: JobStatus) -> Job:
    if target not in JOB_TRANSITIONS[job.status]:
        raise InvalidTransition(f"Job {job.id}: {job.status.value} -> {target.value}")
    job.status = target
    if target in (JobStatus.COMPLETED, JobStatus.FAILED):
        job.completed_at = utcnow()
    return job


def transition_chapter(chapter: Chapter, target: ChapterStatus) -> Chapter:
    if target not in CHAPTER_TRANSITIONS[chapter.status]:
        raise InvalidTransition(
            f"Chapter {chapter.id}: {chapter.status.value} -> {target.value}"
        )
    if target == ChapterStatus.APPROVED:
        verdict = chapter.latest_verdict
        if verdict is None or not verdict.approved:
            raise InvalidTransition(
                f"Chapter {chapter.id} cannot be approved without an approving review"
            )
    chapter.status = target
    return chapter


def fail_chapter(chapter: Chapter, reason: str, kind: Optional[str] = None) -> Chapter:
    """Move a chapter to ``failed`` from wherever it is; no-op once terminal."""
    if chapter.status in TERMINAL_CHAPTER_STATES:
        return chapter
    chapter.error = reason
    chapter.error_kind = kind
    return transition_chapter(chapter, ChapterStatus.FAILED)


class RevisionState(str, Enum):
    DRAFTING = "drafting"
    REVIEWING = "reviewing"
    APPROVED = "approved"
    EXHAUSTED = "exhausted"


TERMINAL_REVISION_STATES = frozenset({RevisionState.APPROVED, RevisionState.EXHAUSTED})


def after_draft(state: RevisionState) -> RevisionState:
    if state != RevisionState.DRAFTING:
        raise InvalidTransition(f"Draft finished while {state.value}")
    return RevisionState.REVIEWING


def after_review(
    state: RevisionState,
    verdict: ReviewVerdict,
    attempts: int,
    max_attempts: int,
) -> RevisionState:
    """Next revision state once ``attempts`` reviews have come back."""
    if state != RevisionState.REVIEWING:
        raise InvalidTransition(f"Review finished while {state.value}")
    if verdict.approved:
        return RevisionState.APPROVED
    if attempts >= max_attempts:
        return RevisionState.EXHAUSTED
    return RevisionState.DRAFTING
