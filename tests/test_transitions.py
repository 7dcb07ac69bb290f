import pytest

from guide_writer.engine.transitions import (
    RevisionState,
    after_draft,
    after_review,
    fail_chapter,
    transition_chapter,
    transition_job,
)
from guide_writer.errors import InvalidTransition
from guide_writer.models.content import DraftContent, Section
from guide_writer.models.job_state import (
    Chapter,
    ChapterStatus,
    Job,
    JobStatus,
    ReviewVerdict,
    RevisionAttempt,
    Verdict,
)
from guide_writer.models.parsed import Parsed


def _draft():
    section = Section("opener", "Intro", Parsed({"chapter_intro": "x"}))
    return DraftContent(opener=section, body=(), closer=section)


def _verdict(score, approved):
    return ReviewVerdict(score=score, verdict=Verdict.APPROVED if approved else Verdict.NEEDS_REVISION)


def _chapter(status=ChapterStatus.QUEUED):
    return Chapter(id="ch-1", job_id="job-1", index=0, title="Intro", status=status)


def test_job_lifecycle():
    job = Job(id="job-1", spec=None)
    transition_job(job, JobStatus.RUNNING)
    assert job.completed_at is None
    transition_job(job, JobStatus.COMPLETED)
    assert job.completed_at is not None


def test_terminal_job_cannot_move():
    job = Job(id="job-1", spec=None, status=JobStatus.FAILED)
    with pytest.raises(InvalidTransition):
        transition_job(job, JobStatus.RUNNING)


def test_chapter_cannot_skip_research():
    with pytest.raises(InvalidTransition):
        transition_chapter(_chapter(), ChapterStatus.DRAFTING)


def test_chapter_approval_requires_approving_verdict():
    chapter = _chapter(ChapterStatus.REVIEWING)
    chapter.record_attempt(RevisionAttempt(1, _draft(), _verdict(70, False)))
    with pytest.raises(InvalidTransition):
        transition_chapter(chapter, ChapterStatus.APPROVED)

    transition_chapter(chapter, ChapterStatus.DRAFTING)
    transition_chapter(chapter, ChapterStatus.REVIEWING)
    chapter.record_attempt(RevisionAttempt(2, _draft(), _verdict(92, True)))
    transition_chapter(chapter, ChapterStatus.APPROVED)
    assert chapter.status == ChapterStatus.APPROVED


def test_fail_chapter_is_idempotent_once_terminal():
    chapter = _chapter(ChapterStatus.DRAFTING)
    fail_chapter(chapter, "generation down", "transient_failure")
    fail_chapter(chapter, "second reason", "other")
    assert chapter.status == ChapterStatus.FAILED
    assert chapter.error == "generation down"
    assert chapter.error_kind == "transient_failure"


def test_attempts_must_be_sequential():
    chapter = _chapter(ChapterStatus.REVIEWING)
    with pytest.raises(ValueError):
        chapter.record_attempt(RevisionAttempt(2, _draft(), _verdict(50, False)))


def test_best_attempt_prefers_earliest_on_tie():
    chapter = _chapter(ChapterStatus.REVIEWING)
    first = RevisionAttempt(1, _draft(), _verdict(80, False))
    chapter.record_attempt(first)
    chapter.record_attempt(RevisionAttempt(2, _draft(), _verdict(60, False)))
    chapter.record_attempt(RevisionAttempt(3, _draft(), _verdict(80, False)))
    assert chapter.best_attempt is first


@pytest.mark.parametrize("attempts, approved, expected", [
    (1, True, RevisionState.APPROVED),
    (1, False, RevisionState.DRAFTING),
    (2, False, RevisionState.DRAFTING),
    (3, False, RevisionState.EXHAUSTED),
    (3, True, RevisionState.APPROVED),
])
def test_after_review(attempts, approved, expected):
    verdict = _verdict(95 if approved else 40, approved)
    assert after_review(RevisionState.REVIEWING, verdict, attempts, 3) == expected


def test_revision_moves_are_checked():
    assert after_draft(RevisionState.DRAFTING) == RevisionState.REVIEWING
    with pytest.raises(InvalidTransition):
        after_draft(RevisionState.REVIEWING)
    with pytest.raises(InvalidTransition):
        after_review(RevisionState.DRAFTING, _verdict(95, True), 1, 3)
