from .accumulator import AccumulatorHandle, AccumulatorStore
from .context import HistoryDigest, JobContext
from .coverage import coverage, keywords
from .fanout import Branch, BranchResult, join_all
from .retry import RetryExecutor
from .transitions import (
    RevisionState,
    after_draft,
    after_review,
    fail_chapter,
    transition_chapter,
    transition_job,
)

__all__ = [
    "AccumulatorHandle",
    "AccumulatorStore",
    "Branch",
    "BranchResult",
    "HistoryDigest",
    "JobContext",
    "RetryExecutor",
    "RevisionState",
    "after_draft",
    "after_review",
    "coverage",
    "fail_chapter",
    "join_all",
    "keywords",
    "transition_chapter",
    "transition_job",
]
