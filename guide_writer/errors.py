"""Error taxonomy for the generation pipeline.

Every failure the orchestrator reasons about derives from ``PipelineError``.
Library exceptions (httpx, openai) are translated into these kinds by the
retry executor; anything that is not translated is a programming error and is
allowed to propagate.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for all pipeline failures."""

    kind = "pipeline_error"


class ValidationError(PipelineError):
    """Malformed or incomplete input to a stage. Never retried."""

    kind = "validation_error"

    def __init__(self, message: str, *, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class TransientFailure(PipelineError):
    """An external call kept failing at the transport level until attempts ran out."""

    kind = "transient_failure"

    def __init__(self, message: str, *, attempts: int, last_error: Optional[BaseException] = None):
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error


class RejectedFailure(PipelineError):
    """An external call returned a well-formed rejection (4xx, unusable payload)."""

    kind = "rejected_failure"

    def __init__(self, message: str, *, status_code: Optional[int] = None, raw: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.raw = raw


class MalformedResponse(RejectedFailure):
    """A collaborator answered, but not in the shape its adapter expects."""

    def __init__(self, message: str, *, raw: Any = None):
        super().__init__(message, raw=raw)


class QualityRejection(PipelineError):
    """A review verdict of ``needs_revision``.

    Raised and consumed inside the revision controller only; it never escapes
    a chapter pipeline.
    """

    kind = "quality_rejection"

    def __init__(self, score: float, feedback: list[str]):
        super().__init__(f"Draft rejected with score {score}")
        self.score = score
        self.feedback = list(feedback)


class ExhaustedRevisions(PipelineError):
    """The revision loop hit its attempt bound without an approval."""

    kind = "exhausted_revisions"

    def __init__(self, attempts: int, best_score: float):
        super().__init__(
            f"No approval after {attempts} attempts (best score {best_score})"
        )
        self.attempts = attempts
        self.best_score = best_score


class JobCancelled(PipelineError):
    """The job was cancelled or ran past its deadline."""

    kind = "job_cancelled"


class InvalidTransition(PipelineError):
    """A state machine was asked to make a move it does not allow."""

    kind = "invalid_transition"


class AccumulatorClosed(PipelineError):
    """An accumulator handle was used after it was closed."""

    kind = "accumulator_closed"
