"""Keyword-based learning-objective coverage check.

This is a cheap textual heuristic, not semantic matching: an objective counts
as covered when enough of its description's keywords occur somewhere in the
content. The result feeds review feedback, never the approval score.
"""

import math
import re
from typing import Iterable

from ..models.content import LearningObjective
from ..models.job_state import CoverageReport

STOP_WORDS = frozenset({
    "und", "die", "der", "das", "für", "von", "mit", "den", "des", "ein",
    "eine", "ist", "are", "the", "and", "for", "can", "will", "how", "was", "bei",
})
MIN_KEYWORD_LENGTH = 3
DEFAULT_THRESHOLD = 0.5

_NON_WORD = re.compile(r"[^a-zäöüß\s]")


def keywords(description: str) -> list[str]:
    """Lowercased words of at least three letters, stop words removed."""
    words = _NON_WORD.sub(" ", description.lower()).split()
    return [w for w in words if len(w) >= MIN_KEYWORD_LENGTH and w not in STOP_WORDS]


def keyword_ratio(description: str, content: str) -> float:
    """Fraction of the description's keywords found in ``content``.

    Args:
        description: Objective text to tokenize.
        content: Rendered content; matched case-insensitively by substring.

    Returns:
        Float between 0.0 and 1.0. An objective with no usable keywords
        scores 0.0.
    """
    kws = keywords(description)
    if not kws:
        return 0.0
    haystack = content.lower()
    found = sum(1 for kw in kws if kw in haystack)
    return found / len(kws)


def coverage(
    objectives: Iterable[LearningObjective],
    content: str,
    threshold: float = DEFAULT_THRESHOLD,
) -> CoverageReport:
    """Compute per-objective coverage for ``content``. Pure function."""
    per_objective: dict[str, bool] = {}
    for objective in objectives:
        per_objective[objective.id] = keyword_ratio(objective.description, content) >= threshold

    total = len(per_objective)
    covered = sum(1 for c in per_objective.values() if c)
    percent = math.floor(covered / total * 100 + 0.5) if total else 100
    return CoverageReport(
        per_objective=per_objective,
        percent=percent,
        all_covered=covered == total,
    )
