"""Review stage: score a draft and decide approve or revise."""

import json
from typing import Optional

from .base import BaseStage
from ..engine.context import JobContext
from ..engine.coverage import coverage
from ..errors import QualityRejection, RejectedFailure, TransientFailure
from ..models.content import DraftContent
from ..models.job_state import Chapter, CoverageReport, ReviewVerdict, Verdict
from ..models.parsed import ParseResult, Unparsed

SYSTEM = """You are the quality editor of a certification study guide. You audit chapters written by other authors and decide whether they are exam-ready.

Audit criteria:
1. Coverage: every listed learning objective is addressed at its cognitive level
2. Scope: ONLY the listed objectives are covered; flag anything else as hallucinated_topics
3. Tone: neutral and factual, no personal address, acronyms defined on first use
4. Code: examples are complete, correct and free of placeholders
5. Structure and exercises: scenario, concepts, takeaways and meaningful exam questions

Score 0-100: objective completeness 30, clarity and tone 25, code quality 20, didactic structure 15, exercises 10.

Return JSON: {"score", "hallucinated_topics": [], "audit_log": {"satisfied_LOs": [], "missing_LOs": []}, "feedback": {"strengths": [], "required_changes": []}, "exam_questions": [{"question", "options": [], "correct", "bloom_level", "learning_objective", "explanation"}]}"""

REVIEW_CONTENT_CHARS = 12000
COMPLIANT_STATUSES = frozenset({"compliant", "pass", "passed", "ok", "valid"})


def _strings(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if v]


def _is_compliant(compliance: Optional[dict]) -> bool:
    if compliance is None:
        return True
    return str(compliance.get("status", "")).lower() in COMPLIANT_STATUSES


def build_verdict(
    result: ParseResult,
    report: CoverageReport,
    compliance: Optional[dict],
    threshold: float,
) -> ReviewVerdict:
    """Combine the editor's answer with the coverage and compliance checks.

    Approval depends on the score alone; coverage and compliance only add
    feedback. An answer that does not parse scores 0.
    """
    if isinstance(result, Unparsed):
        data: dict = {
            "score": 0,
            "feedback": {"required_changes": [f"Failed to parse review response: {result.reason}"]},
        }
    elif isinstance(result.data, dict):
        data = result.data
    else:
        data = {"score": 0, "feedback": {"required_changes": ["Review response was not a JSON object"]}}

    try:
        score = float(data.get("score") or 0)
    except (TypeError, ValueError):
        score = 0.0
    score = min(max(score, 0.0), 100.0)

    editor_feedback = data.get("feedback") if isinstance(data.get("feedback"), dict) else {}
    audit = data.get("audit_log") if isinstance(data.get("audit_log"), dict) else {}
    out_of_scope = _strings(data.get("hallucinated_topics"))

    feedback = _strings(editor_feedback.get("required_changes"))
    if not report.all_covered:
        feedback.append(f"Missing objective coverage: {', '.join(report.missing)}")
    if out_of_scope:
        feedback.append(f"Out-of-scope topics detected: {', '.join(out_of_scope)}")
    if not _is_compliant(compliance):
        findings = _strings(compliance.get("findings"))
        feedback.append(
            "Compliance issues detected" + (f": {'; '.join(findings)}" if findings else "")
        )

    gaps = list(report.missing)
    for lo_id in _strings(audit.get("missing_LOs")):
        if lo_id not in gaps:
            gaps.append(lo_id)

    questions = data.get("exam_questions")
    return ReviewVerdict(
        score=score,
        verdict=Verdict.APPROVED if score >= threshold else Verdict.NEEDS_REVISION,
        coverage_gaps=tuple(gaps),
        out_of_scope=tuple(out_of_scope),
        feedback=tuple(feedback),
        strengths=tuple(_strings(editor_feedback.get("strengths"))),
        exam_questions=tuple(q for q in questions if isinstance(q, dict)) if isinstance(questions, list) else (),
        coverage=report,
        compliance=compliance,
    )


def require_approval(verdict: ReviewVerdict) -> ReviewVerdict:
    """Raise ``QualityRejection`` unless the verdict approves the draft."""
    if not verdict.approved:
        raise QualityRejection(verdict.score, list(verdict.feedback))
    return verdict


class ReviewStage(BaseStage):
    name = "review"

    def run(self, ctx: JobContext, chapter: Chapter, draft: DraftContent, attempt: int = 1) -> ReviewVerdict:
        content = draft.render()
        try:
            compliance = ctx.retry.invoke(
                lambda: ctx.standards.validate_compliance(content),
                label=f"review:{chapter.id}:compliance",
            )
        except (TransientFailure, RejectedFailure) as e:
            ctx.log.warning(f"Compliance check unavailable for {chapter.id}: {e}")
            compliance = None

        report = coverage(
            chapter.objectives, content, threshold=ctx.config.revision.coverage_threshold
        )
        objectives = "\n".join(f"- {o.id} ({o.level}): {o.description}" for o in chapter.objectives)
        snippets = len(draft.code_snippets)
        validated = sum(1 for s in draft.code_snippets if s.validated)
        prompt = (
            f"## Audit Request (attempt {attempt})\n\n"
            f"Chapter {chapter.index + 1}: {chapter.title}\n\n"
            f"### Target Learning Objectives (ONLY these should be covered)\n{objectives}\n\n"
            f"### Compliance Check\n{json.dumps(compliance, ensure_ascii=False) if compliance else 'unavailable'}\n\n"
            f"### Coverage Pre-Check\n{report.percent}% covered"
            + (f", missing: {', '.join(report.missing)}" if report.missing else "")
            + f"\n\n### Code\n{snippets} snippets, {validated} validated\n\n"
            f"### Chapter Content\n{content[:REVIEW_CONTENT_CHARS]}\n\n"
            f"Audit the chapter and return the JSON verdict."
        )
        result = self.generate_structured(ctx, SYSTEM, prompt, "review", temperature=0.2)
        verdict = build_verdict(
            result, report, compliance, ctx.config.revision.approval_threshold
        )
        ctx.log.info(
            f"Review {chapter.id} attempt {attempt}: {verdict.score:g} "
            f"({verdict.verdict.value}, coverage {report.percent}%)"
        )
        return verdict
