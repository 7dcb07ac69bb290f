"""Draft stage: write a chapter as opener, one body section per objective, closer."""

import re
from dataclasses import dataclass
from typing import Optional

from .base import BaseStage
from ..engine.context import JobContext
from ..errors import ValidationError
from ..models.content import DraftContent, FactSheet, LearningObjective, Section
from ..models.job_state import Chapter
from ..models.parsed import Parsed, ParseResult
from ..utils.text import truncate_text

CODE_REQUEST_RE = re.compile(r"<<CODE_REQUEST:\s*([^>]+?)\s*>>")

WRITER_RULES = """You are a technical writer of certification study guides for professionals.

Rules:
- Professional, instructive tone; no personal address
- Depth over breadth; explain complex terms with simple analogies
- Spell acronyms out on first mention
- No HTML and no Markdown, only structured JSON"""

SYSTEM_OPENER = WRITER_RULES + """

Task: write the OPENER of a chapter. Frame the chapter, do not teach the objectives yet.

Return JSON: {"header", "workload_minutes", "learning_objectives": [{"id", "description"}], "professional_context": "a realistic scenario left unresolved", "chapter_intro": "2-3 sentences"}"""

SYSTEM_BODY = WRITER_RULES + """

Task: write the content for ONE learning objective (500-800 words).
- Go from fundamentals to complexity and respect the objective's cognitive level (K1 remember ... K6 create)
- Where a code example helps, write the placeholder <<CODE_REQUEST: description>> instead of code

Return JSON: {"lo_id", "lo_description", "bloom_level", "content_sections": [{"heading", "paragraphs": [], "definition": {"term", "explanation"}, "best_practice", "pitfall", "code_request"}], "key_terms": []}"""

SYSTEM_CLOSER = WRITER_RULES + """

Task: write the CLOSER of a chapter. Resolve the opener's scenario, add 5-6 exam questions and one practical transfer exercise.

Return JSON: {"synthesis": "3-5 sentences", "scenario_resolution", "key_takeaways": [], "assessment_questions": [{"question", "options": [], "correct", "explanation"}], "drill": {"description", "requirements": [], "starter_hint"}}"""


@dataclass(frozen=True)
class RevisionNotes:
    """What a rejected attempt hands to the next draft."""

    attempt: int
    feedback: tuple[str, ...]
    previous_draft: str


def extract_code_requests(text: str) -> list[str]:
    return [m.strip() for m in CODE_REQUEST_RE.findall(text) if m.strip()]


class DraftStage(BaseStage):
    name = "draft"

    def run(
        self,
        ctx: JobContext,
        chapter: Chapter,
        fact_sheet: FactSheet,
        history: str = "",
        revision: Optional[RevisionNotes] = None,
    ) -> DraftContent:
        """Write one draft of ``chapter``.

        Body sections are generated strictly in objective order and each one
        sees the draft written so far, held in the chapter's accumulator.
        """
        if not chapter.objectives:
            raise ValidationError(
                f"Chapter {chapter.id} has no learning objectives",
                missing=["objectives"],
            )

        cfg = ctx.config.pipeline
        store = ctx.accumulators
        context = self._context_block(chapter, fact_sheet, history, revision, ctx)

        with store.session(chapter.id) as handle:
            opener = self._opener(ctx, chapter, context)
            store.append(handle, "draft", opener.text)

            for objective in chapter.objectives:
                so_far = "\n\n".join(store.read(handle, "draft") or [])
                section = self._body(
                    ctx,
                    chapter,
                    objective,
                    fact_sheet,
                    truncate_text(so_far, cfg.draft_context_chars, from_end=True),
                    revision,
                )
                store.append(handle, "body", section)
                store.append(handle, "draft", section.text)
                for request in extract_code_requests(section.text):
                    store.append(handle, "code_requests", request)

            # The closer sees the whole draft, opener included.
            closer = self._closer(ctx, chapter, "\n\n".join(store.read(handle, "draft") or []))
            body = store.read(handle, "body") or []
            requests = store.read(handle, "code_requests") or []

        ctx.log.info(
            f"Drafted {chapter.id}: {len(body)} sections, {len(requests)} code requests"
        )
        return DraftContent(
            opener=opener,
            body=tuple(body),
            closer=closer,
            code_requests=tuple(requests),
        )

    def _context_block(self, chapter, fact_sheet, history, revision, ctx) -> str:
        cfg = ctx.config.pipeline
        objectives = "\n".join(
            f"- {o.id} ({o.level}): {o.description}" for o in chapter.objectives
        )
        block = (
            f"## Chapter\nTitle: {chapter.title}\nDomain: {chapter.domain_id}\n"
            f"Audience: {ctx.job.spec.target_audience}\n\n"
            f"## Learning Objectives\n{objectives}\n"
        )
        if fact_sheet.syllabus_section:
            block += (
                f"\n## Syllabus\n"
                f"{truncate_text(str(fact_sheet.syllabus_section), cfg.evidence_chars)}\n"
            )
        if fact_sheet.summary or fact_sheet.sources:
            block += f"\n## Research\n{fact_sheet.summary or 'No summary.'}\n"
            if fact_sheet.sources:
                block += "Sources: " + ", ".join(fact_sheet.sources) + "\n"
        if history:
            block += (
                f"\n## Previous Chapters\n"
                f"{truncate_text(history, cfg.history_digest_chars)}\n"
            )
        if revision:
            feedback = "\n".join(f"- {f}" for f in revision.feedback) or "- (none)"
            block += (
                f"\n## Revision {revision.attempt + 1}\n"
                f"The previous draft was rejected. Required changes:\n{feedback}\n"
                f"\n## Rejected Draft (excerpt)\n"
                f"{truncate_text(revision.previous_draft, cfg.draft_context_chars)}\n"
            )
        return block

    def _opener(self, ctx: JobContext, chapter: Chapter, context: str) -> Section:
        result = self.generate_structured(
            ctx, SYSTEM_OPENER, context + "\nWrite the OPENER as JSON.", "draft.opener"
        )
        return Section(kind="opener", heading=_heading(result, chapter.title), result=result)

    def _body(
        self,
        ctx: JobContext,
        chapter: Chapter,
        objective: LearningObjective,
        fact_sheet: FactSheet,
        so_far: str,
        revision: Optional[RevisionNotes],
    ) -> Section:
        cfg = ctx.config.pipeline
        evidence = "\n".join(
            f"- {c.text}" + (f" [{c.source}]" if c.source else "")
            for c in fact_sheet.evidence_for(objective.id)
        )
        prompt = (
            f"## Chapter\n{chapter.title} ({chapter.domain_id})\n\n"
            f"## Learning Objective\n{objective.id} ({objective.level}): {objective.description}\n\n"
            f"## Evidence\n{truncate_text(evidence, cfg.evidence_chars) or 'No evidence found.'}\n\n"
            f"## Draft So Far\n{so_far}\n"
        )
        if revision and revision.feedback:
            prompt += "\n## Reviewer Feedback\n" + "\n".join(f"- {f}" for f in revision.feedback) + "\n"
        prompt += "\nWrite the content for this objective as JSON. Do not repeat the draft so far."
        result = self.generate_structured(ctx, SYSTEM_BODY, prompt, "draft.body")
        return Section(
            kind="body",
            heading=objective.description,
            result=result,
            objective_id=objective.id,
        )

    def _closer(self, ctx: JobContext, chapter: Chapter, draft: str) -> Section:
        objectives = "\n".join(
            f"- {o.id} ({o.level}): {o.description}" for o in chapter.objectives
        )
        prompt = (
            f"## Chapter\n{chapter.title}\n\n"
            f"## Learning Objectives\n{objectives}\n\n"
            f"## Full Draft\n{draft}\n\n"
            f"Write the CLOSER (synthesis, exam questions, exercise) as JSON."
        )
        result = self.generate_structured(ctx, SYSTEM_CLOSER, prompt, "draft.closer")
        return Section(kind="closer", heading="Summary and Exam Preparation", result=result)


def _heading(result: ParseResult, default: str) -> str:
    if isinstance(result, Parsed) and isinstance(result.data, dict):
        return str(result.data.get("header") or default)
    return default


def chapter_summary(chapter: Chapter, draft: DraftContent) -> str:
    """One-line digest of a finished chapter for the chapters after it."""
    objectives = ", ".join(o.description for o in chapter.objectives)
    return (
        f'Chapter "{chapter.title}" (Domain: {chapter.domain_id}): {objectives}. '
        f"{draft.synthesis()[:200]}"
    )
