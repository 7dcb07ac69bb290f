"""Research stage: gather syllabus text and retrieval evidence per chapter."""

from .base import BaseStage
from ..engine.context import JobContext
from ..engine.coverage import keywords
from ..engine.fanout import Branch, join_all
from ..errors import RejectedFailure, TransientFailure
from ..models.content import EvidenceChunk, FactSheet
from ..models.job_state import Chapter

# Chapter-level hits attached to an objective in addition to its own search.
MAX_SHARED_HITS = 3


class ResearchStage(BaseStage):
    name = "research"

    def run(self, ctx: JobContext, chapter: Chapter) -> FactSheet:
        """Build a fact sheet. Retrieval failures degrade it, never the chapter."""
        limit = ctx.config.pipeline.research_limit
        filters = {"domain_id": chapter.domain_id} if chapter.domain_id else None
        syllabus_result, chapter_result = join_all(
            [
                Branch(
                    f"research:{chapter.id}:syllabus",
                    lambda: ctx.standards.get_syllabus_section(chapter.domain_id),
                ),
                Branch(
                    f"research:{chapter.id}:chapter",
                    lambda: ctx.retrieval.search(chapter.title, filters=filters, limit=limit),
                ),
            ],
            ctx.retry,
        )

        degraded = []
        syllabus = None
        if syllabus_result.ok:
            syllabus = syllabus_result.value or None
        else:
            degraded.append(f"syllabus: {syllabus_result.error}")
        shared_hits = []
        if chapter_result.ok:
            shared_hits = chapter_result.value or []
        else:
            degraded.append(f"chapter search: {chapter_result.error}")

        # Objectives are looked up one after another, not in parallel.
        evidence: dict[str, list[EvidenceChunk]] = {}
        for objective in chapter.objectives:
            try:
                hits = ctx.retry.invoke(
                    lambda: ctx.retrieval.search(
                        objective.description, filters=filters, limit=limit
                    ),
                    label=f"research:{chapter.id}:{objective.id}",
                )
            except (TransientFailure, RejectedFailure) as e:
                degraded.append(f"{objective.id}: {e}")
                hits = []
            chunks = [EvidenceChunk(h.text, h.score, h.source) for h in hits]
            chunks.extend(_matching_hits(objective.description, shared_hits))
            evidence[objective.id] = chunks

        if degraded:
            ctx.log.warning(f"Research for {chapter.id} degraded: {'; '.join(degraded)}")

        sources = []
        for chunks in evidence.values():
            for chunk in chunks:
                if chunk.source and chunk.source not in sources:
                    sources.append(chunk.source)

        found = sum(len(c) for c in evidence.values())
        return FactSheet(
            summary=f"{found} evidence chunks for {len(evidence)} objectives of {chapter.title}",
            evidence=evidence,
            sources=sources,
            syllabus_section=syllabus,
            degraded=degraded,
        )


def _matching_hits(description: str, hits) -> list[EvidenceChunk]:
    """Chapter-level hits that mention the objective's leading keyword."""
    kws = keywords(description)
    if not kws:
        return []
    lead = kws[0]
    matched = [h for h in hits if lead in h.text.lower()]
    return [EvidenceChunk(h.text, h.score, h.source) for h in matched[:MAX_SHARED_HITS]]
