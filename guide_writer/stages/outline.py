"""Outline stage: turn a job request into an ordered list of chapters."""

from typing import Any

from .base import BaseStage
from ..engine.context import JobContext
from ..engine.fanout import Branch, join_all
from ..errors import RejectedFailure, ValidationError
from ..models.content import DEFAULT_LEVEL, LearningObjective
from ..models.job_state import Chapter
from ..models.parsed import Unparsed
from ..utils.text import truncate_text

SYSTEM = """You are the lead architect of a certification study guide. You design the chapter structure of the book from the official syllabus:

1. Follow the syllabus structure and its numbering
2. Give every chapter a clear title and the syllabus domain it covers
3. List the learning objectives of every chapter with their cognitive level (K1-K6)
4. Never add topics that the syllabus does not cover

Return JSON: {"chapters": [{"id", "title", "domain_id", "learning_objectives": [{"id", "description", "level"}]}]}"""


class OutlineStage(BaseStage):
    name = "outline"

    def run(self, ctx: JobContext) -> list[Chapter]:
        """Plan the book. Both failure modes are fatal to the job.

        Raises:
            RejectedFailure: The outline could not be parsed.
            ValidationError: The outline parsed but holds no chapters.
        """
        spec = ctx.job.spec
        syllabus_result, search_result = join_all(
            [
                Branch(
                    "outline:syllabus",
                    lambda: ctx.standards.get_syllabus_section(spec.syllabus_id),
                ),
                Branch(
                    "outline:research",
                    lambda: ctx.retrieval.search(
                        f"{spec.syllabus_name or spec.syllabus_id} {spec.target_audience}",
                        limit=ctx.config.pipeline.research_limit,
                    ),
                ),
            ],
            ctx.retry,
        )
        if not syllabus_result.ok:
            ctx.log.warning(f"Syllabus lookup failed, outlining without it: {syllabus_result.error}")
        if not search_result.ok:
            ctx.log.warning(f"Outline research failed: {search_result.error}")

        prompt = self._build_prompt(
            spec,
            syllabus_result.value if syllabus_result.ok else None,
            search_result.value if search_result.ok else [],
            ctx.config.pipeline.evidence_chars,
        )
        result = self.generate_structured(ctx, SYSTEM, prompt, "outline", temperature=0.3)
        if isinstance(result, Unparsed):
            raise RejectedFailure(
                f"Outline could not be parsed: {result.reason}", raw=result.raw
            )

        chapters = normalize_chapters(result.data, ctx.job.id)
        if not chapters:
            raise ValidationError("Outline contains no chapters", missing=["chapters"])
        ctx.log.info(f"Outline: {len(chapters)} chapters")
        return chapters

    def _build_prompt(self, spec, syllabus, hits, evidence_chars: int) -> str:
        prompt = (
            f"## Certification\n"
            f"Syllabus: {spec.syllabus_name or spec.syllabus_id} ({spec.syllabus_id})\n"
            f"Target audience: {spec.target_audience}\n"
            f"Strategy: {spec.generation_strategy}\n"
        )
        if syllabus:
            prompt += f"\n## Syllabus\n{truncate_text(str(syllabus), evidence_chars * 2)}\n"
        if hits:
            context = "\n".join(f"- {h.text}" for h in hits)
            prompt += f"\n## Reference Material\n{truncate_text(context, evidence_chars)}\n"
        if spec.generation_strategy.lower() == "by topic":
            prompt += "\nCreate one chapter per syllabus topic."
        else:
            prompt += "\nCreate one chapter per syllabus domain."
        return prompt


def _chapter_list(data: Any) -> list:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        if isinstance(data.get("chapters"), list):
            return data["chapters"]
        blueprint = data.get("blueprint")
        if isinstance(blueprint, dict) and isinstance(blueprint.get("chapters"), list):
            return blueprint["chapters"]
    return []


def normalize_objectives(raw: Any, chapter_number: int) -> list[LearningObjective]:
    """Accept objectives as plain strings or dicts; strings get generated ids."""
    objectives = []
    for i, item in enumerate(raw or [], 1):
        if isinstance(item, str):
            if item.strip():
                objectives.append(LearningObjective(
                    id=f"LO-{chapter_number}.{i}",
                    description=item.strip(),
                    level=DEFAULT_LEVEL,
                ))
        elif isinstance(item, dict):
            description = str(item.get("description") or item.get("title") or "").strip()
            if not description:
                continue
            objectives.append(LearningObjective(
                id=str(item.get("id") or item.get("lo_id") or f"LO-{chapter_number}.{i}"),
                description=description,
                level=str(item.get("level") or item.get("k_level") or DEFAULT_LEVEL),
            ))
    return objectives


def normalize_chapters(data: Any, job_id: str) -> list[Chapter]:
    chapters = []
    seen: set[str] = set()
    for number, raw in enumerate(_chapter_list(data), 1):
        if not isinstance(raw, dict):
            continue
        chapter_id = str(raw.get("id") or raw.get("chapter_id") or f"ch-{number}")
        if chapter_id in seen:
            chapter_id = f"{chapter_id}-{number}"
        seen.add(chapter_id)
        chapters.append(Chapter(
            id=chapter_id,
            job_id=job_id,
            index=len(chapters),
            title=str(raw.get("title") or f"Chapter {number}"),
            objectives=normalize_objectives(
                raw.get("learning_objectives") or raw.get("objectives"), number
            ),
            domain_id=str(raw.get("domain_id") or raw.get("id") or f"D{number}"),
        ))
    return chapters
