"""Code stage: fill a draft's code requests with checked snippets."""

import re

from .base import BaseStage
from ..engine.context import JobContext
from ..models.content import CodeSnippet, DraftContent
from ..models.job_state import Chapter
from ..models.parsed import Parsed, ParseResult
from ..utils.text import extract_code_block

SYSTEM = """You are a senior developer writing example code for a certification study guide.
- Code must be complete and runnable, no placeholders
- Keep examples short and focused on the concept being taught
- Comment only what a learner would not understand on their own

Return JSON: {"language", "code", "explanation"}"""

SYSTEM_CORRECT = SYSTEM + "\n\nYou are fixing code that failed validation. Address every listed problem."

_PLACEHOLDER_RE = re.compile(r"\b(TODO|FIXME|XXX)\b|<placeholder>|\.\.\.\s*$", re.MULTILINE)
_PAIRS = {")": "(", "]": "[", "}": "{"}


def validate_snippet(code: str) -> list[str]:
    """Local checks a snippet must pass; returns the problems found."""
    if not code or not code.strip():
        return ["Code is empty"]
    errors = []
    if _PLACEHOLDER_RE.search(code):
        errors.append("Code contains placeholders")
    stack = []
    for ch in code:
        if ch in "([{":
            stack.append(ch)
        elif ch in _PAIRS:
            if not stack or stack[-1] != _PAIRS[ch]:
                errors.append(f"Unbalanced '{ch}'")
                break
            stack.pop()
    else:
        if stack:
            errors.append(f"Unclosed '{stack[-1]}'")
    return errors


def code_fields(result: ParseResult, language: str = "text") -> tuple[str, str, str]:
    """``(language, code, explanation)`` from a structured or raw answer."""
    if isinstance(result, Parsed) and isinstance(result.data, dict):
        data = result.data
        return (
            str(data.get("language") or language),
            str(data.get("code") or ""),
            str(data.get("explanation") or ""),
        )
    raw = result.raw if not isinstance(result, Parsed) else str(result.data)
    block = extract_code_block(raw)
    if block:
        lang, code = block
        return lang or language, code, ""
    return language, raw.strip(), ""


class CodeStage(BaseStage):
    name = "code"

    def run(self, ctx: JobContext, chapter: Chapter, draft: DraftContent) -> DraftContent:
        if not draft.code_requests:
            return draft
        snippets = [
            self._snippet(ctx, chapter, n, description)
            for n, description in enumerate(draft.code_requests, 1)
        ]
        failed = sum(1 for s in snippets if not s.validated)
        if failed:
            ctx.log.warning(f"{chapter.id}: {failed}/{len(snippets)} snippets kept unvalidated")
        return draft.with_snippets(snippets)

    def _snippet(self, ctx: JobContext, chapter: Chapter, number: int, description: str) -> CodeSnippet:
        prompt = (
            f"## Chapter\n{chapter.title}\n\n"
            f"## Request\n{description}\n\n"
            f"Write the code example."
        )
        result = self.generate_structured(ctx, SYSTEM, prompt, "code.generate", temperature=0.2)
        language, code, explanation = code_fields(result)
        errors = validate_snippet(code)

        corrections = 0
        while errors and corrections < ctx.config.pipeline.code_max_corrections:
            corrections += 1
            problems = "\n".join(f"- {e}" for e in errors)
            prompt = (
                f"## Request\n{description}\n\n"
                f"## Code ({language})\n{code}\n\n"
                f"## Problems\n{problems}\n\n"
                f"Return the corrected code."
            )
            result = self.generate_structured(
                ctx, SYSTEM_CORRECT, prompt, "code.correct", temperature=0.1
            )
            language, code, new_explanation = code_fields(result, language)
            explanation = new_explanation or explanation
            errors = validate_snippet(code)

        return CodeSnippet(
            id=f"req_{number}",
            description=description,
            language=language,
            code=code,
            explanation=explanation,
            validated=not errors,
            corrections=corrections,
            errors=tuple(errors),
        )
