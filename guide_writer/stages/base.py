"""Base stage with generation routed through the retry executor."""

import time
from typing import TYPE_CHECKING

from ..clients.base import GenerationRequest
from ..models.parsed import ParseResult, parse_generation

if TYPE_CHECKING:
    from ..engine.context import JobContext

JSON_ONLY = "\n\nRespond with valid JSON only."


class BaseStage:
    """Base class for pipeline stages.

    Stages keep no job state of their own; everything a call needs arrives
    through the ``JobContext`` and the arguments.
    """

    name = "stage"

    def generate(
        self,
        ctx: "JobContext",
        system: str,
        prompt: str,
        purpose: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str:
        request = GenerationRequest(
            system=system,
            prompt=prompt,
            purpose=purpose,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        start = time.time()
        result = ctx.retry.invoke(
            lambda: ctx.generation.complete(request),
            label=f"{self.name}:{purpose}",
        )
        ctx.log.debug(
            f"{self.name}:{purpose} answered in {time.time() - start:.2f}s "
            f"({len(result or '')} chars)"
        )
        return result

    def generate_structured(
        self,
        ctx: "JobContext",
        system: str,
        prompt: str,
        purpose: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ParseResult:
        """Generate and parse JSON; output that does not parse comes back as ``Unparsed``."""
        raw = self.generate(
            ctx,
            system + JSON_ONLY,
            prompt,
            purpose,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        return parse_generation(raw)
