"""Chat-completion client for any OpenAI-compatible endpoint."""

import time

from loguru import logger
from openai import OpenAI

from ..config import GenerationConfig
from ..errors import MalformedResponse
from .base import GenerationRequest


class GenerationClient:
    """Generative content service backed by the OpenAI SDK.

    The SDK's own retries are disabled; retrying is the retry executor's job
    so that the attempt bound stays in one place.
    """

    def __init__(self, config: GenerationConfig, client: OpenAI | None = None):
        self.config = config
        self._client = client or OpenAI(
            api_key=config.api_key or None,
            base_url=config.base_url,
            timeout=config.timeout_seconds,
            max_retries=0,
        )

    def complete(self, request: GenerationRequest) -> str:
        start = time.time()
        response = self._client.chat.completions.create(
            model=self.config.model,
            messages=[
                {"role": "system", "content": request.system},
                {"role": "user", "content": request.prompt},
            ],
            temperature=(
                request.temperature
                if request.temperature is not None
                else self.config.temperature
            ),
            max_tokens=request.max_tokens or self.config.max_tokens,
        )
        if not response.choices:
            raise MalformedResponse(f"{request.purpose}: completion has no choices")
        result = response.choices[0].message.content or ""
        logger.debug(
            f"{request.purpose}: {len(request.prompt)} chars in, "
            f"{len(result)} chars out ({time.time() - start:.2f}s)"
        )
        return result
