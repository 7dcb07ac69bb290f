"""Bounded retries with a fixed wait for calls to external collaborators."""

import json
import time
from typing import Callable, Optional, TypeVar

import httpx
import openai
from loguru import logger

from ..errors import RejectedFailure, TransientFailure

T = TypeVar("T")

_TRANSIENT_OPENAI = (
    openai.APIConnectionError,  # includes APITimeoutError
    openai.InternalServerError,
)


def is_transient(exc: BaseException) -> bool:
    """Transport failures, timeouts and 5xx answers are worth another try."""
    if isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError)):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code >= 500
    if isinstance(exc, _TRANSIENT_OPENAI):
        return True
    if isinstance(exc, openai.APIStatusError):
        return exc.status_code >= 500
    return False


def as_rejection(exc: BaseException) -> Optional[RejectedFailure]:
    """Translate an application-level rejection, or return None if it is not one."""
    if isinstance(exc, RejectedFailure):
        return exc
    if isinstance(exc, httpx.HTTPStatusError):
        return RejectedFailure(
            f"HTTP {exc.response.status_code} from {exc.request.url}",
            status_code=exc.response.status_code,
            raw=exc.response.text,
        )
    if isinstance(exc, openai.APIStatusError):
        return RejectedFailure(str(exc), status_code=exc.status_code)
    if isinstance(exc, json.JSONDecodeError):
        return RejectedFailure(f"Malformed response: {exc}")
    return None


class RetryExecutor:
    """Run a zero-argument call with up to ``max_attempts`` tries.

    Only transient failures are retried, each after the same fixed wait.
    Rejections surface immediately as ``RejectedFailure``; exhausting the
    attempts surfaces ``TransientFailure``.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        backoff_ms: int = 1000,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.backoff_ms = backoff_ms
        self._sleep = sleep

    def invoke(
        self,
        call: Callable[[], T],
        max_attempts: Optional[int] = None,
        backoff_ms: Optional[int] = None,
        label: str = "call",
    ) -> T:
        attempts = max_attempts or self.max_attempts
        wait = (self.backoff_ms if backoff_ms is None else backoff_ms) / 1000.0
        last_error: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            try:
                return call()
            except Exception as e:
                if not is_transient(e):
                    rejection = as_rejection(e)
                    if rejection is None:
                        raise
                    logger.warning(f"{label} rejected: {rejection}")
                    if rejection is e:
                        raise
                    raise rejection from e
                last_error = e
                if attempt < attempts:
                    logger.warning(
                        f"{label} failed ({type(e).__name__}: {e}); "
                        f"retry {attempt}/{attempts - 1} in {wait:g}s"
                    )
                    self._sleep(wait)

        logger.error(f"{label} failed after {attempts} attempts: {last_error}")
        raise TransientFailure(
            f"{label} failed after {attempts} attempts: {last_error}",
            attempts=attempts,
            last_error=last_error,
        ) from last_error
