"""Completion entrypoint with retry, backoff and error classification.

Architectural role:
    Provides the canonical "generate text from two prompts" operation used by the
    question/answer pipelines and the hallucination check. Bridges prompt
    construction (`whyforge.prompting`) to transport (`whyforge.llm.client`).

Model call flow:
    (system_prompt, user_prompt) -> `provider.complete(...)` (in a worker thread for
    synchronous providers) -> raw JSON text.

Retry behavior:
    Up to `retry_attempts` (3) attempts per logical call.
    - Rate-limited (status 429 or a rate-limit code): always retried.
    - Transient (408/429/500/502/503/504): retried while attempts remain.
    - Anything else: `ProviderFatalError`, raised immediately.
    Delay before the next attempt is `base * 2**attempt + uniform(0, jitter)` ms.
    No delay is spent after the final attempt.

Failure handling:
    Exhaustion raises the last `ProviderTransientError`; errors are never swallowed.
"""

import asyncio
import inspect
import json
import logging
import random
from typing import Awaitable, Callable

from whyforge.core.errors import ProviderError, ProviderFatalError, ProviderTransientError
from whyforge.core.types import MAX_COMPLEXITY, MIN_COMPLEXITY
from whyforge.llm.client import CompletionProvider, ProviderCallError
from whyforge.llm.provider_config import (
    RATE_LIMIT_CODES,
    RATE_LIMIT_STATUS,
    TRANSIENT_STATUSES,
    CompletionSettings,
)


logger = logging.getLogger(__name__)


def is_rate_limit_error(error: Exception) -> bool:
    status = getattr(error, "status", None)
    code = getattr(error, "code", None)
    return status == RATE_LIMIT_STATUS or code in RATE_LIMIT_CODES


def is_retryable_error(error: Exception) -> bool:
    return getattr(error, "status", None) in TRANSIENT_STATUSES


def classify_error(error: Exception) -> ProviderTransientError | ProviderFatalError:
    """Map a raw provider failure onto the tagged provider error variants."""
    status = getattr(error, "status", None)
    code = getattr(error, "code", None)
    if is_rate_limit_error(error) or is_retryable_error(error):
        return ProviderTransientError(str(error), status=status, code=code)
    return ProviderFatalError(str(error), status=status, code=code)


class CompletionClient:
    """Retrying wrapper around a pluggable `CompletionProvider`.

    Args:
        provider: Object exposing `complete(system_prompt, user_prompt)`.
        settings: Attempt ceiling and backoff parameters.
        sleep: Awaitable sleep used between attempts (seconds).
        rng: Random source for backoff jitter.
    """

    def __init__(
        self,
        provider: CompletionProvider,
        settings: CompletionSettings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self.provider = provider
        self.settings = settings or CompletionSettings()
        self._sleep = sleep
        self._rng = rng or random.Random()

    @property
    def retry_attempts(self) -> int:
        return max(1, self.settings.retry_attempts)

    def backoff_delay_ms(self, attempt: int) -> float:
        """Exponential backoff with uniform jitter for a zero-based attempt index."""
        jitter = self._rng.uniform(0, self.settings.backoff_jitter_ms)
        return self.settings.backoff_base_ms * (2 ** attempt) + jitter

    async def generate_completion(self, system_prompt: str, user_prompt: str) -> str:
        """Run one logical completion with retry/backoff.

        Returns:
            Raw completion text.

        Raises:
            ProviderFatalError: non-retryable failure (first occurrence).
            ProviderTransientError: last transient failure after exhaustion.
        """
        attempts = self.retry_attempts
        last_error: ProviderTransientError | None = None

        for attempt in range(attempts):
            try:
                return await self._call_provider(system_prompt, user_prompt)
            except (ProviderCallError, ProviderError) as err:
                raw_error = err
                classified = classify_error(err)
            except Exception as err:
                logger.exception("Completion provider raised an unexpected error")
                raise ProviderFatalError(str(err) or type(err).__name__) from err

            if isinstance(classified, ProviderFatalError):
                logger.error(
                    "Non-retryable provider error (status=%s code=%s): %s",
                    classified.status,
                    classified.code,
                    classified.message,
                )
                raise classified from raw_error

            last_error = classified

            if attempt >= attempts - 1:
                break

            delay_ms = self.backoff_delay_ms(attempt)
            if is_rate_limit_error(raw_error):
                logger.warning(
                    "Rate limit hit, retrying in %.0fms (attempt %d/%d)",
                    delay_ms,
                    attempt + 1,
                    attempts,
                )
            else:
                logger.warning(
                    "Transient provider error (status=%s), retrying in %.0fms (attempt %d/%d)",
                    classified.status,
                    delay_ms,
                    attempt + 1,
                    attempts,
                )
            await self._sleep(delay_ms / 1000.0)

        logger.error("Completion failed after %d attempts", attempts)
        if last_error is None:
            raise ProviderTransientError("Max retry attempts exceeded")
        raise last_error

    async def _call_provider(self, system_prompt: str, user_prompt: str) -> str:
        complete = self.provider.complete
        if inspect.iscoroutinefunction(complete):
            result = await complete(system_prompt, user_prompt)
        else:
            result = await asyncio.to_thread(complete, system_prompt, user_prompt)
        return str(result or "")

    def validate_response(self, response: str) -> bool:
        """Best-effort shape check for question-shaped completion text.

        This is a sanity filter only; semantic validation lives in
        `whyforge.safety.validator`.
        """
        try:
            parsed = json.loads(response)
        except (TypeError, ValueError):
            return False

        if not isinstance(parsed, dict):
            return False

        question = parsed.get("question")
        complexity = parsed.get("complexity_score")

        return (
            isinstance(question, str)
            and question.strip().lower().startswith("why")
            and isinstance(complexity, (int, float))
            and not isinstance(complexity, bool)
            and MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY
            and isinstance(parsed.get("category"), str)
            and isinstance(parsed.get("hook_line"), str)
        )
