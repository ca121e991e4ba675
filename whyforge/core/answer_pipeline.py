"""Answer generation for an already accepted "Why" question.

Generation flow:
    question + tone -> answer prompt -> one completion call -> `AnswerPayload`
    parse -> `AnswerResult` (missing confidence defaults to 85, missing sources to
    an empty list, confidence clamped to [0, 100]).

    There is no retry loop, duplicate check or hallucination check here; the
    completion client's own retry/backoff is the only resilience layer.

Offline integration:
    When an offline cache is attached and `question_id` is known, answers are
    cached against that question. When the cache reports no connectivity and a
    cached answer exists for `question_id`, it is returned without a provider
    call.
"""

import logging

from whyforge.core.errors import MalformedResponseError, ProviderError, WhyForgeError
from whyforge.core.types import AnswerResult, ToneVariant
from whyforge.llm.service import CompletionClient
from whyforge.offline.cache import OfflineCache
from whyforge.prompting.prompt_builder import ANSWER_SYSTEM_PROMPT, build_answer_prompt
from whyforge.prompting.tone_catalog import ToneCatalog
from whyforge.safety.schemas import parse_answer_payload


logger = logging.getLogger(__name__)

DEFAULT_ANSWER_CONFIDENCE = 85


class AnswerPipeline:
    def __init__(
        self,
        completion_client: CompletionClient,
        catalog: ToneCatalog | None = None,
        offline_cache: OfflineCache | None = None,
    ) -> None:
        self.completion_client = completion_client
        self.catalog = catalog or ToneCatalog()
        self.offline_cache = offline_cache

    def _resolve_tone(self, tone: ToneVariant | str | None) -> ToneVariant:
        if isinstance(tone, ToneVariant):
            return tone
        if tone:
            return self.catalog.by_name(tone)
        return self.catalog.random_tone()

    async def generate_answer(
        self,
        question: str,
        tone: ToneVariant | str | None = None,
        question_id: str | None = None,
    ) -> AnswerResult:
        """Generate one answer under the given (or a random) tone.

        Raises:
            ProviderTransientError / ProviderFatalError: propagated with the
                question added to `context`.
            MalformedResponseError: the completion is not an answer-shaped object.
        """
        if question_id and self.offline_cache is not None and not self.offline_cache.is_online():
            cached = self.offline_cache.get_cached_answer(question_id)
            if cached is not None:
                logger.info("Serving cached answer for question_id=%s", question_id)
                return cached.to_result()

        selected_tone = self._resolve_tone(tone)

        try:
            text = await self.completion_client.generate_completion(
                ANSWER_SYSTEM_PROMPT,
                build_answer_prompt(question, selected_tone),
            )
        except ProviderError as err:
            logger.error("Answer generation failed for question %r: %s", question, err)
            err.context["question"] = question
            raise

        try:
            payload = parse_answer_payload(text)
        except MalformedResponseError as err:
            logger.error("Answer generation failed for question %r: %s", question, err)
            raise MalformedResponseError(
                f"Failed to generate answer: {err.message}",
                issues=err.issues,
                question=question,
            ) from err

        confidence = payload.confidence_score
        result = AnswerResult(
            answer=payload.answer,
            sources=list(payload.sources or []),
            confidence_score=DEFAULT_ANSWER_CONFIDENCE if confidence is None else confidence,
            tone_applied=selected_tone,
            question_id=question_id,
        )

        if question_id and self.offline_cache is not None:
            if self.offline_cache.get_cached_question(question_id) is not None:
                self.offline_cache.cache_answer(question_id, result)

        logger.info(
            "Answer generated: question=%r answer_length=%d sources=%d confidence=%d "
            "wildcard=%s question_id=%s",
            question,
            len(result.answer),
            len(result.sources),
            result.confidence_score,
            selected_tone.name,
            question_id or "none",
        )
        return result

    async def generate_multiple_answers(self, question: str, count: int = 3) -> list[AnswerResult]:
        """One answer per catalog tone, in catalog order, for up to `count` tones.

        Failed generations are logged and skipped.
        """
        answers = []
        tones = self.catalog.all_tones()

        for index, tone in enumerate(tones[:max(0, min(count, len(tones)))]):
            try:
                answers.append(await self.generate_answer(question, tone))
            except WhyForgeError as err:
                logger.error("Failed to generate answer %d: %s", index + 1, err)

        return answers
