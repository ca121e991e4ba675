"""Question generation pipeline: input -> validated "Why" question.

Control-flow model:
    0. Offline branch: when the offline cache reports no connectivity, serve a
       cached question (or a rule-generated one) and never call the provider.
    1. Optional image input is turned into text by `ImageProcessor`.
    2. Input safety gate (`UnsafeInputError`).
    3. Tone, archetype and prompt assembly.
    4. Attempt loop, strictly sequential, up to `max_attempts`:
           completion -> parse -> structure -> duplicate -> hallucination
       Each stage fills an `AttemptObservation`; `decision.judge` decides whether
       to continue, accept or reject, and `decision.advance` moves the loop.
    5. Success: history update, offline caching, generation log.
    6. Exhaustion: `AttemptsExhaustedError` wrapping the last cause.

Error handling strategy:
    - `ProviderFatalError` escapes immediately.
    - `ProviderTransientError` (already retried by the completion client) counts
      as one failed attempt.
    - Parse, structure, duplicate and hallucination failures are absorbed by the
      loop and logged as warnings.

Side effects:
    - Writes per-user history through `UserHistoryStore`.
    - Writes accepted questions to `OfflineCache`.

Determinism:
    Decision logic is pure; provider output, tone/archetype selection and the
    connectivity check are not.
"""

import logging

from whyforge.core.decision import (
    AttemptObservation,
    AttemptState,
    Judgement,
    Verdict,
    advance,
    judge,
)
from whyforge.core.errors import (
    AttemptsExhaustedError,
    ImageFormatError,
    MalformedResponseError,
    ProviderTransientError,
    UnsafeInputError,
    WhyForgeError,
)
from whyforge.core.history import UserHistoryStore, is_duplicate_question
from whyforge.core.settings import PipelineSettings
from whyforge.core.types import QuestionResult, ToneVariant, UserContext
from whyforge.image.service import ImageProcessor
from whyforge.llm.service import CompletionClient
from whyforge.offline.cache import OfflineCache
from whyforge.prompting.prompt_builder import QUESTION_SYSTEM_PROMPT, build_question_prompt
from whyforge.prompting.tone_catalog import ToneCatalog
from whyforge.safety.schemas import parse_json_object, parse_question_payload
from whyforge.safety.validator import ResponseValidator


logger = logging.getLogger(__name__)

OFFLINE_COLLECTION_HOOK_LINE = "From your offline collection"


class QuestionPipeline:
    """Generate validated "Why" questions with bounded retries.

    Args:
        completion_client: Retrying completion caller.
        catalog: Tone and archetype catalog.
        validator: Safety, structure and hallucination validation.
        offline_cache: Degraded-mode store; also receives accepted questions.
        image_processor: Converts image data URLs into question input.
        history_store: Per-user history used for duplicate detection.
        settings: Attempt ceiling and heuristic thresholds.
    """

    def __init__(
        self,
        completion_client: CompletionClient,
        catalog: ToneCatalog | None = None,
        validator: ResponseValidator | None = None,
        offline_cache: OfflineCache | None = None,
        image_processor: ImageProcessor | None = None,
        history_store: UserHistoryStore | None = None,
        settings: PipelineSettings | None = None,
    ) -> None:
        self.settings = settings or PipelineSettings()
        self.completion_client = completion_client
        self.catalog = catalog or ToneCatalog()
        self.validator = validator or ResponseValidator(completion_client)
        self.offline_cache = offline_cache or OfflineCache()
        self.image_processor = image_processor or ImageProcessor()
        self.history = history_store or UserHistoryStore(limit=self.settings.history_limit)

    # =========================================================
    # PUBLIC API
    # =========================================================

    async def generate_question(
        self,
        user_input: str,
        tone_name: str | None = None,
        user_id: str | None = None,
        user_context: UserContext | dict | None = None,
        input_type: str = "text",
    ) -> QuestionResult:
        """Turn user input into a validated "Why" question.

        Raises:
            ImageFormatError: image input could not be processed.
            UnsafeInputError: input failed the safety gate.
            ProviderFatalError: non-retryable provider failure.
            AttemptsExhaustedError: no attempt produced an acceptable question.
        """
        if not self.offline_cache.is_online():
            logger.info("Device is offline, using cached content")
            return self._generate_offline(user_input, tone_name, user_id)

        processed_input = user_input
        if input_type == "image":
            processed_input = await self._image_to_input(user_input)

        safety = self.validator.validate_input_safety(processed_input)
        if not safety.valid:
            raise UnsafeInputError(safety.issues)

        tone = self.catalog.by_name(tone_name) if tone_name else self.catalog.random_tone()
        archetype = self.catalog.random_archetype()

        prompt = build_question_prompt(processed_input, archetype)
        prompt = self.catalog.apply_to_prompt(prompt, tone)
        prompt = self.catalog.inject_user_context(prompt, user_context)

        max_attempts = max(1, self.settings.max_attempts)
        last_error: WhyForgeError | None = None

        for attempt in range(max_attempts):
            try:
                judgement, candidate = await self._run_attempt(prompt, tone, user_id)
            except ProviderTransientError as err:
                judgement, candidate = Judgement(Verdict.REJECT, err), None

            state = advance(judgement.verdict, attempt, max_attempts)

            if state is AttemptState.SUCCESS:
                return self._accept(candidate, processed_input, attempt + 1)

            last_error = judgement.error
            logger.warning(
                "Question generation attempt %d/%d rejected: %s",
                attempt + 1,
                max_attempts,
                last_error,
            )

            if state is AttemptState.EXHAUSTED:
                break

        raise AttemptsExhaustedError(max_attempts, last_error)

    def get_user_stats(self, user_id: str) -> dict | None:
        return self.history.stats(user_id)

    def offline_cache_stats(self) -> dict:
        return self.offline_cache.stats()

    def clear_expired_offline_cache(self) -> int:
        return self.offline_cache.clear_expired()

    # =========================================================
    # ATTEMPT STAGES
    # =========================================================

    async def _run_attempt(
        self,
        prompt: str,
        tone: ToneVariant,
        user_id: str | None,
    ) -> tuple[Judgement, QuestionResult | None]:
        """Run the stages of one attempt until a verdict is reached.

        Provider errors are not caught here; the caller decides how they count.
        """
        cutoff = self.settings.hallucination_cutoff
        observation = AttemptObservation()

        text = await self.completion_client.generate_completion(QUESTION_SYSTEM_PROMPT, prompt)

        try:
            observation.candidate = parse_json_object(text)
        except MalformedResponseError as err:
            observation.parse_error = err
            return judge(observation, cutoff), None

        observation.structure = self.validator.validate_structure(observation.candidate)
        judgement = judge(observation, cutoff)
        if judgement.verdict is not Verdict.PENDING:
            return judgement, None

        try:
            candidate = self._build_result(observation.candidate, tone, user_id)
        except MalformedResponseError as err:
            observation.parse_error = err
            return judge(observation, cutoff), None

        observation.duplicate = self._is_duplicate(user_id, candidate.question)
        judgement = judge(observation, cutoff)
        if judgement.verdict is not Verdict.PENDING:
            return judgement, None

        observation.hallucination = await self.validator.hallucination_check(candidate)
        judgement = judge(observation, cutoff)
        if judgement.verdict is Verdict.ACCEPT:
            return judgement, candidate
        return judgement, None

    def _build_result(self, payload: dict, tone: ToneVariant, user_id: str | None) -> QuestionResult:
        parsed = parse_question_payload(payload)
        return QuestionResult(
            question=parsed.question.strip(),
            complexity_score=parsed.complexity_score,
            category=parsed.category.strip().lower(),
            hook_line=parsed.hook_line.strip(),
            tone_applied=tone,
            user_id=user_id,
        )

    def _is_duplicate(self, user_id: str | None, question: str) -> bool:
        if not user_id:
            return False
        history = self.history.get(user_id)
        if history is None:
            return False
        return is_duplicate_question(
            question,
            history.previous_questions,
            self.settings.duplicate_threshold,
        )

    def _accept(self, result: QuestionResult, processed_input: str, attempts: int) -> QuestionResult:
        if result.user_id:
            self.history.record(result.user_id, result)

        cached = self.offline_cache.cache_question_answer(result)
        result.question_id = cached.id

        logger.info(
            "Question generated: question=%r category=%s complexity=%d wildcard=%s "
            "attempts=%d user_id=%s input_length=%d",
            result.question,
            result.category,
            result.complexity_score,
            result.tone_applied.name,
            attempts,
            result.user_id or "anonymous",
            len(processed_input or ""),
        )
        return result

    # =========================================================
    # INPUT ADAPTERS
    # =========================================================

    async def _image_to_input(self, image_data: str) -> str:
        try:
            image_result = await self.image_processor.process_image(image_data)
        except ImageFormatError:
            logger.error("Image processing failed: invalid image payload")
            raise
        except Exception as err:
            logger.exception("Image processing failed")
            raise ImageFormatError(f"Image processing failed: {err}") from err

        processed = self.image_processor.to_question_input(image_result)
        logger.info(
            "Image processed: method=%s confidence=%d result_length=%d",
            image_result.method,
            image_result.confidence_score,
            len(processed),
        )
        return processed

    def _generate_offline(
        self,
        user_input: str,
        tone_name: str | None,
        user_id: str | None,
    ) -> QuestionResult:
        cached = self.offline_cache.get_random_cached_question()
        if cached is not None:
            result = cached.to_result(hook_line=OFFLINE_COLLECTION_HOOK_LINE)
        else:
            result = self.offline_cache.generate_offline_question(user_input)
            if tone_name:
                result.tone_applied = self.catalog.by_name(tone_name)

        result.user_id = user_id
        return result
