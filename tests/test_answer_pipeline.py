"""Tests for the answer generation pipeline."""

import pytest

from conftest import ScriptedProvider, answer_json
from whyforge.core.answer_pipeline import DEFAULT_ANSWER_CONFIDENCE, AnswerPipeline
from whyforge.core.errors import MalformedResponseError, ProviderFatalError, ProviderTransientError
from whyforge.core.settings import OfflineSettings
from whyforge.llm.client import ProviderCallError
from whyforge.offline.cache import OfflineCache
from whyforge.prompting.prompt_builder import ANSWER_SYSTEM_PROMPT


QUESTION = "Why do cats purr when they're content?"


@pytest.fixture
def build_pipeline(make_client, catalog):
    def factory(provider, cache=None):
        return AnswerPipeline(make_client(provider), catalog=catalog, offline_cache=cache)

    return factory


class TestGenerateAnswer:
    async def test_defaults_for_missing_fields(self, build_pipeline):
        provider = ScriptedProvider([answer_json()])
        pipeline = build_pipeline(provider)

        result = await pipeline.generate_answer(QUESTION, tone="scientific")

        assert result.answer == "Because of laryngeal muscle oscillation."
        assert result.sources == []
        assert result.confidence_score == DEFAULT_ANSWER_CONFIDENCE
        assert result.tone_applied.name == "scientific"

        system_prompt, user_prompt = provider.calls[0]
        assert system_prompt == ANSWER_SYSTEM_PROMPT
        assert f"Question to answer: \"{QUESTION}\"" in user_prompt
        assert result.tone_applied.tone_instruction in user_prompt

    async def test_confidence_is_clamped_and_sources_kept(self, build_pipeline):
        provider = ScriptedProvider([answer_json(sources=["Vet Journal"], confidence_score=140)])
        pipeline = build_pipeline(provider)

        result = await pipeline.generate_answer(QUESTION)

        assert result.confidence_score == 100
        assert result.sources == ["Vet Journal"]

    async def test_explicit_zero_confidence_is_kept(self, build_pipeline):
        provider = ScriptedProvider([answer_json(confidence_score=0)])
        pipeline = build_pipeline(provider)

        assert (await pipeline.generate_answer(QUESTION)).confidence_score == 0

    async def test_tone_variant_is_used_as_is(self, build_pipeline, catalog):
        provider = ScriptedProvider([answer_json()])
        pipeline = build_pipeline(provider)
        tone = catalog.by_name("poetic")

        assert (await pipeline.generate_answer(QUESTION, tone=tone)).tone_applied is tone

    async def test_malformed_answer_carries_question(self, build_pipeline):
        provider = ScriptedProvider(["{\"answer\": \"\"}"])
        pipeline = build_pipeline(provider)

        with pytest.raises(MalformedResponseError) as excinfo:
            await pipeline.generate_answer(QUESTION)

        assert excinfo.value.context["question"] == QUESTION
        assert provider.call_count == 1

    async def test_provider_errors_propagate_with_question(self, build_pipeline):
        pipeline = build_pipeline(ScriptedProvider([ProviderCallError("nope", status=403)]))
        with pytest.raises(ProviderFatalError) as excinfo:
            await pipeline.generate_answer(QUESTION)

        assert excinfo.value.status == 403
        assert excinfo.value.context["question"] == QUESTION

        pipeline = build_pipeline(ScriptedProvider([ProviderCallError("busy", status=503)] * 3))
        with pytest.raises(ProviderTransientError) as excinfo:
            await pipeline.generate_answer(QUESTION)

        assert excinfo.value.context["question"] == QUESTION


class TestOfflineIntegration:
    async def test_answer_is_cached_for_known_question(self, build_pipeline, offline_cache):
        provider = ScriptedProvider([answer_json(answer="Fresh answer")])
        pipeline = build_pipeline(provider, cache=offline_cache)

        result = await pipeline.generate_answer(QUESTION, question_id="offline-5")

        assert result.question_id == "offline-5"
        assert offline_cache.get_cached_answer("offline-5").answer == "Fresh answer"

    async def test_unknown_question_id_is_not_cached(self, build_pipeline, offline_cache):
        provider = ScriptedProvider([answer_json()])
        pipeline = build_pipeline(provider, cache=offline_cache)
        before = offline_cache.stats()["answers"]

        await pipeline.generate_answer(QUESTION, question_id="missing")

        assert offline_cache.stats()["answers"] == before

    async def test_offline_serves_cached_answer(self, build_pipeline, clock):
        cache = OfflineCache(OfflineSettings(force_offline=True), clock=clock)
        provider = ScriptedProvider()
        pipeline = build_pipeline(provider, cache=cache)

        result = await pipeline.generate_answer(QUESTION, question_id="offline-1")

        assert provider.call_count == 0
        assert "purr" in result.answer
        assert result.question_id == "offline-1"


class TestMultipleAnswers:
    async def test_one_answer_per_tone_in_catalog_order(self, build_pipeline):
        provider = ScriptedProvider([answer_json(answer=f"answer {index}") for index in range(3)])
        pipeline = build_pipeline(provider)

        answers = await pipeline.generate_multiple_answers(QUESTION, count=3)

        assert [answer.tone_applied.name for answer in answers] == ["funny", "scientific", "poetic"]
        assert [answer.answer for answer in answers] == ["answer 0", "answer 1", "answer 2"]

    async def test_count_is_capped_by_catalog_size(self, build_pipeline):
        provider = ScriptedProvider([answer_json()] * 10)
        pipeline = build_pipeline(provider)

        answers = await pipeline.generate_multiple_answers(QUESTION, count=9)

        assert len(answers) == 5
        assert provider.call_count == 5

    async def test_failures_are_skipped(self, build_pipeline):
        provider = ScriptedProvider([answer_json(), "garbage", answer_json()])
        pipeline = build_pipeline(provider)

        answers = await pipeline.generate_multiple_answers(QUESTION, count=3)

        assert [answer.tone_applied.name for answer in answers] == ["funny", "poetic"]
