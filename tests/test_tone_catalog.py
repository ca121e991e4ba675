"""Tests for the tone catalog and prompt assembly."""

import logging
import random

from whyforge.core.types import QuestionResult, UserContext
from whyforge.prompting.prompt_builder import (
    QUESTION_ARCHETYPES,
    build_answer_prompt,
    build_hallucination_prompt,
    build_question_prompt,
)
from whyforge.prompting.tone_catalog import TONE_NAMES, WILDCARD_TONES, ToneCatalog


class TestSelection:
    def test_catalog_has_five_tones_in_order(self, catalog):
        assert len(catalog) == 5
        assert [tone.name for tone in catalog.all_tones()] == [
            "funny", "scientific", "poetic", "childlike", "philosophical",
        ]

    def test_by_name_is_case_insensitive_and_idempotent(self, catalog):
        first = catalog.by_name("Funny")
        second = catalog.by_name("funny")
        assert first is second
        assert first.name == "funny"
        assert "Douglas Adams" in first.tone_instruction

    def test_unknown_name_falls_back_to_random_tone(self, catalog, caplog):
        with caplog.at_level(logging.WARNING):
            tone = catalog.by_name("sarcastic")

        assert tone.name in TONE_NAMES
        assert "sarcastic" in caplog.text

    def test_random_selection_uses_injected_rng(self):
        first = ToneCatalog(rng=random.Random(3))
        second = ToneCatalog(rng=random.Random(3))

        assert [first.random_tone().name for _ in range(5)] == [second.random_tone().name for _ in range(5)]
        assert first.random_archetype() in QUESTION_ARCHETYPES

    def test_by_complexity_range_uses_overlap(self, catalog):
        names = [tone.name for tone in catalog.by_complexity_range(1, 2)]
        assert names == ["funny", "childlike"]

        names = [tone.name for tone in catalog.by_complexity_range(9, 10)]
        assert names == ["scientific", "philosophical"]

    def test_compatibility_table_is_advisory(self, catalog):
        assert not catalog.compatibility(catalog.by_name("childlike"), "philosophical")
        assert not catalog.compatibility(catalog.by_name("funny"), "Philosophical")
        assert catalog.compatibility(catalog.by_name("poetic"), "philosophical")


class TestPromptModifiers:
    def test_apply_to_prompt_appends_tone_block(self, catalog):
        tone = catalog.by_name("poetic")
        prompt = catalog.apply_to_prompt("BASE", tone)

        assert prompt.startswith("BASE")
        assert f"TONE MODIFIER: {tone.tone_instruction}" in prompt
        assert "Maintain the \"Why\" constraint" in prompt

    def test_no_user_context_leaves_prompt_unchanged(self, catalog):
        assert catalog.inject_user_context("BASE", None) == "BASE"
        assert catalog.inject_user_context("BASE", UserContext()) == "BASE"

    def test_age_bands(self, catalog):
        assert "simple language appropriate for children" in catalog.inject_user_context("P", UserContext(age=8))
        assert "life experience" in catalog.inject_user_context("P", UserContext(age=70))
        assert "User is 30 years old" in catalog.inject_user_context("P", UserContext(age=30))

    def test_interests_and_dict_context(self, catalog):
        prompt = catalog.inject_user_context("P", {"interests": ["space", "cats"]})
        assert "USER CONTEXT:" in prompt
        assert "User interests: space, cats" in prompt


class TestPromptBuilder:
    def test_question_prompt_renders_archetype(self):
        archetype = QUESTION_ARCHETYPES[0]
        prompt = build_question_prompt("  cats purring in the sun  ", archetype)

        assert "Input to transform: \"cats purring in the sun\"" in prompt
        assert "{input}" not in prompt
        assert prompt.startswith("CRITICAL")

    def test_answer_prompt_contains_question_and_tone(self):
        tone = WILDCARD_TONES[1]
        prompt = build_answer_prompt("Why is the sky blue?", tone)

        assert "Question to answer: \"Why is the sky blue?\"" in prompt
        assert tone.tone_instruction in prompt

    def test_hallucination_prompt_describes_question(self):
        result = QuestionResult(
            question="Why is the sky blue?",
            complexity_score=4,
            category="physical",
            hook_line="Light scatters",
            tone_applied=WILDCARD_TONES[0],
        )
        prompt = build_hallucination_prompt(result)

        assert "Question: \"Why is the sky blue?\"" in prompt
        assert "Category: physical" in prompt
        assert "\"is_valid\"" in prompt
