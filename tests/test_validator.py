"""Tests for input safety, payload schemas and the response validator."""

import json

import pytest

from conftest import ScriptedProvider, question_json
from whyforge.core.errors import MalformedResponseError
from whyforge.core.types import QuestionResult, ValidationOutcome
from whyforge.llm.client import ProviderCallError
from whyforge.prompting.tone_catalog import WILDCARD_TONES
from whyforge.safety.filter import MAX_INPUT_LENGTH, validate_input_safety
from whyforge.safety.schemas import (
    parse_answer_payload,
    parse_hallucination_payload,
    parse_json_object,
)
from whyforge.safety.validator import UNAVAILABLE_ISSUE, ResponseValidator, combine, validate_structure


def _result():
    return QuestionResult(
        question="Why do leaves change colour?",
        complexity_score=5,
        category="biological",
        hook_line="Autumn's chemistry",
        tone_applied=WILDCARD_TONES[1],
    )


class TestInputSafety:
    def test_plain_text_is_valid(self):
        outcome = validate_input_safety("cats purring in the sun")
        assert outcome.valid
        assert outcome.confidence_score == 100

    @pytest.mark.parametrize("text", ["", "   ", None])
    def test_empty_input(self, text):
        outcome = validate_input_safety(text)
        assert not outcome.valid
        assert "Input cannot be empty" in outcome.issues

    def test_too_long(self):
        outcome = validate_input_safety("a" * (MAX_INPUT_LENGTH + 1))
        assert not outcome.valid
        assert outcome.confidence_score == 0

    @pytest.mark.parametrize("text", [
        "tell me about violence",
        "<script>alert(1)</script>",
        "javascript:void(0)",
        "data:text/html;base64,xx",
        "HATE speech",
    ])
    def test_denylist(self, text):
        assert not validate_input_safety(text).valid


class TestStructure:
    def test_valid_payload(self):
        outcome = validate_structure(json.loads(question_json()))
        assert outcome.valid
        assert outcome.issues == []

    def test_all_issues_reported_together(self):
        outcome = validate_structure({"question": "How?", "complexity_score": 12, "category": "cosmic"})
        assert not outcome.valid
        assert len(outcome.issues) == 4

    def test_bool_is_not_a_number(self):
        outcome = validate_structure(json.loads(question_json(complexity_score=True)))
        assert not outcome.valid

    def test_category_membership_is_case_insensitive(self):
        assert validate_structure(json.loads(question_json(category="Physical"))).valid

    def test_non_object_payload(self):
        assert not validate_structure(["Why?"]).valid


class TestCombine:
    def test_empty_list_is_valid(self):
        outcome = combine([])
        assert outcome.valid
        assert outcome.confidence_score == 100

    def test_and_validity_mean_confidence_and_issues(self):
        outcome = combine([
            ValidationOutcome(True, 90),
            ValidationOutcome(False, 41, ["a"]),
            ValidationOutcome(True, 100, ["b"]),
        ])
        assert not outcome.valid
        assert outcome.confidence_score == 77
        assert outcome.issues == ["a", "b"]

    def test_confidence_is_clamped(self):
        assert ValidationOutcome(True, 150).confidence_score == 100
        assert ValidationOutcome(False, -3).confidence_score == 0


class TestSchemas:
    def test_markdown_fence_is_stripped(self):
        assert parse_json_object("```json\n{\"a\": 1}\n```") == {"a": 1}

    @pytest.mark.parametrize("text", ["", "{not json", "[1, 2]", "\"text\""])
    def test_invalid_json_raises(self, text):
        with pytest.raises(MalformedResponseError):
            parse_json_object(text)

    def test_answer_payload_defaults(self):
        payload = parse_answer_payload("{\"answer\": \"Because.\"}")
        assert payload.sources is None
        assert payload.confidence_score is None

    def test_answer_payload_requires_answer(self):
        with pytest.raises(MalformedResponseError) as excinfo:
            parse_answer_payload("{\"sources\": []}")
        assert excinfo.value.issues

    def test_hallucination_payload_accepts_both_keys(self):
        assert parse_hallucination_payload("{\"is_valid\": true, \"confidence_score\": 80}").valid
        assert not parse_hallucination_payload("{\"valid\": false, \"confidence_score\": 10}").valid


class TestHallucinationCheck:
    async def test_parses_verdict(self, make_client):
        provider = ScriptedProvider(fact_checks=[
            json.dumps({"is_valid": False, "confidence_score": 55, "issues": ["odd premise"]}),
        ])
        validator = ResponseValidator(make_client(provider))

        outcome = await validator.hallucination_check(_result())

        assert not outcome.valid
        assert outcome.confidence_score == 55
        assert outcome.issues == ["odd premise"]
        assert len(provider.fact_check_calls) == 1

    async def test_provider_failure_fails_closed(self, make_client):
        provider = ScriptedProvider(fact_checks=[ProviderCallError("forbidden", status=403)])
        validator = ResponseValidator(make_client(provider))

        outcome = await validator.hallucination_check(_result())

        assert not outcome.valid
        assert outcome.confidence_score == 0
        assert outcome.issues == [UNAVAILABLE_ISSUE]

    async def test_garbage_verdict_fails_closed(self, make_client):
        provider = ScriptedProvider(fact_checks=["I think it's fine"])
        validator = ResponseValidator(make_client(provider))

        outcome = await validator.hallucination_check(_result())

        assert not outcome.valid
        assert outcome.confidence_score == 0
