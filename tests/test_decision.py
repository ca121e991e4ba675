"""Tests for the pure attempt decision logic and duplicate detection."""

from whyforge.core.decision import (
    AttemptObservation,
    AttemptState,
    Verdict,
    advance,
    hallucination_rejects,
    judge,
)
from whyforge.core.errors import (
    DuplicateQuestionError,
    HallucinationLowConfidenceError,
    MalformedResponseError,
)
from whyforge.core.history import is_duplicate_question, word_overlap_similarity
from whyforge.core.types import ValidationOutcome


CUTOFF = 70
CANDIDATE = {"question": "Why is the sky blue?"}


def _observation(**kwargs):
    defaults = {
        "candidate": CANDIDATE,
        "structure": ValidationOutcome(True, 100),
        "duplicate": False,
        "hallucination": ValidationOutcome(True, 90),
    }
    defaults.update(kwargs)
    return AttemptObservation(**defaults)


class TestJudge:
    def test_all_stages_passing_accepts(self):
        assert judge(_observation(), CUTOFF).verdict is Verdict.ACCEPT

    def test_parse_error_rejects_first(self):
        error = MalformedResponseError("bad json")
        judgement = judge(AttemptObservation(parse_error=error), CUTOFF)

        assert judgement.verdict is Verdict.REJECT
        assert judgement.error is error

    def test_unobserved_stages_are_pending(self):
        assert judge(AttemptObservation(), CUTOFF).verdict is Verdict.PENDING
        assert judge(_observation(duplicate=None, hallucination=None), CUTOFF).verdict is Verdict.PENDING
        assert judge(_observation(hallucination=None), CUTOFF).verdict is Verdict.PENDING

    def test_invalid_structure_rejects_as_malformed(self):
        judgement = judge(_observation(structure=ValidationOutcome(False, 0, ["missing hook_line"])), CUTOFF)

        assert judgement.verdict is Verdict.REJECT
        assert isinstance(judgement.error, MalformedResponseError)
        assert judgement.error.issues == ["missing hook_line"]

    def test_duplicate_rejects(self):
        judgement = judge(_observation(duplicate=True, hallucination=None), CUTOFF)

        assert judgement.verdict is Verdict.REJECT
        assert isinstance(judgement.error, DuplicateQuestionError)

    def test_low_confidence_invalid_verdict_rejects(self):
        judgement = judge(_observation(hallucination=ValidationOutcome(False, 0)), CUTOFF)

        assert judgement.verdict is Verdict.REJECT
        assert isinstance(judgement.error, HallucinationLowConfidenceError)

    def test_invalid_but_confident_verdict_is_accepted(self):
        assert judge(_observation(hallucination=ValidationOutcome(False, 70)), CUTOFF).verdict is Verdict.ACCEPT

    def test_hallucination_rule(self):
        assert hallucination_rejects(ValidationOutcome(False, 69), CUTOFF)
        assert not hallucination_rejects(ValidationOutcome(True, 10), CUTOFF)
        assert not hallucination_rejects(ValidationOutcome(False, 70), CUTOFF)


class TestAdvance:
    def test_transitions(self):
        assert advance(Verdict.PENDING, 0, 3) is AttemptState.ATTEMPTING
        assert advance(Verdict.ACCEPT, 2, 3) is AttemptState.SUCCESS
        assert advance(Verdict.REJECT, 0, 3) is AttemptState.NEXT_ATTEMPT
        assert advance(Verdict.REJECT, 1, 3) is AttemptState.NEXT_ATTEMPT
        assert advance(Verdict.REJECT, 2, 3) is AttemptState.EXHAUSTED

    def test_single_attempt_budget(self):
        assert advance(Verdict.REJECT, 0, 1) is AttemptState.EXHAUSTED


class TestDuplicateDetection:
    def test_identical_after_normalization(self):
        assert is_duplicate_question("  Why do cats purr?  ", ["why do cats purr?"], 0.8)

    def test_overlap_at_threshold_is_not_duplicate(self):
        # 4 of 5 words shared -> 0.8
        previous = ["why do cats purr loudly"]
        assert word_overlap_similarity("why do cats purr softly", previous[0]) == 0.8
        assert not is_duplicate_question("Why do cats purr softly", previous, 0.8)

    def test_overlap_above_threshold_is_duplicate(self):
        # 9 of 10 words shared -> 0.9
        previous = ["why do cats purr so loudly at night in summer"]
        candidate = "Why do cats purr so softly at night in summer"
        assert word_overlap_similarity(candidate.lower(), previous[0]) == 0.9
        assert is_duplicate_question(candidate, previous, 0.8)

    def test_low_overlap_is_not_duplicate(self):
        assert not is_duplicate_question("Why is the ocean salty?", ["why do cats purr?"], 0.8)

    def test_empty_history(self):
        assert not is_duplicate_question("Why?", [], 0.8)
