"""Pure decision logic for the question generation loop.

Control-flow model:
    Each attempt collects an `AttemptObservation` stage by stage
    (parse -> structure -> duplicate -> hallucination). `judge` looks at what has
    been observed so far and answers PENDING (run the next stage), ACCEPT, or
    REJECT with the error describing the failure. `advance` maps a verdict and the
    attempt index onto the loop state:

        ATTEMPTING(n) --accept--> SUCCESS
        ATTEMPTING(n) --reject--> NEXT_ATTEMPT   (n + 1 < max_attempts)
        ATTEMPTING(n) --reject--> EXHAUSTED      (otherwise)

Determinism:
    No I/O and no clock; identical observations always produce identical verdicts.
"""

from dataclasses import dataclass
from enum import Enum

from whyforge.core.errors import (
    DuplicateQuestionError,
    HallucinationLowConfidenceError,
    MalformedResponseError,
    WhyForgeError,
)
from whyforge.core.types import ValidationOutcome


class AttemptState(Enum):
    ATTEMPTING = "attempting"
    SUCCESS = "success"
    NEXT_ATTEMPT = "next_attempt"
    EXHAUSTED = "exhausted"


class Verdict(Enum):
    PENDING = "pending"
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass
class AttemptObservation:
    """What one attempt has produced so far; `None` means "not observed yet"."""

    candidate: dict | None = None
    parse_error: WhyForgeError | None = None
    structure: ValidationOutcome | None = None
    duplicate: bool | None = None
    hallucination: ValidationOutcome | None = None


@dataclass(frozen=True)
class Judgement:
    verdict: Verdict
    error: WhyForgeError | None = None


PENDING = Judgement(Verdict.PENDING)
ACCEPT = Judgement(Verdict.ACCEPT)


def hallucination_rejects(outcome: ValidationOutcome, cutoff: int) -> bool:
    """A verdict fails only when it is invalid and below the confidence cutoff."""
    return not outcome.valid and outcome.confidence_score < cutoff


def judge(observation: AttemptObservation, hallucination_cutoff: int) -> Judgement:
    if observation.parse_error is not None:
        return Judgement(Verdict.REJECT, observation.parse_error)

    if observation.candidate is None or observation.structure is None:
        return PENDING

    if not observation.structure.valid:
        return Judgement(
            Verdict.REJECT,
            MalformedResponseError("Structure validation failed", issues=observation.structure.issues),
        )

    if observation.duplicate is None:
        return PENDING

    if observation.duplicate:
        return Judgement(
            Verdict.REJECT,
            DuplicateQuestionError(str(observation.candidate.get("question", ""))),
        )

    if observation.hallucination is None:
        return PENDING

    if hallucination_rejects(observation.hallucination, hallucination_cutoff):
        return Judgement(
            Verdict.REJECT,
            HallucinationLowConfidenceError(
                observation.hallucination.confidence_score,
                observation.hallucination.issues,
            ),
        )

    return ACCEPT


def advance(verdict: Verdict, attempt: int, max_attempts: int) -> AttemptState:
    if verdict is Verdict.PENDING:
        return AttemptState.ATTEMPTING
    if verdict is Verdict.ACCEPT:
        return AttemptState.SUCCESS
    if attempt + 1 < max_attempts:
        return AttemptState.NEXT_ATTEMPT
    return AttemptState.EXHAUSTED
