"""Multi-phase validation of user input and generated questions.

Phases:
    1. Input safety (`whyforge.safety.filter`), pure and synchronous.
    2. Structural validation of a question-shaped payload, pure and synchronous.
    3. Hallucination check: a second completion call asking a fact-checker
       persona to judge plausibility.

Failure handling:
    The hallucination check fails closed: any provider, parsing or schema failure
    yields `valid=False, confidence_score=0` instead of raising, so unverified
    content is never silently accepted.
"""

import logging

from whyforge.core.errors import WhyForgeError
from whyforge.core.types import (
    MAX_COMPLEXITY,
    MIN_COMPLEXITY,
    VALID_CATEGORIES,
    QuestionResult,
    ValidationOutcome,
)
from whyforge.llm.service import CompletionClient
from whyforge.prompting.prompt_builder import FACT_CHECK_SYSTEM_PROMPT, build_hallucination_prompt
from whyforge.safety.filter import validate_input_safety
from whyforge.safety.schemas import parse_hallucination_payload


logger = logging.getLogger(__name__)

UNAVAILABLE_ISSUE = "validation service unavailable"


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_text(value) -> bool:
    return isinstance(value, str) and bool(value.strip())


def validate_structure(payload) -> ValidationOutcome:
    """Check a decoded question payload field by field.

    Checks presence/type of `question`, `complexity_score`, `category` and
    `hook_line`, the "why" prefix, the complexity range and category
    membership (case-insensitive). All problems are reported together.
    """
    if not isinstance(payload, dict):
        return ValidationOutcome(valid=False, confidence_score=0, issues=["Payload must be a JSON object"])

    issues = []

    question = payload.get("question")
    complexity = payload.get("complexity_score")
    category = payload.get("category")
    hook_line = payload.get("hook_line")

    if not _is_text(question):
        issues.append("Missing or invalid question field")
    elif not question.strip().lower().startswith("why"):
        issues.append('Question must start with "Why"')

    if not _is_number(complexity):
        issues.append("Missing or invalid complexity_score field")
    elif not MIN_COMPLEXITY <= complexity <= MAX_COMPLEXITY:
        issues.append(f"Complexity score must be between {MIN_COMPLEXITY} and {MAX_COMPLEXITY}")

    if not _is_text(category):
        issues.append("Missing or invalid category field")
    elif category.strip().lower() not in VALID_CATEGORIES:
        issues.append(f"Category must be one of: {', '.join(VALID_CATEGORIES)}")

    if not _is_text(hook_line):
        issues.append("Missing or invalid hook_line field")

    valid = not issues
    return ValidationOutcome(valid=valid, confidence_score=100 if valid else 0, issues=issues)


def combine(outcomes: list[ValidationOutcome]) -> ValidationOutcome:
    """AND validity, average confidence and concatenate issues."""
    if not outcomes:
        return ValidationOutcome(valid=True, confidence_score=100, issues=[])

    issues = []
    for outcome in outcomes:
        issues.extend(outcome.issues)

    return ValidationOutcome(
        valid=all(outcome.valid for outcome in outcomes),
        confidence_score=round(sum(outcome.confidence_score for outcome in outcomes) / len(outcomes)),
        issues=issues,
    )


class ResponseValidator:
    """Bundles the three validation phases around one `CompletionClient`."""

    def __init__(self, completion_client: CompletionClient) -> None:
        self.completion_client = completion_client

    @staticmethod
    def validate_input_safety(text: str | None) -> ValidationOutcome:
        return validate_input_safety(text)

    @staticmethod
    def validate_structure(payload) -> ValidationOutcome:
        return validate_structure(payload)

    @staticmethod
    def combine(outcomes: list[ValidationOutcome]) -> ValidationOutcome:
        return combine(outcomes)

    async def hallucination_check(self, result: QuestionResult) -> ValidationOutcome:
        """Ask the fact-checker persona to judge a generated question.

        Returns:
            Parsed verdict, or the fail-closed outcome when the call or its
            parsing fails.
        """
        try:
            response = await self.completion_client.generate_completion(
                FACT_CHECK_SYSTEM_PROMPT,
                build_hallucination_prompt(result),
            )
            verdict = parse_hallucination_payload(response)
        except WhyForgeError as err:
            logger.error("Hallucination check failed: %s", err)
            return ValidationOutcome(valid=False, confidence_score=0, issues=[UNAVAILABLE_ISSUE])
        except Exception:
            logger.exception("Hallucination check failed unexpectedly")
            return ValidationOutcome(valid=False, confidence_score=0, issues=[UNAVAILABLE_ISSUE])

        return ValidationOutcome(
            valid=verdict.valid,
            confidence_score=verdict.confidence_score,
            issues=list(verdict.issues or []),
        )
