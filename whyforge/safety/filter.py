"""Rule-based lexical safety gate for user input.

Purpose:
    Provide a deterministic pre-generation check that rejects empty, oversized or
    clearly harmful input before any provider call is made.

Validation model:
    - Rule-based only (regular expressions), no classifier/model inference.
    - Every rule is evaluated; all issues are reported together.
    - Output is a `ValidationOutcome` consumed by `QuestionPipeline`.

Determinism:
    For the same input text and pattern lists, output is deterministic.

Bypass risk:
    Pattern matching can be bypassed by obfuscation, misspellings, spacing tricks
    or unsupported languages. The prompt-level "pivot" instruction and the
    hallucination check remain the downstream controls.
"""

import re

from whyforge.core.types import ValidationOutcome


MAX_INPUT_LENGTH = 5000

HARMFUL_PATTERNS = [

    # Harmful content
    re.compile(r"\b(suicide|self-harm|violence|illegal)\b", re.IGNORECASE),
    re.compile(r"\b(hate|discrimination|offensive)\b", re.IGNORECASE),

    # Script injection
    re.compile(r"<script|javascript:|data:", re.IGNORECASE),
]


def validate_input_safety(text: str | None) -> ValidationOutcome:
    """Return whether user input may proceed to prompt construction.

    Args:
        text: Raw user text (or text extracted from an image).

    Returns:
        `ValidationOutcome` with confidence 100 when valid, 0 otherwise.

    Evaluation order:
        1. Denylist patterns (first match reported once).
        2. Length limit (`MAX_INPUT_LENGTH`).
        3. Empty/blank input.
    """
    text = text or ""
    issues = []

    for pattern in HARMFUL_PATTERNS:
        if pattern.search(text):
            issues.append("Input contains potentially harmful or inappropriate content")
            break

    if len(text) > MAX_INPUT_LENGTH:
        issues.append(f"Input too long (max {MAX_INPUT_LENGTH} characters)")

    if not text.strip():
        issues.append("Input cannot be empty")

    valid = not issues
    return ValidationOutcome(valid=valid, confidence_score=100 if valid else 0, issues=issues)


def is_allowed(text: str | None) -> bool:
    return validate_input_safety(text).valid
