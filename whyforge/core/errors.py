"""Closed error taxonomy shared by the generation pipelines.

Architectural role:
    Every failure that crosses a component boundary is one of the variants below.
    Each variant carries a structured `context` dict so adapters (HTTP, CLI) can
    map them to responses without parsing messages.

Propagation policy:
    - `UnsafeInputError` and `ImageFormatError` fail fast before any provider call.
    - `ProviderTransientError` is retried by `CompletionClient`; once the client
      gives up, the question loop counts it as one failed attempt.
    - `ProviderFatalError` escapes immediately.
    - `MalformedResponseError`, `DuplicateQuestionError` and
      `HallucinationLowConfidenceError` are absorbed by the question loop.
    - `AttemptsExhaustedError` is terminal and wraps the last underlying cause.
"""

from typing import Any


class WhyForgeError(Exception):
    """Base class for all pipeline errors."""

    kind = "error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        return {"kind": self.kind, "message": self.message, **self.context}


class UnsafeInputError(WhyForgeError):
    """Input rejected by the safety gate. User-correctable."""

    kind = "unsafe_input"

    def __init__(self, issues: list[str]) -> None:
        super().__init__(f"Invalid input: {', '.join(issues)}", issues=list(issues))
        self.issues = list(issues)


class ProviderError(WhyForgeError):
    """Shared base for classified provider failures."""

    kind = "provider"

    def __init__(self, message: str, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message, status=status, code=code)
        self.status = status
        self.code = code


class ProviderTransientError(ProviderError):
    """Rate-limit, timeout or 5xx-class failure. Retryable."""

    kind = "provider_transient"


class ProviderFatalError(ProviderError):
    """Non-retryable provider failure."""

    kind = "provider_fatal"


class MalformedResponseError(WhyForgeError):
    """Provider output was not valid JSON or did not match the expected shape."""

    kind = "malformed_response"

    def __init__(self, message: str, issues: list[str] | None = None, **context: Any) -> None:
        super().__init__(message, issues=list(issues or []), **context)
        self.issues = list(issues or [])


class DuplicateQuestionError(WhyForgeError):
    kind = "duplicate_question"

    def __init__(self, question: str) -> None:
        super().__init__(f"Duplicate question: {question}", question=question)
        self.question = question


class HallucinationLowConfidenceError(WhyForgeError):
    kind = "hallucination_low_confidence"

    def __init__(self, confidence_score: int, issues: list[str]) -> None:
        super().__init__(
            f"Hallucination check failed (confidence {confidence_score})",
            confidence_score=confidence_score,
            issues=list(issues),
        )
        self.confidence_score = confidence_score
        self.issues = list(issues)


class AttemptsExhaustedError(WhyForgeError):
    """All generation attempts failed. `last_error` holds the final cause."""

    kind = "attempts_exhausted"

    def __init__(self, attempts: int, last_error: Exception | None) -> None:
        detail = str(last_error) if last_error is not None else "no valid question produced"
        super().__init__(
            f"Failed to generate valid question after {attempts} attempts: {detail}",
            attempts=attempts,
            last_error=type(last_error).__name__ if last_error is not None else None,
        )
        self.attempts = attempts
        self.last_error = last_error


class ImageFormatError(WhyForgeError):
    """Image payload is not a decodable data URL of a supported type."""

    kind = "image_format"
