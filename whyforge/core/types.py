"""Domain records passed between the pipelines and their adapters.

Architectural role:
    Defines the structural contracts produced and consumed by `question_pipeline`,
    `answer_pipeline`, `offline.cache` and the API adapters.

Serialization:
    Every record exposes `to_dict()` returning the snake_case JSON shape used by the
    HTTP surface. Timestamps are timezone-aware UTC and serialized as ISO-8601.

Determinism:
    The records are state-free containers; only `utcnow()` reads the clock.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


VALID_CATEGORIES = (
    "biological",
    "physical",
    "psychological",
    "social",
    "philosophical",
)

# Category label used only by the rule-based offline generator.
OFFLINE_FALLBACK_CATEGORY = "general"

MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 10
MIN_CONFIDENCE = 0
MAX_CONFIDENCE = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp(value: float, low: int, high: int) -> int:
    """Round `value` to the nearest integer and clamp it into `[low, high]`."""
    return max(low, min(high, int(round(value))))


def clamp_complexity(value: float) -> int:
    return clamp(value, MIN_COMPLEXITY, MAX_COMPLEXITY)


def clamp_confidence(value: float) -> int:
    return clamp(value, MIN_CONFIDENCE, MAX_CONFIDENCE)


@dataclass(frozen=True)
class ToneVariant:
    """Named stylistic modifier applied to generation prompts."""

    name: str
    tone_instruction: str
    description: str

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "tone": self.tone_instruction,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ToneVariant":
        return cls(
            name=data["name"],
            tone_instruction=data.get("tone", data.get("tone_instruction", "")),
            description=data.get("description", ""),
        )


@dataclass(frozen=True)
class Archetype:
    """Causal-angle template biasing which kind of "why" is asked."""

    name: str
    prompt_template: str
    category: str
    complexity_range: tuple[int, int]

    def render(self, user_input: str) -> str:
        return self.prompt_template.replace("{input}", user_input)


@dataclass
class UserContext:
    age: int | None = None
    interests: list[str] = field(default_factory=list)


@dataclass
class ValidationOutcome:
    valid: bool
    confidence_score: int
    issues: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.confidence_score = clamp_confidence(self.confidence_score)

    def to_dict(self) -> dict:
        return {
            "is_valid": self.valid,
            "confidence_score": self.confidence_score,
            "issues": list(self.issues),
        }


@dataclass
class QuestionResult:
    question: str
    complexity_score: int
    category: str
    hook_line: str
    tone_applied: ToneVariant
    generated_at: datetime = field(default_factory=utcnow)
    user_id: str | None = None
    question_id: str | None = None

    def __post_init__(self) -> None:
        self.complexity_score = clamp_complexity(self.complexity_score)

    def to_dict(self) -> dict:
        data = {
            "question": self.question,
            "complexity_score": self.complexity_score,
            "category": self.category,
            "hook_line": self.hook_line,
            "wildcard_applied": self.tone_applied.to_dict(),
            "generated_at": self.generated_at.isoformat(),
        }
        if self.user_id:
            data["user_id"] = self.user_id
        if self.question_id:
            data["question_id"] = self.question_id
        return data


@dataclass
class AnswerResult:
    answer: str
    sources: list[str]
    confidence_score: int
    tone_applied: ToneVariant
    generated_at: datetime = field(default_factory=utcnow)
    question_id: str | None = None

    def __post_init__(self) -> None:
        self.confidence_score = clamp_confidence(self.confidence_score)

    def to_dict(self) -> dict:
        data = {
            "answer": self.answer,
            "sources": list(self.sources),
            "confidence_score": self.confidence_score,
            "wildcard_applied": self.tone_applied.to_dict(),
            "generated_at": self.generated_at.isoformat(),
        }
        if self.question_id:
            data["question_id"] = self.question_id
        return data


@dataclass
class CachedQuestion:
    id: str
    question: str
    complexity_score: int
    category: str
    hook_line: str
    tone_applied: ToneVariant
    generated_at: datetime
    cached_at: datetime
    user_id: str | None = None

    def to_result(self, hook_line: str | None = None) -> QuestionResult:
        return QuestionResult(
            question=self.question,
            complexity_score=self.complexity_score,
            category=self.category,
            hook_line=hook_line or self.hook_line,
            tone_applied=self.tone_applied,
            question_id=self.id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "complexity_score": self.complexity_score,
            "category": self.category,
            "hook_line": self.hook_line,
            "wildcard_applied": self.tone_applied.to_dict(),
            "generated_at": self.generated_at.isoformat(),
            "cached_at": self.cached_at.isoformat(),
            "user_id": self.user_id,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedQuestion":
        return cls(
            id=data["id"],
            question=data["question"],
            complexity_score=int(data["complexity_score"]),
            category=data["category"],
            hook_line=data.get("hook_line", ""),
            tone_applied=ToneVariant.from_dict(data["wildcard_applied"]),
            generated_at=datetime.fromisoformat(data.get("generated_at", data["cached_at"])),
            cached_at=datetime.fromisoformat(data["cached_at"]),
            user_id=data.get("user_id"),
        )


@dataclass
class CachedAnswer:
    id: str
    question_id: str
    answer: str
    sources: list[str]
    confidence_score: int
    tone_applied: ToneVariant
    generated_at: datetime
    cached_at: datetime

    def to_result(self) -> AnswerResult:
        return AnswerResult(
            answer=self.answer,
            sources=list(self.sources),
            confidence_score=self.confidence_score,
            tone_applied=self.tone_applied,
            question_id=self.question_id,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "answer": self.answer,
            "sources": list(self.sources),
            "confidence_score": self.confidence_score,
            "wildcard_applied": self.tone_applied.to_dict(),
            "generated_at": self.generated_at.isoformat(),
            "cached_at": self.cached_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedAnswer":
        return cls(
            id=data["id"],
            question_id=data["question_id"],
            answer=data["answer"],
            sources=list(data.get("sources", [])),
            confidence_score=int(data.get("confidence_score", 85)),
            tone_applied=ToneVariant.from_dict(data["wildcard_applied"]),
            generated_at=datetime.fromisoformat(data.get("generated_at", data["cached_at"])),
            cached_at=datetime.fromisoformat(data["cached_at"]),
        )


@dataclass
class UserHistory:
    user_id: str
    previous_questions: list[str] = field(default_factory=list)
    preferred_tones: list[ToneVariant] = field(default_factory=list)
    categories: list[str] = field(default_factory=list)
    last_updated: datetime = field(default_factory=utcnow)


@dataclass
class ImageProcessingResult:
    description: str
    confidence_score: int
    method: str
    extracted_text: str | None = None
    processed_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict:
        data = {
            "description": self.description,
            "confidence_score": self.confidence_score,
            "processing_method": self.method,
            "processed_at": self.processed_at.isoformat(),
        }
        if self.extracted_text:
            data["extracted_text"] = self.extracted_text
        return data
