"""Explicit schemas for the JSON payloads returned by the completion provider.

Three shapes are expected:
    - question-shaped (`QuestionPayload`),
    - answer-shaped (`AnswerPayload`),
    - fact-check verdicts (`HallucinationPayload`).

Invalid JSON, non-object JSON and schema mismatches all surface as
`MalformedResponseError`; no field is trusted on presence alone.
"""

import json
import re

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from whyforge.core.errors import MalformedResponseError


# Providers sometimes wrap JSON in a markdown fence despite instructions.
_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


def parse_json_object(text: str | None) -> dict:
    """Decode provider text into a JSON object.

    Raises:
        MalformedResponseError: on empty text, invalid JSON or non-object JSON.
    """
    if not text or not text.strip():
        raise MalformedResponseError("Empty completion text", issues=["empty response"])

    raw = text.strip()
    fenced = _FENCE_RE.match(raw)
    if fenced:
        raw = fenced.group(1)

    try:
        data = json.loads(raw)
    except ValueError as err:
        raise MalformedResponseError("Completion is not valid JSON", issues=[str(err)]) from err

    if not isinstance(data, dict):
        raise MalformedResponseError(
            "Completion JSON is not an object",
            issues=[f"expected object, got {type(data).__name__}"],
        )

    return data


def _issues_from(err: ValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or 'payload'}: {item['msg']}"
        for item in err.errors()
    ]


class QuestionPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    question: str
    complexity_score: float = Field(allow_inf_nan=False)
    category: str
    hook_line: str


class AnswerPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    answer: str = Field(min_length=1)
    sources: list[str] | None = None
    confidence_score: float | None = Field(default=None, allow_inf_nan=False)


class HallucinationPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    valid: bool = Field(validation_alias=AliasChoices("is_valid", "valid"))
    confidence_score: float = Field(allow_inf_nan=False)
    issues: list[str] | None = None


def _validate(model, data: dict, label: str):
    try:
        return model.model_validate(data)
    except ValidationError as err:
        raise MalformedResponseError(f"Completion does not match the {label} shape", issues=_issues_from(err)) from err


def parse_question_payload(data: dict) -> QuestionPayload:
    return _validate(QuestionPayload, data, "question")


def parse_answer_payload(text: str) -> AnswerPayload:
    return _validate(AnswerPayload, parse_json_object(text), "answer")


def parse_hallucination_payload(text: str) -> HallucinationPayload:
    return _validate(HallucinationPayload, parse_json_object(text), "fact-check")
