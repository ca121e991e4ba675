"""
HTTP API adapter for the question/answer pipelines.

Architectural role:
- Expose the pipelines over JSON endpoints under `/api`.
- Enforce adapter-level input validation with pydantic request models.
- Map the closed pipeline error taxonomy onto HTTP status codes.

Endpoint responsibilities:
- `POST /api/generate-question`: input -> validated "Why" question.
- `POST /api/generate-answer`: question -> answer under a tone.
- `POST /api/generate-multiple-answers`: one answer per tone, up to `count`.
- `GET /api/wildcards`: tone catalog.
- `GET /api/user/{user_id}/stats`: per-user history summary.
- `GET /api/offline/cache-stats`, `POST /api/offline/clear-expired`.
- `GET /api/health`.

Response formatting:
- Success: `{"success": true, "data": ..., "metadata": {...}}`.
- Failure: `{"success": false, "error": ..., "message": ...}`.

Error handling strategy:
- Request validation failures -> HTTP 400.
- `UnsafeInputError`, `ImageFormatError`, `MalformedResponseError` -> HTTP 400.
- Provider errors -> HTTP 502.
- `AttemptsExhaustedError` -> HTTP 503.
- Anything else -> HTTP 500 (message only exposed when `DEBUG == "true"`).

Side effects:
- Loads environment variables at import time via `load_dotenv()`.
- Building the module-level `app` wires the default HTTP completion provider;
  no network call happens until a request arrives.
"""

from dotenv import load_dotenv

load_dotenv()

import logging
import os
import time
from typing import Literal

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from whyforge.api.services import Services, build_services
from whyforge.core.errors import (
    AttemptsExhaustedError,
    ImageFormatError,
    MalformedResponseError,
    ProviderError,
    UnsafeInputError,
    WhyForgeError,
)
from whyforge.core.types import UserContext, utcnow
from whyforge.prompting.tone_catalog import TONE_NAMES


logger = logging.getLogger(__name__)

# Internal error details are only exposed when debugging.
DEBUG = os.getenv("DEBUG") == "true"

SERVICE_NAME = "1-million-of-why-api"


# ============================================================
# Request Schemas
# ============================================================

def _known_wildcard(value: str | None) -> str | None:
    if value is None:
        return None
    if value.strip().lower() not in TONE_NAMES:
        raise ValueError(f"wildcard must be one of: {', '.join(TONE_NAMES)}")
    return value.strip().lower()


class UserContextModel(BaseModel):
    age: int | None = Field(default=None, ge=1, le=120)
    interests: list[str] | None = None


class GenerateQuestionRequest(BaseModel):
    input: str = Field(min_length=1, max_length=5000)
    wildcard: str | None = None
    user_id: str | None = None
    user_context: UserContextModel | None = None
    type: Literal["text", "image", "sentence"] = "text"

    @field_validator("wildcard")
    @classmethod
    def check_wildcard(cls, value: str | None) -> str | None:
        return _known_wildcard(value)


class GenerateAnswerRequest(BaseModel):
    question: str = Field(min_length=1, max_length=1000)
    wildcard: str | None = None
    question_id: str | None = None

    @field_validator("wildcard")
    @classmethod
    def check_wildcard(cls, value: str | None) -> str | None:
        return _known_wildcard(value)


class GenerateMultipleAnswersRequest(GenerateAnswerRequest):
    count: int = Field(default=3, ge=1, le=5)


# ============================================================
# Error Mapping
# ============================================================

def status_for_error(err: Exception) -> int:
    """Exhaustive mapping of pipeline errors onto HTTP status codes."""
    if isinstance(err, (UnsafeInputError, ImageFormatError, MalformedResponseError)):
        return 400
    if isinstance(err, ProviderError):
        return 502
    if isinstance(err, AttemptsExhaustedError):
        return 503
    return 500


def error_response(status_code: int, error: str, message: str | None = None, **extra) -> JSONResponse:
    content = {"success": False, "error": error}
    if message is not None:
        content["message"] = message
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


# ============================================================
# App Factory
# ============================================================

def create_app(services: Services | None = None) -> FastAPI:
    """Build the FastAPI application around one set of pipeline services."""
    services = services or build_services()
    app = FastAPI(title="WhyForge")
    app.state.services = services

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        details = [
            f"{'.'.join(str(part) for part in item['loc'] if part != 'body')}: {item['msg']}"
            for item in exc.errors()
        ]
        return error_response(400, "Validation failed", details=details)

    @app.exception_handler(WhyForgeError)
    async def handle_pipeline_error(request: Request, exc: WhyForgeError):
        status_code = status_for_error(exc)
        logger.error("%s %s failed (%d): %s", request.method, request.url.path, status_code, exc)
        return error_response(status_code, exc.kind, exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        message = str(exc) if DEBUG else "Something went wrong"
        return error_response(500, "Internal server error", message)

    # ============================================================
    # Generation Endpoints
    # ============================================================

    @app.post("/api/generate-question")
    async def generate_question(body: GenerateQuestionRequest):
        start = time.perf_counter()

        user_context = None
        if body.user_context is not None:
            user_context = UserContext(
                age=body.user_context.age,
                interests=list(body.user_context.interests or []),
            )

        result = await services.question_pipeline.generate_question(
            body.input,
            tone_name=body.wildcard,
            user_id=body.user_id,
            user_context=user_context,
            input_type=body.type,
        )

        return {
            "success": True,
            "data": result.to_dict(),
            "metadata": {
                "response_time_ms": _elapsed_ms(start),
                "input_type": body.type,
                "processing_timestamp": utcnow().isoformat(),
            },
        }

    @app.post("/api/generate-answer")
    async def generate_answer(body: GenerateAnswerRequest):
        start = time.perf_counter()

        result = await services.answer_pipeline.generate_answer(
            body.question,
            tone=body.wildcard,
            question_id=body.question_id,
        )

        return {
            "success": True,
            "data": result.to_dict(),
            "metadata": {
                "response_time_ms": _elapsed_ms(start),
                "processing_timestamp": utcnow().isoformat(),
            },
        }

    @app.post("/api/generate-multiple-answers")
    async def generate_multiple_answers(body: GenerateMultipleAnswersRequest):
        start = time.perf_counter()

        answers = await services.answer_pipeline.generate_multiple_answers(body.question, body.count)

        return {
            "success": True,
            "data": [answer.to_dict() for answer in answers],
            "metadata": {
                "response_time_ms": _elapsed_ms(start),
                "answers_generated": len(answers),
                "processing_timestamp": utcnow().isoformat(),
            },
        }

    # ============================================================
    # Catalog / Stats Endpoints
    # ============================================================

    @app.get("/api/wildcards")
    def list_wildcards():
        return {
            "success": True,
            "data": [tone.to_dict() for tone in services.catalog.all_tones()],
        }

    @app.get("/api/user/{user_id}/stats")
    def user_stats(user_id: str):
        stats = services.question_pipeline.get_user_stats(user_id)
        if stats is None:
            return error_response(404, "User not found or no question history")
        return {"success": True, "data": stats}

    @app.get("/api/offline/cache-stats")
    def offline_cache_stats():
        return {"success": True, "data": services.question_pipeline.offline_cache_stats()}

    @app.post("/api/offline/clear-expired")
    def clear_expired():
        removed = services.question_pipeline.clear_expired_offline_cache()
        return {
            "success": True,
            "message": "Expired cache cleared successfully",
            "data": {"removed": removed},
        }

    @app.get("/api/health")
    def health():
        return {
            "success": True,
            "status": "healthy",
            "timestamp": utcnow().isoformat(),
            "service": SERVICE_NAME,
        }

    return app


app = create_app()
