"""Pytest fixtures for WhyForge tests."""

import base64
import io
import json
import random
from collections import deque
from datetime import datetime, timedelta, timezone

import pytest
from PIL import Image

from whyforge.core.settings import OfflineSettings, PipelineSettings
from whyforge.llm.client import ProviderCallError
from whyforge.llm.provider_config import CompletionSettings
from whyforge.llm.service import CompletionClient
from whyforge.offline.cache import OfflineCache
from whyforge.prompting.prompt_builder import FACT_CHECK_SYSTEM_PROMPT
from whyforge.prompting.tone_catalog import ToneCatalog


VALID_FACT_CHECK = json.dumps({"is_valid": True, "confidence_score": 92, "issues": []})


def question_json(
    question="Why do cats purr when they are content?",
    complexity_score=6,
    category="biological",
    hook_line="The vibration that reveals a cat's mood",
    **extra,
) -> str:
    payload = {
        "question": question,
        "complexity_score": complexity_score,
        "category": category,
        "hook_line": hook_line,
    }
    payload.update(extra)
    return json.dumps(payload)


def answer_json(answer="Because of laryngeal muscle oscillation.", **extra) -> str:
    payload = {"answer": answer}
    payload.update(extra)
    return json.dumps(payload)


class ScriptedProvider:
    """Deterministic completion provider for failure injection.

    Question/answer prompts consume `responses` in order; fact-check prompts
    consume `fact_checks` and fall back to a valid verdict when it runs out.
    Queued exceptions are raised instead of returned.
    """

    def __init__(self, responses=(), fact_checks=()):
        self.responses = deque(responses)
        self.fact_checks = deque(fact_checks)
        self.calls = []

    @property
    def call_count(self) -> int:
        return len(self.calls)

    @property
    def generation_calls(self) -> list:
        return [call for call in self.calls if call[0] != FACT_CHECK_SYSTEM_PROMPT]

    @property
    def fact_check_calls(self) -> list:
        return [call for call in self.calls if call[0] == FACT_CHECK_SYSTEM_PROMPT]

    def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))

        if system_prompt == FACT_CHECK_SYSTEM_PROMPT:
            item = self.fact_checks.popleft() if self.fact_checks else VALID_FACT_CHECK
        elif self.responses:
            item = self.responses.popleft()
        else:
            raise ProviderCallError("script exhausted", status=400, code="script_exhausted")

        if isinstance(item, BaseException):
            raise item
        return item


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class FrozenClock:
    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def png_data_url(size=(64, 32), colour=(50, 90, 200)) -> str:
    buffer = io.BytesIO()
    Image.new("RGB", size, colour).save(buffer, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def completion_settings():
    return CompletionSettings(
        provider="openai",
        model="test-model",
        retry_attempts=3,
        backoff_base_ms=1000,
        backoff_jitter_ms=0,
    )


@pytest.fixture
def make_client(sleeper, completion_settings):
    def factory(provider, settings=None):
        return CompletionClient(
            provider,
            settings or completion_settings,
            sleep=sleeper,
            rng=random.Random(0),
        )

    return factory


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def offline_settings():
    return OfflineSettings(size_limit=100, expiry_days=7, snapshot_path=None, force_offline=False)


@pytest.fixture
def offline_cache(offline_settings, clock):
    return OfflineCache(offline_settings, clock=clock, rng=random.Random(1))


@pytest.fixture
def pipeline_settings():
    return PipelineSettings(max_attempts=3, duplicate_threshold=0.8, hallucination_cutoff=70, history_limit=50)


@pytest.fixture
def catalog():
    return ToneCatalog(rng=random.Random(7))
